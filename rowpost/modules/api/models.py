"""
rowpost shared data models.

These models define the structure of all data passed between
components in the rowpost system.
"""

import json
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Enums


class Outcome(str, Enum):
    """Final outcome of one bridge invocation."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """Why an invocation did not succeed."""

    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    SERIALIZATION = "serialization"
    INVALID_PAYLOAD = "invalid_payload"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    CLIENT_CLOSED = "client_closed"


# Errors


class RowpostError(Exception):
    """Base class for rowpost errors."""


class ConfigError(RowpostError):
    """Configuration is missing or invalid."""


class ClientClosedError(RowpostError):
    """Request submitted to a client that is not running."""


class BridgeFailure(RowpostError):
    """An invocation finished without success."""

    def __init__(self, result: "BridgeResult"):
        self.result = result
        kind = result.error_kind.value if result.error_kind else result.outcome.value
        super().__init__(f"{kind}: {result.detail}")


class BridgeTimeoutError(BridgeFailure):
    """No completion signal arrived within the configured timeout."""


# Request Models


class PostRequest(BaseModel):
    """One outbound POST, built per invocation attempt."""

    url: str = Field(..., description="Target endpoint")
    body: bytes = Field(..., description="Payload bytes, sent unchanged")
    headers: Dict[str, str] = Field(default_factory=dict)
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


# Result Models


class BridgeResult(BaseModel):
    """Tagged result of a single invocation."""

    outcome: Outcome
    request_id: Optional[str] = None
    status_code: Optional[int] = None
    body: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None
    attempts: int = Field(default=1, ge=0)
    elapsed_ms: float = Field(default=0.0, ge=0)

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @classmethod
    def success(cls, status_code: int, body: str, **kwargs: Any) -> "BridgeResult":
        return cls(outcome=Outcome.SUCCESS, status_code=status_code, body=body, **kwargs)

    @classmethod
    def failure(cls, error_kind: ErrorKind, detail: str, **kwargs: Any) -> "BridgeResult":
        return cls(outcome=Outcome.FAILURE, error_kind=error_kind, detail=detail, **kwargs)

    @classmethod
    def timed_out(cls, timeout: float, **kwargs: Any) -> "BridgeResult":
        return cls(
            outcome=Outcome.TIMEOUT,
            error_kind=ErrorKind.TIMEOUT,
            detail=f"no response within {timeout:g}s",
            **kwargs,
        )

    @classmethod
    def cancelled(cls, detail: str = "request cancelled", **kwargs: Any) -> "BridgeResult":
        return cls(
            outcome=Outcome.CANCELLED, error_kind=ErrorKind.CANCELLED, detail=detail, **kwargs
        )

    def to_column(self) -> str:
        """Serialize to the single text column returned to the engine."""
        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_column(cls, value: str) -> "BridgeResult":
        """Parse a column value produced by to_column()."""
        return cls.model_validate(json.loads(value))
