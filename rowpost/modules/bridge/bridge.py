import logging
import time
from typing import Optional, Union

import httpx

from rowpost.config.provider import BridgeConfig
from rowpost.modules.api import (
    BridgeFailure,
    BridgeResult,
    BridgeTimeoutError,
    ClientClosedError,
    ErrorKind,
    Outcome,
    PostRequest,
)
from rowpost.modules.gate import CompletionGate, GateSignal, SignalKind

logger = logging.getLogger("rowpost.bridge")

Payload = Union[str, bytes]


class RowRequestBridge:
    def __init__(self, client, config: BridgeConfig):
        """
        Initialize the bridge.

        Args:
            client: Shared client exposing execute(request, callback) -> handle
            config: Bridge configuration
        """
        self.client = client
        self.config = config

    @classmethod
    def from_config(cls, config: BridgeConfig, registry=None) -> "RowRequestBridge":
        """Build a bridge on the process-shared client for this configuration."""
        if registry is None:
            from rowpost.modules.client import get_registry

            registry = get_registry()
        return cls(registry.get_client(config), config)

    def send(self, payload: Optional[Payload]) -> BridgeResult:
        """
        POST one payload and wait for its outcome.

        Args:
            payload: Row value, shipped unchanged as the request body

        Returns:
            BridgeResult with exactly one outcome

        Logic:
        1. Encode payload (text as UTF-8, bytes unchanged)
        2. Submit through the shared client
        3. Block on a completion gate until signalled or the deadline passes
        4. Map the signal to a typed result
        5. Retry transport failures and listed statuses with capped backoff
        """
        started = time.monotonic()
        deadline = started + self.config.request_timeout
        retry = self.config.retry

        if payload is None:
            return BridgeResult.failure(
                ErrorKind.INVALID_PAYLOAD, "payload is null", attempts=0
            )

        try:
            body = payload if isinstance(payload, bytes) else payload.encode("utf-8")
        except (AttributeError, UnicodeEncodeError) as e:
            return BridgeResult.failure(
                ErrorKind.SERIALIZATION, f"cannot encode payload: {e}", attempts=0
            )

        request = PostRequest(
            url=self.config.endpoint_url, body=body, headers=self.config.request_headers
        )

        attempt = 1
        result = self._attempt(request, self.config.request_timeout)
        while attempt < retry.max_attempts and self._is_retryable(result):
            delay = max(min(retry.delay_for(attempt), deadline - time.monotonic()), 0)
            logger.info(
                f"Request {request.request_id} attempt {attempt} failed "
                f"({result.error_kind.value}), retrying in {delay:.2f}s"
            )
            time.sleep(delay)

            # Keep the last real outcome when backoff used up the deadline
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            attempt += 1
            result = self._attempt(request, remaining)

        result = result.model_copy(
            update={
                "request_id": request.request_id,
                "attempts": attempt,
                "elapsed_ms": round((time.monotonic() - started) * 1000, 3),
            }
        )
        if result.ok:
            logger.debug(f"Request {request.request_id} succeeded ({result.status_code})")
        else:
            logger.warning(
                f"Request {request.request_id} {result.outcome.value}: {result.detail}"
            )
        return result

    def _attempt(self, request: PostRequest, timeout: float) -> BridgeResult:
        gate = CompletionGate(request.request_id)
        handle = self.client.execute(request, gate)

        signal = gate.wait(timeout)
        if signal is None:
            handle.cancel()
            signal = gate.signal
            if signal is None or signal.kind == SignalKind.CANCELLED:
                return BridgeResult.timed_out(self.config.request_timeout)

        return self._to_result(signal)

    def _to_result(self, signal: GateSignal) -> BridgeResult:
        if signal.kind == SignalKind.CANCELLED:
            return BridgeResult.cancelled()

        if signal.kind == SignalKind.FAILED:
            error = signal.error
            if isinstance(error, ClientClosedError):
                return BridgeResult.failure(ErrorKind.CLIENT_CLOSED, str(error))
            if isinstance(error, httpx.TimeoutException):
                return BridgeResult.timed_out(self.config.request_timeout)
            if isinstance(error, httpx.DecodingError):
                return BridgeResult.failure(ErrorKind.SERIALIZATION, repr(error))
            return BridgeResult.failure(ErrorKind.TRANSPORT, repr(error))

        response = signal.response
        status = response.status_code
        body = response.text
        if 200 <= status < 300:
            return BridgeResult.success(status, body)
        return BridgeResult.failure(
            ErrorKind.HTTP_STATUS, f"HTTP {status}", status_code=status, body=body
        )

    def _is_retryable(self, result: BridgeResult) -> bool:
        if result.outcome != Outcome.FAILURE:
            return False
        if result.error_kind == ErrorKind.TRANSPORT:
            return True
        return (
            result.error_kind == ErrorKind.HTTP_STATUS
            and result.status_code in self.config.retry.retry_on_status
        )

    def send_or_raise(self, payload: Optional[Payload]) -> BridgeResult:
        """Like send(), but raise BridgeTimeoutError/BridgeFailure unless successful."""
        result = self.send(payload)
        if result.ok:
            return result
        if result.outcome == Outcome.TIMEOUT:
            raise BridgeTimeoutError(result)
        raise BridgeFailure(result)

    def __call__(self, payload: Optional[Payload]) -> str:
        """Row function contract: one value in, one text column out."""
        return self.send(payload).to_column()
