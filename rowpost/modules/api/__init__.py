"""
API Module - Black Box Interface

Purpose: Shared data models and error types
Interface: PostRequest, BridgeResult, Outcome, ErrorKind, error classes
Hidden: Serialization details

Every other module exchanges data only through these types.
"""

from .models import (
    BridgeFailure,
    BridgeResult,
    BridgeTimeoutError,
    ClientClosedError,
    ConfigError,
    ErrorKind,
    Outcome,
    PostRequest,
    RowpostError,
)

__all__ = [
    "BridgeFailure",
    "BridgeResult",
    "BridgeTimeoutError",
    "ClientClosedError",
    "ConfigError",
    "ErrorKind",
    "Outcome",
    "PostRequest",
    "RowpostError",
]
