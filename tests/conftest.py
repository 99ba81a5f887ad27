"""
Shared pytest fixtures for rowpost tests.

This module provides common fixtures including:
- FakeClient: Scripted stand-in for the shared HTTP client that fires
  completed / failed / cancelled signals deterministically (or never)
- RecordingTransport: httpx.MockTransport that records every request
- Bridge configuration and a running AsyncHttpClient
"""

import os
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import httpx
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rowpost.config.provider import BridgeConfig, RetryConfig
from rowpost.modules.client import AsyncHttpClient


# =============================================================================
# Fake Client Infrastructure
# =============================================================================

@dataclass
class Action:
    """One scripted reaction to a submitted request."""
    kind: str  # "complete", "echo", "fail", "cancel", "hang"
    status: int = 200
    body: str = "ok"
    error: Optional[BaseException] = None
    delay: float = 0.0


def complete(status: int = 200, body: str = "ok", delay: float = 0.0) -> Action:
    return Action("complete", status=status, body=body, delay=delay)


def echo(delay: float = 0.0) -> Action:
    return Action("echo", delay=delay)


def fail(error: BaseException, delay: float = 0.0) -> Action:
    return Action("fail", error=error, delay=delay)


def cancel(delay: float = 0.0) -> Action:
    return Action("cancel", delay=delay)


def hang() -> Action:
    return Action("hang")


class FakeHandle:
    def __init__(self, client: "FakeClient", callback):
        self._client = client
        self._callback = callback

    def cancel(self) -> None:
        with self._client.lock:
            self._client.cancel_calls += 1
        self._callback.cancelled()


class FakeClient:
    """
    Scripted replacement for AsyncHttpClient.

    Usage:
        client = FakeClient([fail(httpx.ConnectError("down")), complete(200)])
        bridge = RowRequestBridge(client, config)

    Actions are consumed in order; the last one repeats.
    """

    def __init__(self, script: Optional[List[Action]] = None):
        self.script = list(script or [complete()])
        self.requests = []
        self.cancel_calls = 0
        self.lock = threading.Lock()

    def _next_action(self) -> Action:
        with self.lock:
            if len(self.script) > 1:
                return self.script.pop(0)
            return self.script[0]

    def execute(self, request, callback) -> FakeHandle:
        with self.lock:
            self.requests.append(request)
        action = self._next_action()
        handle = FakeHandle(self, callback)

        def fire():
            if action.kind == "complete":
                callback.completed(_response(request, action.status, action.body.encode()))
            elif action.kind == "echo":
                callback.completed(_response(request, 200, request.body))
            elif action.kind == "fail":
                callback.failed(action.error)
            elif action.kind == "cancel":
                callback.cancelled()

        if action.kind == "hang":
            return handle
        if action.delay:
            timer = threading.Timer(action.delay, fire)
            timer.daemon = True
            timer.start()
        else:
            fire()
        return handle


def _response(request, status: int, content: bytes) -> httpx.Response:
    return httpx.Response(
        status,
        content=content,
        request=httpx.Request("POST", request.url, headers=request.headers, content=request.body),
    )


# =============================================================================
# HTTP Transport Infrastructure
# =============================================================================

@dataclass
class RecordingTransport:
    """Wraps httpx.MockTransport and keeps every request it saw."""
    handler: Callable[[httpx.Request], Any]
    requests: List[httpx.Request] = field(default_factory=list)

    def __post_init__(self):
        self._lock = threading.Lock()

        async def _handle(request: httpx.Request):
            await request.aread()
            with self._lock:
                self.requests.append(request)
            result = self.handler(request)
            if hasattr(result, "__await__"):
                result = await result
            return result

        self.transport = httpx.MockTransport(_handle)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Bridge configuration pointing at a test endpoint with a short timeout."""
    return BridgeConfig(
        endpoint_url="https://test.local/ingest",
        request_timeout=1.0,
        connect_timeout=0.5,
        max_in_flight=8,
        retry=RetryConfig(max_attempts=1, backoff_initial=0.01, backoff_max=0.02),
    )


@pytest.fixture
def ok_transport() -> RecordingTransport:
    """Transport answering 200 with the request body echoed back."""
    return RecordingTransport(lambda request: httpx.Response(200, content=request.content))


@pytest.fixture
def http_client(bridge_config, ok_transport):
    """Running AsyncHttpClient on the echoing transport."""
    client = AsyncHttpClient(bridge_config, transport=ok_transport.transport).start()
    yield client
    client.stop()
