import asyncio
import logging
import ssl
import threading
from concurrent.futures import Future
from threading import Thread
from typing import Any, Dict, Optional, Protocol

import httpx

from rowpost.config.provider import BridgeConfig
from rowpost.modules.api import ClientClosedError, PostRequest

logger = logging.getLogger("rowpost.client")


class RequestCallback(Protocol):
    """Receives exactly one completion signal per request."""

    def completed(self, response: httpx.Response) -> Any:
        ...

    def failed(self, error: BaseException) -> Any:
        ...

    def cancelled(self) -> Any:
        ...


class _OnceCallback:
    """Guards a callback so only the first signal is delivered."""

    def __init__(self, callback: RequestCallback):
        self._callback = callback
        self._lock = threading.Lock()
        self._fired = False

    def _claim(self) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True

    def completed(self, response: httpx.Response) -> None:
        if self._claim():
            self._callback.completed(response)

    def failed(self, error: BaseException) -> None:
        if self._claim():
            self._callback.failed(error)

    def cancelled(self) -> None:
        if self._claim():
            self._callback.cancelled()


class RequestHandle:
    """Handle to one submitted request."""

    def __init__(self, request_id: str, future: Optional[Future], callback: _OnceCallback):
        self.request_id = request_id
        self._future = future
        self._callback = callback

    def cancel(self) -> None:
        """Cancel the request; the callback sees cancelled() unless already signalled."""
        if self._future is not None:
            self._future.cancel()
        self._callback.cancelled()

    def done(self) -> bool:
        return self._future is None or self._future.done()


class AsyncHttpClient:
    """
    Shared asynchronous HTTP client.

    Owns one httpx.AsyncClient running on a dedicated event loop thread.
    Safe to call execute() from any number of threads. Lifecycle is
    new -> running -> stopped; a stopped client is never restarted.
    """

    def __init__(
        self,
        config: BridgeConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            config: Bridge configuration (timeouts, pool and TLS settings)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.config = config
        self.transport = transport
        self._state = "new"
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[Thread] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._inflight: Dict[int, RequestHandle] = {}

    @property
    def is_running(self) -> bool:
        return self._state == "running"

    def start(self) -> "AsyncHttpClient":
        """Start the loop thread and open the connection pool (idempotent)."""
        with self._lock:
            if self._state == "running":
                return self
            if self._state == "stopped":
                raise ClientClosedError("Client has been stopped and cannot be restarted")

            loop = asyncio.new_event_loop()
            ready = threading.Event()
            self._thread = Thread(
                target=self._run_loop, args=(loop, ready), daemon=True, name="rowpost-http"
            )
            self._thread.start()
            ready.wait()
            self._loop = loop

            try:
                asyncio.run_coroutine_threadsafe(self._open(), loop).result()
            except Exception:
                loop.call_soon_threadsafe(loop.stop)
                self._thread.join()
                self._state = "stopped"
                raise
            self._state = "running"

        logger.info(
            f"HTTP client started (max_in_flight={self.config.max_in_flight}, "
            f"max_connections={self.config.max_connections})"
        )
        return self

    def _run_loop(self, loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def _verify_setting(self):
        if self.config.ca_cert_path:
            return ssl.create_default_context(cafile=self.config.ca_cert_path)
        return self.config.verify_ssl

    async def _open(self) -> None:
        self._semaphore = asyncio.Semaphore(self.config.max_in_flight)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.request_timeout, connect=self.config.connect_timeout),
            limits=httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_connections,
            ),
            verify=self._verify_setting(),
            transport=self.transport,
        )

    def execute(self, request: PostRequest, callback: RequestCallback) -> RequestHandle:
        """
        Submit a POST without waiting for it.

        Args:
            request: Request to send
            callback: Receives exactly one of completed/failed/cancelled

        Returns:
            Handle that can cancel the request
        """
        once = _OnceCallback(callback)

        with self._lock:
            state = self._state
            if state == "running":
                future = asyncio.run_coroutine_threadsafe(self._send(request, once), self._loop)
                handle = RequestHandle(request.request_id, future, once)
                key = id(future)
                self._inflight[key] = handle

        if state != "running":
            once.failed(ClientClosedError(f"Client is {state}"))
            return RequestHandle(request.request_id, None, once)

        future.add_done_callback(lambda _f: self._inflight.pop(key, None))
        return handle

    async def _send(self, request: PostRequest, callback: _OnceCallback) -> None:
        try:
            async with self._semaphore:
                response = await self._client.post(
                    request.url, content=request.body, headers=request.headers
                )
        except asyncio.CancelledError:
            logger.debug(f"Request {request.request_id} cancelled")
            callback.cancelled()
            raise
        except Exception as e:
            logger.debug(f"Request {request.request_id} failed: {e!r}")
            callback.failed(e)
            return

        logger.debug(f"Request {request.request_id} completed with {response.status_code}")
        callback.completed(response)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the client.

        Cancels in-flight requests (their callbacks see cancelled()),
        closes the connection pool and joins the loop thread.
        """
        with self._lock:
            if self._state != "running":
                self._state = "stopped"
                return
            self._state = "stopped"
            pending = list(self._inflight.values())

        for handle in pending:
            handle.cancel()

        try:
            asyncio.run_coroutine_threadsafe(self._close(), self._loop).result(timeout)
        except Exception as e:
            logger.error(f"Error closing HTTP client: {e}")
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout)

        logger.info("HTTP client stopped")

    async def _close(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in asyncio.all_tasks() if t is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._client.aclose()

    def __enter__(self) -> "AsyncHttpClient":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
