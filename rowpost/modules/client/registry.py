"""
Process-scoped registry of shared HTTP clients.

Row functions are shipped to engine worker processes and called there
from many threads. Each process lazily starts one client per distinct
client configuration and stops them all at interpreter exit.
"""

import atexit
import logging
import os
import threading
from typing import Dict, Optional, Tuple

import httpx

from rowpost.config.provider import BridgeConfig

from .client import AsyncHttpClient

logger = logging.getLogger("rowpost.client.registry")


class ClientRegistry:
    """Lazily started, fork-aware shared clients keyed by configuration."""

    def __init__(self):
        self._lock = threading.Lock()
        self._clients: Dict[Tuple, AsyncHttpClient] = {}
        self._pid = os.getpid()

    def get_client(
        self,
        config: BridgeConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> AsyncHttpClient:
        """Return the running client for this configuration, starting one if needed."""
        key = config.cache_key()
        with self._lock:
            if os.getpid() != self._pid:
                # Loop threads do not survive fork; inherited clients are unusable
                logger.info("Process fork detected, discarding inherited HTTP clients")
                self._clients = {}
                self._pid = os.getpid()

            client = self._clients.get(key)
            if client is None or not client.is_running:
                client = AsyncHttpClient(config, transport=transport).start()
                self._clients[key] = client
            return client

    def shutdown(self) -> None:
        """Stop every client owned by this process."""
        with self._lock:
            clients = list(self._clients.values()) if os.getpid() == self._pid else []
            self._clients = {}
        for client in clients:
            client.stop()

    def __len__(self) -> int:
        return len(self._clients)


# Singleton instance
_instance = None
_instance_lock = threading.Lock()


def get_registry() -> ClientRegistry:
    """Get the process-wide client registry singleton."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = ClientRegistry()
            atexit.register(_instance.shutdown)
    return _instance
