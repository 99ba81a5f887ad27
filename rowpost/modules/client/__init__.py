"""
Client Module - Black Box Interface

Purpose: Send POST requests asynchronously on a shared connection pool
Interface: AsyncHttpClient.start(), execute(), stop(); get_registry()
Hidden: Event loop thread, httpx client, in-flight limits

Can be replaced with any client that honours the callback contract.
"""

from .client import AsyncHttpClient, RequestCallback, RequestHandle
from .registry import ClientRegistry, get_registry

__all__ = ["AsyncHttpClient", "ClientRegistry", "RequestCallback", "RequestHandle", "get_registry"]
