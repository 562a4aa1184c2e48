"""Shared HTTP client for calls to the AI provider.

The client is created in the application lifespan and shared by every
provider instance so connections to the upstream API are pooled.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from folioguard.app.core.config import settings


_shared_http_client: httpx.AsyncClient | None = None


def _default_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )


def _default_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


def get_http_client() -> httpx.AsyncClient | None:
    """Get the shared HTTP client, or None outside the application lifespan."""
    return _shared_http_client


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Use in the FastAPI lifespan:

        async with init_http_client():
            yield
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(
        timeout=_default_timeout(), limits=_default_limits()
    )
    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Create a standalone client with the configured pool limits.

    The caller owns the returned client and must close it.

    Args:
        timeout: Single timeout applied to every phase (overrides the
            granular httpx_* timeouts)
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout) if timeout is not None else _default_timeout(),
        limits=_default_limits(),
    )
