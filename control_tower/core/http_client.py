"""
Shared async HTTP client for collaborator calls.

This module owns a single httpx.AsyncClient for the whole process, mirroring a
connection-pool singleton: created once at application startup, reused by every
request for connection keep-alive, and closed at shutdown. The client carries no
request data, so sharing it across requests is safe; everything built from its
responses stays request-local.

Key Components:
- Global client singleton (_client)
- init_http_client(): Create the client at application startup
- get_http_client(): Get the client (creates it lazily if needed)
- close_http_client(): Close the client at application shutdown

Usage:
    # At application startup (in FastAPI lifespan)
    await init_http_client()

    # In services
    client = await get_http_client()
    response = await client.get("/api/dashboard/calls", params={...})

    # At application shutdown
    await close_http_client()
"""

import logging
from typing import Optional

import httpx

from control_tower.core.config import get_settings

logger = logging.getLogger(__name__)


# Global client instance - None until init_http_client() is called
_client: Optional[httpx.AsyncClient] = None


async def init_http_client() -> httpx.AsyncClient:
    """
    Initialize the shared collaborator HTTP client.

    The client is bound to COLLABORATOR_BASE_URL so callers pass relative
    collaborator paths. Calling this twice returns the existing client.

    Returns:
        httpx.AsyncClient: The shared client.
    """
    global _client

    if _client is None:
        settings = get_settings()
        _client = httpx.AsyncClient(
            base_url=settings.collaborator_base_url,
            timeout=settings.collaborator_timeout_seconds,
            headers={"Cache-Control": "no-store"},
        )
        logger.info("Collaborator client bound to %s", settings.collaborator_base_url)

    return _client


async def get_http_client() -> httpx.AsyncClient:
    """Return the shared client, initializing it on first use."""
    if _client is None:
        return await init_http_client()
    return _client


async def close_http_client() -> None:
    """Close the shared client. Safe to call when it was never created."""
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None
