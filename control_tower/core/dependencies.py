"""
FastAPI dependency injection module for the Control Tower overview service.

This module provides reusable FastAPI dependencies for configuration access,
the shared collaborator HTTP client and the per-request source gateway, so that
endpoint handlers never build infrastructure themselves.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_http_client_dependency: Returns the shared httpx.AsyncClient
- get_source_gateway: Builds a SourceGateway for one request
- SettingsDep / HttpClientDep / SourceGatewayDep: Annotated type aliases

Testing:
    Every dependency can be swapped with FastAPI's override mechanism:

    app.dependency_overrides[get_source_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_settings_dependency] = lambda: Settings(...)

Usage Examples:
    @router.get("/overview")
    async def overview(
        gateway: SourceGatewayDep,
        settings: SettingsDep,
    ) -> OverviewResponse:
        ...
"""

from typing import Annotated

import httpx
from fastapi import Depends

from control_tower.core.config import Settings, get_settings
from control_tower.core.http_client import get_http_client
from control_tower.services.source_gateway import SourceGateway


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    This is a thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings

    Returns:
        Settings: The cached Settings instance.
    """
    return get_settings()


# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# HTTP Client Dependency
# =============================================================================

async def get_http_client_dependency() -> httpx.AsyncClient:
    """
    Return the process-wide collaborator client.

    The client is created in the application lifespan; if a request arrives
    first (for example under a bare TestClient) it is created lazily.
    """
    return await get_http_client()


HttpClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client_dependency)]


# =============================================================================
# Source Gateway Dependency
# =============================================================================

def get_source_gateway(client: HttpClientDep, settings: SettingsDep) -> SourceGateway:
    """
    Build the source gateway for one request.

    The gateway only wraps the shared client with the configured pacing and
    retry budget; it keeps no state between requests.

    Returns:
        SourceGateway: Gateway bound to the collaborator base URL.
    """
    return SourceGateway(
        client,
        sequential_delay_ms=settings.sequential_wave_delay_ms,
        search_join_max_attempts=settings.search_join_max_attempts,
    )


SourceGatewayDep = Annotated[SourceGateway, Depends(get_source_gateway)]
