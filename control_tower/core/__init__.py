"""
Core infrastructure package for the Control Tower overview service.

Provides:
- Configuration management via pydantic-settings
- The shared collaborator HTTP client (httpx)
- The error taxonomy

This module re-exports key components from submodules for convenient importing:

    from control_tower.core import get_settings, InvalidRangeError

FastAPI dependencies live in control_tower.core.dependencies and are imported
from there directly: they depend on the services layer, which itself imports
from this package.
"""

# =============================================================================
# Re-exports from control_tower.core.config
# =============================================================================
from control_tower.core.config import Settings, get_settings

# =============================================================================
# Re-exports from control_tower.core.errors
# =============================================================================
from control_tower.core.errors import CollaboratorError, ControlTowerError, InvalidRangeError

# =============================================================================
# Re-exports from control_tower.core.http_client
# =============================================================================
from control_tower.core.http_client import close_http_client, get_http_client, init_http_client

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Errors (from errors.py)
    'ControlTowerError',
    'InvalidRangeError',
    'CollaboratorError',
    # Collaborator client lifecycle (from http_client.py)
    'init_http_client',
    'get_http_client',
    'close_http_client',
]
