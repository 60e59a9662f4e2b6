"""
Settings and environment management module for the Control Tower overview service.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for local development
- Singleton pattern via @lru_cache for efficient access
- Collaborator endpoint location, timeouts and rate-limit pacing
- Monthly business targets used by the forecast and action center

Environment Variables:
- COLLABORATOR_BASE_URL: Origin serving the /api/dashboard/* collaborator endpoints
- COLLABORATOR_TIMEOUT_SECONDS: Per-call timeout for collaborator requests
- SEQUENTIAL_WAVE_DELAY_MS: Fixed pause between rate-limit-sensitive calls
- SEARCH_JOIN_MAX_ATTEMPTS: Attempts for the search-performance join (1 retry)
- REPORT_TIMEZONE: IANA zone used for day/week/month bucket boundaries
- TARGET_LEADS_MONTHLY / TARGET_APPOINTMENTS_MONTHLY / TARGET_REVENUE_MONTHLY

Usage:
    from control_tower.core.config import get_settings

    settings = get_settings()
    base_url = settings.collaborator_base_url
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The class inherits from pydantic-settings BaseSettings which provides:
    - Automatic loading from environment variables (case-insensitive)
    - Support for .env file loading
    - Type validation and coercion
    - Default values for every setting (nothing is required to boot)

    Attributes:
        collaborator_base_url: Origin of the upstream dashboard collaborators.
        collaborator_timeout_seconds: Timeout applied to each outbound call.
        sequential_wave_delay_ms: Delay between consecutive second-wave calls.
        search_join_max_attempts: Total attempts for the search-performance join.
        report_timezone: Timezone for local-midnight bucket boundaries.
        target_leads_monthly: Monthly lead target for the forecast.
        target_appointments_monthly: Monthly appointment target for the forecast.
        target_revenue_monthly: Monthly revenue target for the forecast.
        cors_origins: Origins allowed to call the API from a browser.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Collaborator Endpoints
    # =========================================================================

    # Origin hosting /api/dashboard/calls, /contacts, /conversations, ...
    collaborator_base_url: str = 'http://localhost:3000'

    collaborator_timeout_seconds: float = Field(default=30.0, gt=0)

    # =========================================================================
    # Rate-limit pacing
    # The CRM collaborators (conversations, transactions, appointments) throttle
    # aggressively; they are called one at a time with this pause in between.
    # =========================================================================

    sequential_wave_delay_ms: int = Field(default=500, ge=0)

    # First attempt plus exactly one retry
    search_join_max_attempts: int = Field(default=2, ge=1, le=2)

    # =========================================================================
    # Reporting
    # =========================================================================

    report_timezone: str = 'UTC'

    target_leads_monthly: int = Field(default=300, ge=1)
    target_appointments_monthly: int = Field(default=80, ge=1)
    target_revenue_monthly: float = Field(default=25000.0, ge=1)

    cors_origins: List[str] = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Raises:
        pydantic.ValidationError: If an environment variable has an invalid value
            (for example a negative SEQUENTIAL_WAVE_DELAY_MS).

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
