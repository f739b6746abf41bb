"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that refuses unsafe values in production mode.

This module imports nothing from the ``attribution`` package so it can be
loaded first by every entry point.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    http_host: str = "0.0.0.0"
    http_port: int = 5000

    # Public origin embedded in rendered scripts and postback URLs
    api_base_url: str = "http://localhost:5000"

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/attribution.db")
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    stats_strategy: Literal["counter", "event_log"] = "counter"

    # -- Reporting -------------------------------------------------------------
    report_default_days: int = 30
    realtime_window_hours: int = 24

    # -- Scripts ---------------------------------------------------------------
    script_cache_seconds: int = 3600

    # -- Sentry (secret) -------------------------------------------------------
    sentry_dsn: SecretStr = SecretStr("")


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Only the structured errors list; the exception text may echo secrets.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> None:
    """Refuse to start in production with a base URL browsers cannot reach.

    In development each problem is logged as a warning and startup continues.
    """
    errors: list[str] = []

    if not settings.api_base_url:
        errors.append("API_BASE_URL is empty or not set")
    elif (urlparse(settings.api_base_url).hostname or "") in _LOCAL_HOSTS:
        errors.append(f"API_BASE_URL points at a local address: {settings.api_base_url}")

    if settings.report_default_days <= 0:
        errors.append("REPORT_DEFAULT_DAYS must be positive")
    if settings.realtime_window_hours <= 0:
        errors.append("REALTIME_WINDOW_HOURS must be positive")

    if not errors:
        logger.info("settings_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("setting_invalid", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Invalid settings for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("setting_invalid_dev", detail=err)
