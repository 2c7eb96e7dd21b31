"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Admission policies themselves take plain constructor arguments; these
settings are only read by the app factory when it builds them.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


RateLimitStrategy = Literal["fixed_window", "sliding_window", "backoff"]


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable the general per-client rate limit on every route",
    )
    rate_limit_strategy: RateLimitStrategy = Field(
        "fixed_window",
        description="Policy backing the general limiter",
    )
    rate_limit_window_ms: int = Field(
        15 * 60 * 1000,
        description="General limiter window in milliseconds",
        ge=1,
    )
    rate_limit_max: int = Field(
        100,
        description="Requests allowed per client per window",
        ge=1,
    )
    rate_limit_backoff_max_attempts: int = Field(
        5,
        description="Attempts per 24 hours before backoff kicks in",
        ge=1,
    )
    rate_limit_backoff_base_delay_ms: int = Field(
        1000,
        description="Backoff base delay in milliseconds",
        ge=1,
    )
    rate_limit_sweep_interval_ms: int = Field(
        5 * 60 * 1000,
        description="Sliding-window background sweep interval in milliseconds",
        ge=1,
    )
    rate_limit_trust_forwarded: bool = Field(
        False,
        description="Key clients by the first X-Forwarded-For hop (behind a proxy)",
    )
    rate_limit_standard_headers: bool = Field(
        True,
        description="Send RateLimit-* headers",
    )
    rate_limit_legacy_headers: bool = Field(
        False,
        description="Send X-RateLimit-* headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=LogSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
