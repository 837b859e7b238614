"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, SecretStr
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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat required fields as constructor arguments,
    which is not how BaseSettings is meant to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable the login and submission guards",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-* headers when throttling",
    )

    login_guard_max_attempts: int = Field(
        5,
        description="Failed login attempts allowed per window before blocking",
        ge=1,
    )
    login_guard_window_seconds: int = Field(
        3600,
        description="Window in seconds over which login attempts are counted",
        ge=1,
    )
    login_guard_block_seconds: int = Field(
        900,
        description="How long a client stays blocked from logging in",
        ge=1,
    )

    submission_guard_max_attempts: int = Field(
        5,
        description="Form submissions allowed per window before blocking",
        ge=1,
    )
    submission_guard_window_seconds: int = Field(
        3600,
        description="Window in seconds over which submissions are counted",
        ge=1,
    )
    submission_guard_block_seconds: int = Field(
        3600,
        description="How long a client stays blocked from submitting",
        ge=1,
    )

    rate_limit_shards: int = Field(
        16,
        description="Number of independently locked partitions per limiter",
        ge=1,
    )
    rate_limit_max_entries: int | None = Field(
        100_000,
        description="Maximum tracked keys per limiter (unset for unlimited)",
        ge=1,
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="Seconds between background sweeps of stale entries (0 disables)",
        ge=0,
    )

    admin_email: str = Field(
        "admin@example.org",
        description="Email of the single admin account",
    )
    admin_password: SecretStr | None = Field(
        None,
        description="Password of the admin account; login always fails when unset",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
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


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
