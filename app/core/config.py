"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
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

# Only load from file if it exists (production injects via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ early
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class QuotaSettings(BaseSettings):
    """Per-visitor call quota policy.

    The unit is a deployment choice: ``calls`` counts started sessions,
    ``seconds`` accumulates talk time. The store itself is unit-agnostic.
    """

    enabled: bool = Field(
        True,
        description="When false every caller is allowed and nothing is recorded",
    )
    unit: Literal["calls", "seconds"] = Field(
        "calls",
        description="Unit of the quota maximum (calls or seconds)",
    )
    maximum: int = Field(
        1,
        description="Maximum consumption per identity, expressed in `unit`",
        ge=1,
    )
    store_backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Persistence backend for counters and the exemption list",
    )
    key_prefix: str = Field(
        "voice-quota",
        description="Namespace for every key written to the shared store",
        min_length=1,
    )
    exemption_cache_ttl_seconds: float = Field(
        60.0,
        description="Maximum age of the in-process exemption snapshot",
        gt=0,
    )
    default_exempt_addresses: str = Field(
        "127.0.0.1",
        description="Comma-separated addresses exempt until the first snapshot loads",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection settings for the shared Redis store (Upstash or self-hosted)."""

    url: str | None = Field(
        None,
        description="Redis connection URL, e.g. rediss://default:<token>@host:6379",
    )
    timeout_seconds: float = Field(
        2.0,
        description="Upper bound for any single store operation",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class AdminSettings(BaseSettings):
    """Credentials for the administrative endpoints."""

    password: str | None = Field(
        None,
        description="Shared secret expected in the X-Admin-Password header",
    )

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Nested groups are created via default_factory so env loading works.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
