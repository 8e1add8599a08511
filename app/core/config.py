"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

REDIS_URL is mandatory. The process refuses to start without it because the
limiter cannot enforce anything without a shared counter store.
"""

from __future__ import annotations

import os
from pathlib import Path

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


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_redis_settings() -> "RedisSettings":
    """Build counter store settings from environment.

    Pydantic Settings (v2) populates required values from environment
    variables. Static type checkers treat required fields as constructor
    arguments, which is not how BaseSettings is meant to be used.
    """

    return RedisSettings()  # type: ignore[call-arg]


class RedisSettings(BaseSettings):
    """Shared counter store connection configuration."""

    url: str = Field(
        ...,
        description=(
            "Counter store address (redis://, rediss://, unix:// or memory:// "
            "for a single-process development store)"
        ),
    )
    key_prefix: str = Field(
        "rate_limit:",
        description="Namespace prepended to every window counter key",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Per-command timeout; a slower store is treated as failed",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        5.0,
        description="Timeout for establishing the TCP connection",
        gt=0,
    )
    reconnect_interval_seconds: float = Field(
        5.0,
        description="Delay between reconnect attempts after a connection error",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limit policy."""

    requests: int = Field(
        10,
        description="Maximum number of requests admitted per window (inclusive)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="Fixed window length in seconds",
        ge=1,
    )
    fail_open: bool = Field(
        True,
        description="Admit requests when the counter store is unavailable",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-* headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class ServerSettings(BaseSettings):
    """HTTP listener configuration."""

    host: str = Field("0.0.0.0", description="Interface to bind")
    port: int = Field(3001, description="Listening port", ge=1, le=65535)
    cors_allow_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins ('*' for any)",
    )

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        case_sensitive=False,
    )

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
