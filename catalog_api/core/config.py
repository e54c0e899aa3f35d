"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_db_settings() -> "DatabaseSettings":
    """Build database settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return DatabaseSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    See _build_db_settings() for rationale about the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def to_async_database_url(url: str) -> str:
    """Rewrite a plain PostgreSQL URL so it uses the asyncpg driver.

    Hosted Postgres providers hand out ``postgres://`` or ``postgresql://``
    connection strings; SQLAlchemy's async engine needs an explicit driver.

    Examples:
        >>> to_async_database_url("postgres://u:p@db/catalog")
        'postgresql+asyncpg://u:p@db/catalog'
        >>> to_async_database_url("sqlite+aiosqlite:///./catalog.db")
        'sqlite+aiosqlite:///./catalog.db'
    """
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    url: str = Field(
        "sqlite+aiosqlite:///./catalog.db",
        description="Database connection string (postgres:// URLs are upgraded to asyncpg)",
        validation_alias=AliasChoices("DB_URL", "POSTGRES_URL", "DATABASE_URL"),
    )
    echo: bool = Field(
        False,
        description="Log every SQL statement issued by the engine",
    )
    create_tables: bool = Field(
        False,
        description="Create the products table on application startup",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def async_url(self) -> str:
        return to_async_database_url(self.url)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool | None = Field(
        None,
        description=(
            "Whether mutating routes require authorization. When unset, the guard "
            "is enabled only if a secret key is configured."
        ),
    )
    api_secret_key: str | None = Field(
        None,
        description="Shared secret expected in the x-api-key header for writes",
        validation_alias=AliasChoices("APP_API_SECRET_KEY", "API_SECRET_KEY"),
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    rate_limit_requests: int = Field(
        30,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_max_tracked_keys: int = Field(
        10_000,
        description="Tracked client count above which expired windows are swept",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def access_guard_enabled(self) -> bool:
        """Resolve the explicit auth flag, falling back to secret presence."""
        if self.api_key_required is None:
            return bool(self.api_secret_key)
        return self.api_key_required


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    db: DatabaseSettings = Field(default_factory=_build_db_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
