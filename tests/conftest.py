"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment before any settings are imported so a developer's
local .env or exported secrets never leak into the test run.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["TESTING"] = "true"

for _var in (
    "API_SECRET_KEY",
    "APP_API_SECRET_KEY",
    "APP_API_KEY_REQUIRED",
    "POSTGRES_URL",
    "DATABASE_URL",
):
    os.environ.pop(_var, None)

os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from pathlib import Path  # noqa: E402
from typing import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from catalog_api.core.app_factory import create_app  # noqa: E402
from catalog_api.core.config import (  # noqa: E402
    AppSettings,
    DatabaseSettings,
    LogSettings,
    Settings,
)

TEST_SECRET = "test-secret-key-123"


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """On-disk SQLite database unique to each test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture
def settings_factory(db_url: str) -> Callable[..., Settings]:
    """Build isolated Settings; keyword arguments override AppSettings fields."""

    def _build(*, create_tables: bool = True, **app_overrides) -> Settings:
        return Settings(
            db=DatabaseSettings(url=db_url, create_tables=create_tables),
            app=AppSettings(**app_overrides),
            log=LogSettings(level="WARNING"),
        )

    return _build


@pytest.fixture
def client_factory(settings_factory) -> Iterator[Callable[..., TestClient]]:
    """Create started TestClients (lifespan included) for custom app configs."""
    clients: list[TestClient] = []

    def _build(*, rate_limiter=None, create_tables: bool = True, **app_overrides) -> TestClient:
        app = create_app(
            app_settings=settings_factory(create_tables=create_tables, **app_overrides),
            rate_limiter=rate_limiter,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _build

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_factory) -> TestClient:
    """Client with default settings: no secret configured, so writes are open."""
    return client_factory()


@pytest.fixture
def secured_client(client_factory) -> TestClient:
    """Client whose write routes require TEST_SECRET."""
    return client_factory(api_secret_key=TEST_SECRET)


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"x-api-key": TEST_SECRET}
