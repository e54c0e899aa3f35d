"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
builds the per-process collaborators: the database manager, the rate limiter
and the access guard. They are stored on ``app.state`` and reach the routes
through FastAPI dependencies, so tests can hand in their own instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from catalog_api.adapters.rate_limit.base import AbstractRateLimiter
from catalog_api.api.routes import health_router, products_router
from catalog_api.core.auth import AccessGuard
from catalog_api.core.config import Settings, settings as default_settings
from catalog_api.core.database import DatabaseManager
from catalog_api.core.exception_handlers import setup_exception_handlers
from catalog_api.core.logging import configure_logging
from catalog_api.core.middleware import request_id_middleware
from catalog_api.core.openapi import apply_openapi_customizations
from catalog_api.core.rate_limit import build_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    db: DatabaseManager = app.state.db
    if app.state.settings.db.create_tables:
        tables = await db.create_tables()
        logger.info("db.tables_ready", extra={"tables": tables})
    try:
        yield
    finally:
        await db.close()
        logger.info("db.closed")


def create_app(
    *,
    app_settings: Settings | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    access_guard: AccessGuard | None = None,
    db: DatabaseManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded ones.
        rate_limiter: Limiter instance; built from settings when omitted.
        access_guard: Write guard; built from settings when omitted.
        db: Database manager; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Product Catalog API",
        description=(
            "CRUD API for a products catalog. Writes require the x-api-key header "
            "unless they come from the same site; every route is rate limited per "
            "client IP."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.db = db or DatabaseManager(cfg.db)
    app.state.rate_limiter = rate_limiter or build_rate_limiter(cfg.app)
    app.state.access_guard = access_guard or AccessGuard.from_settings(cfg.app)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(products_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app
