from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from catalog_api.core.database import DatabaseManager, get_db_manager
from catalog_api.core.errors import StoreAppError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: ``{"ok": true, "status": "ok"}``.
    """

    return {"ok": True, "status": "ok"}


@router.get("/health/db")
async def database_health_check(db: DatabaseManager = Depends(get_db_manager)) -> dict:
    """Round-trip a ``SELECT 1`` to the configured database.

    Raises:
        StoreAppError: 500 with the driver's error message when unreachable.
    """

    try:
        row = await db.ping()
    except (SQLAlchemyError, OSError) as exc:
        logger.error(
            "health.db_unreachable",
            extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        raise StoreAppError(
            code="database_unavailable",
            message=str(exc),
            details={"error_type": type(exc).__name__},
        ) from exc

    return {"ok": True, "result": row}
