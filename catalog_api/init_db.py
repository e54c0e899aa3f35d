"""Database bootstrap script.

Creates the products table, optionally fills it with sample rows, or wipes
it. Uses the same settings (``DB_URL`` / ``POSTGRES_URL``) as the API.

Usage:
    python -m catalog_api.init_db [init|seed|drop|reset]
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import NoReturn

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from catalog_api.core.config import settings
from catalog_api.core.database import DatabaseManager
from catalog_api.core.logging import configure_logging
from catalog_api.models import ProductORM

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS: list[dict] = [
    {"name": "Wireless Mouse", "price": 25.9, "stock": 120, "category": "Electronics"},
    {"name": "Mechanical Keyboard", "price": 89.0, "stock": 45, "category": "Electronics"},
    {"name": "USB-C Hub", "price": 39.5, "stock": 80, "category": "Electronics"},
    {"name": "Desk Lamp", "price": 32.0, "stock": 60, "category": "Home"},
    {"name": "Notebook A5", "price": 4.5, "stock": 500, "category": "Stationery"},
]


async def init_db(db: DatabaseManager) -> None:
    """Create all tables defined in the ORM metadata."""
    tables = await db.create_tables()
    logger.info("db.init.completed", extra={"tables": tables})


async def seed_db(db: DatabaseManager) -> int:
    """Insert the sample products when the table is empty.

    Returns:
        Number of rows inserted (0 when the catalog already has data).
    """
    await db.create_tables()
    async with db.get_session() as session:
        existing = (await session.execute(select(func.count()).select_from(ProductORM))).scalar_one()
        if existing:
            logger.info("db.seed.skipped", extra={"existing_rows": existing})
            return 0

        session.add_all(ProductORM(**row) for row in SAMPLE_PRODUCTS)
        await session.commit()

        rows = (await session.execute(select(ProductORM).order_by(ProductORM.id))).scalars().all()
        for product in rows:
            logger.info(
                "db.seed.row",
                extra={
                    "product_id": product.id,
                    "product_name": product.name,
                    "price": product.price,
                    "stock": product.stock,
                    "category": product.category,
                },
            )

    logger.info("db.seed.completed", extra={"inserted": len(SAMPLE_PRODUCTS)})
    return len(SAMPLE_PRODUCTS)


async def drop_db(db: DatabaseManager) -> None:
    """Drop all tables. Destructive; development use only."""
    logger.warning("db.drop.started")
    await db.drop_tables()
    logger.info("db.drop.completed")


async def reset_db(db: DatabaseManager) -> None:
    """Drop and recreate all tables, then load the sample rows."""
    await drop_db(db)
    await init_db(db)
    await seed_db(db)


COMMANDS = {
    "init": init_db,
    "seed": seed_db,
    "drop": drop_db,
    "reset": reset_db,
}


async def run(command: str) -> None:
    db = DatabaseManager(settings.db)
    try:
        await COMMANDS[command](db)
    finally:
        await db.close()


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the bootstrap command named on the command line (default: init)."""
    configure_logging(settings.log)

    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "init"

    if command not in COMMANDS:
        logger.error("db.unknown_command", extra={"command": command})
        print(f"Usage: python -m catalog_api.init_db [{'|'.join(COMMANDS)}]")
        sys.exit(2)

    try:
        asyncio.run(run(command))
    except SQLAlchemyError as exc:
        logger.error(
            "db.command_failed",
            extra={"command": command, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
