"""Database connection and session management using SQLAlchemy with async support."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from catalog_api.core.config import DatabaseSettings
from catalog_api.models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Database connection and session manager.

    One instance per process. The engine connects lazily, so constructing the
    manager never touches the network.
    """

    def __init__(self, db_settings: DatabaseSettings) -> None:
        self.database_url = db_settings.async_url
        self.engine: AsyncEngine = create_async_engine(
            self.database_url,
            echo=db_settings.echo,
            future=True,
        )
        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session with proper cleanup."""
        async with self.async_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> list[str]:
        """Create every table known to the ORM metadata if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return list(Base.metadata.tables.keys())

    async def drop_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def ping(self) -> dict:
        """Run a trivial query to prove the database answers."""
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1 AS ok"))
            return dict(result.mappings().one())

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()


def get_db_manager(request: Request) -> DatabaseManager:
    return request.app.state.db


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session for the request."""
    async with get_db_manager(request).get_session() as session:
        yield session
