"""Repository for the products table.

Provides a collection-like interface over ``ProductORM`` and isolates
SQLAlchemy from the service layer. Every statement is built with SQLAlchemy
constructs, so values always travel as bound parameters.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.core.errors import StoreAppError
from catalog_api.models import ProductORM

logger = logging.getLogger(__name__)


class ProductRepositoryInterface(ABC):
    """Interface for product data access.

    Enables mocking and a potential swap of implementations.
    """

    @abstractmethod
    async def get_page(self, *, limit: int, offset: int) -> list[ProductORM]:
        """Products ordered by id ascending."""

    @abstractmethod
    async def count(self) -> int:
        """Total number of products."""

    @abstractmethod
    async def get(self, product_id: int) -> Optional[ProductORM]:
        """Product by id, or None."""

    @abstractmethod
    async def create(self, values: dict) -> ProductORM:
        """Insert a product and return it with generated fields populated."""

    @abstractmethod
    async def update(self, product_id: int, changes: dict) -> Optional[ProductORM]:
        """Apply ``changes`` to a product; None when it does not exist."""

    @abstractmethod
    async def delete(self, product_id: int) -> Optional[ProductORM]:
        """Remove a product and return the removed row; None when missing."""


class ProductRepository(ProductRepositoryInterface):
    """SQLAlchemy implementation of the product repository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _translate_errors(self, operation: str) -> AsyncIterator[None]:
        """Turn driver/ORM failures into StoreAppError for the HTTP layer."""
        try:
            yield
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                "products.store_error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreAppError(
                code="database_error",
                message=str(exc),
                details={"error_type": type(exc).__name__},
            ) from exc

    async def get_page(self, *, limit: int, offset: int) -> list[ProductORM]:
        async with self._translate_errors("get_page"):
            stmt = select(ProductORM).order_by(ProductORM.id.asc()).limit(limit).offset(offset)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._translate_errors("count"):
            result = await self.db.execute(select(func.count()).select_from(ProductORM))
            return int(result.scalar_one())

    async def get(self, product_id: int) -> Optional[ProductORM]:
        async with self._translate_errors("get"):
            return await self.db.get(ProductORM, product_id)

    async def create(self, values: dict) -> ProductORM:
        async with self._translate_errors("create"):
            product = ProductORM(**values)
            self.db.add(product)
            await self.db.commit()
            await self.db.refresh(product)
            return product

    async def update(self, product_id: int, changes: dict) -> Optional[ProductORM]:
        async with self._translate_errors("update"):
            product = await self.db.get(ProductORM, product_id)
            if product is None:
                return None

            for field, value in changes.items():
                setattr(product, field, value)

            await self.db.commit()
            await self.db.refresh(product)
            return product

    async def delete(self, product_id: int) -> Optional[ProductORM]:
        async with self._translate_errors("delete"):
            product = await self.db.get(ProductORM, product_id)
            if product is None:
                return None

            await self.db.delete(product)
            await self.db.commit()
            return product
