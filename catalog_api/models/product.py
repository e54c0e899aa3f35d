"""SQLAlchemy 2.0 ORM model for the products table."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

NAME_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 50


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ProductORM(Base):
    """A single catalog entry."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(NAME_MAX_LENGTH),
        nullable=False,
        comment="Display name of the product",
    )

    price: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False),
        nullable=False,
        comment="Unit price",
    )

    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Units on hand",
    )

    category: Mapped[Optional[str]] = mapped_column(
        String(CATEGORY_MAX_LENGTH),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ProductORM(id={self.id}, name='{self.name}', price={self.price})>"
