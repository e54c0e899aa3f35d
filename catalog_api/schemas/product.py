"""Pydantic schemas for product requests and responses."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductCreate(BaseModel):
    """Validated fields for a new product."""

    name: str
    price: float
    stock: int = 0
    category: Optional[str] = None


class ProductUpdate(BaseModel):
    """Validated partial update; ``None`` means "keep the stored value"."""

    name: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[int] = None
    category: Optional[str] = None

    def changes(self) -> dict:
        """Return only the fields that should be written."""
        return self.model_dump(exclude_none=True)


class Product(BaseModel):
    """A product as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Database identifier.")
    name: str = Field(..., description="Display name (max 100 characters).")
    price: float = Field(..., description="Unit price.")
    stock: int = Field(..., description="Units on hand.")
    category: Optional[str] = Field(default=None, description="Optional category label.")
    created_at: Optional[datetime] = Field(
        default=None, description="Creation timestamp assigned by the database."
    )


class ProductResponse(BaseModel):
    ok: bool = True
    product: Product


class ProductListResponse(BaseModel):
    ok: bool = True
    products: List[Product]
    total: int = Field(..., description="Number of products in the catalog.")
    limit: int = Field(..., description="Page size actually applied (max 100).")
    offset: int = Field(..., description="Number of products skipped.")


class ProductDeletedResponse(BaseModel):
    ok: bool = True
    deleted: Product
