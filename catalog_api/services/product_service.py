"""Product catalog service.

Coordinates input validation and the repository. Routes hand over the raw
JSON body and query values; this module decides what is acceptable, what gets
clamped and what is rejected, then maps missing rows to NotFoundAppError.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from catalog_api.core.errors import NotFoundAppError, ValidationAppError
from catalog_api.models import ProductORM
from catalog_api.models.product import CATEGORY_MAX_LENGTH, NAME_MAX_LENGTH
from catalog_api.repositories.products import ProductRepositoryInterface
from catalog_api.schemas.product import ProductCreate, ProductUpdate
from catalog_api.utils.validators import (
    check_int_range,
    clamp,
    clean_text,
    parse_int,
    parse_number,
)

logger = logging.getLogger(__name__)

PRICE_MIN = 0.0
PRICE_MAX = 99_999_999.99
STOCK_MIN = 0
STOCK_MAX = 1_000_000
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100


def _require_object(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationAppError(
            code="invalid_body",
            message="Request body must be a JSON object",
        )
    return payload


def _validate_stock(raw: Any, default: int | None) -> int | None:
    stock = parse_int(raw, default)
    if stock is None:
        return None
    return check_int_range(stock, field="stock", min_value=STOCK_MIN, max_value=STOCK_MAX)


def validate_product_create(payload: Any) -> ProductCreate:
    """Validate a create body.

    Args:
        payload: Decoded JSON body.

    Returns:
        ProductCreate with trimmed text and coerced numbers.

    Raises:
        ValidationAppError: Body is not an object or a field is invalid.
    """
    body = _require_object(payload)

    name = clean_text(body.get("name"), field="name", max_length=NAME_MAX_LENGTH, required=True)
    if body.get("price") is None:
        raise ValidationAppError(
            code="missing_field",
            message="price is required",
            details={"field": "price"},
        )
    price = parse_number(body.get("price"), field="price", min_value=PRICE_MIN, max_value=PRICE_MAX)
    stock = _validate_stock(body.get("stock"), default=0)
    category = clean_text(
        body.get("category"), field="category", max_length=CATEGORY_MAX_LENGTH, required=False
    )

    return ProductCreate(name=name, price=price, stock=stock, category=category)


def validate_product_update(payload: Any) -> ProductUpdate:
    """Validate an update body.

    Absent or null fields keep their stored value. An unparseable stock is
    treated as absent.
    """
    body = _require_object(payload)

    name = None
    if body.get("name") is not None:
        name = clean_text(body["name"], field="name", max_length=NAME_MAX_LENGTH, required=True)

    price = None
    if body.get("price") is not None:
        price = parse_number(body["price"], field="price", min_value=PRICE_MIN, max_value=PRICE_MAX)

    category = clean_text(
        body.get("category"), field="category", max_length=CATEGORY_MAX_LENGTH, required=False
    )

    return ProductUpdate(
        name=name,
        price=price,
        stock=_validate_stock(body.get("stock"), default=None),
        category=category,
    )


def resolve_pagination(limit: Any, offset: Any) -> tuple[int, int]:
    """Parse and clamp list pagination parameters.

    Examples:
        >>> resolve_pagination(None, None)
        (100, 0)
        >>> resolve_pagination("500", "-3")
        (100, 0)
        >>> resolve_pagination("abc", "20")
        (100, 20)
    """
    page_size = clamp(parse_int(limit, DEFAULT_PAGE_SIZE), 1, MAX_PAGE_SIZE)
    skip = clamp(parse_int(offset, 0), 0)
    return page_size, skip


def _not_found(product_id: int) -> NotFoundAppError:
    return NotFoundAppError(
        code="product_not_found",
        message="Product not found",
        details={"product_id": product_id},
    )


class ProductService:
    """Use cases for the products catalog."""

    def __init__(self, repository: ProductRepositoryInterface) -> None:
        self.repository = repository

    async def list_products(self, *, limit: Any = None, offset: Any = None) -> dict[str, Any]:
        page_size, skip = resolve_pagination(limit, offset)
        products = await self.repository.get_page(limit=page_size, offset=skip)
        total = await self.repository.count()
        return {"products": products, "total": total, "limit": page_size, "offset": skip}

    async def get_product(self, product_id: int) -> ProductORM:
        product = await self.repository.get(product_id)
        if product is None:
            raise _not_found(product_id)
        return product

    async def create_product(self, payload: Any) -> ProductORM:
        data = validate_product_create(payload)
        product = await self.repository.create(data.model_dump())
        logger.info(
            "products.created",
            extra={"product_id": product.id, "category": product.category},
        )
        return product

    async def update_product(self, product_id: int, payload: Any) -> ProductORM:
        changes = validate_product_update(payload).changes()
        product = await self.repository.update(product_id, changes)
        if product is None:
            raise _not_found(product_id)
        logger.info(
            "products.updated",
            extra={"product_id": product_id, "fields": sorted(changes)},
        )
        return product

    async def delete_product(self, product_id: int) -> ProductORM:
        product = await self.repository.delete(product_id)
        if product is None:
            raise _not_found(product_id)
        logger.info("products.deleted", extra={"product_id": product_id})
        return product
