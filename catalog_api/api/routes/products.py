from __future__ import annotations

import json
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.core.auth import require_api_key
from catalog_api.core.database import get_db
from catalog_api.core.errors import NotFoundAppError, ValidationAppError
from catalog_api.core.rate_limit import enforce_rate_limit
from catalog_api.repositories.products import ProductRepository
from catalog_api.schemas.product import (
    Product,
    ProductDeletedResponse,
    ProductListResponse,
    ProductResponse,
)
from catalog_api.services.product_service import ProductService
from catalog_api.utils.validators import parse_int

# Upper bound of the INTEGER id column; larger ids cannot exist.
MAX_PRODUCT_ID = 2_147_483_647

_PRODUCT_BODY_DOC = {
    "requestBody": {
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "maxLength": 100},
                        "price": {"type": "number", "minimum": 0},
                        "stock": {"type": "integer", "minimum": 0, "maximum": 1_000_000},
                        "category": {"type": ["string", "null"], "maxLength": 50},
                    },
                }
            }
        }
    }
}

router = APIRouter(
    prefix="/products",
    tags=["Products"],
    dependencies=[Depends(enforce_rate_limit)],
)


async def get_product_service(db: Annotated[AsyncSession, Depends(get_db)]) -> ProductService:
    return ProductService(ProductRepository(db))


def parse_product_id(product_id: str) -> int:
    """Path parameter parser: ids must be positive integers."""
    parsed = parse_int(product_id, None)
    if parsed is None or parsed < 1:
        raise ValidationAppError(
            code="invalid_product_id",
            message="Product id must be a positive integer",
        )
    if parsed > MAX_PRODUCT_ID:
        raise NotFoundAppError(
            code="product_not_found",
            message="Product not found",
        )
    return parsed


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON; an empty body yields None.

    Declared as a dependency so it runs after the rate limit and access
    checks: a malformed body still costs quota and still needs a key.

    Raises:
        ValidationAppError: The body is not valid JSON.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
            details={"hint": str(exc)},
        ) from exc


ServiceDep = Annotated[ProductService, Depends(get_product_service)]
ProductIdDep = Annotated[int, Depends(parse_product_id)]
JsonBodyDep = Annotated[Any, Depends(read_json_body)]


@router.get("", response_model=ProductListResponse)
async def list_products(
    service: ServiceDep,
    limit: Optional[str] = Query(None, description="Page size (max 100, default 100)."),
    offset: Optional[str] = Query(None, description="Number of products to skip (default 0)."),
) -> ProductListResponse:
    """List products ordered by id.

    Pagination values that do not parse fall back to their defaults; the page
    size is clamped to 1..100 and the offset to >= 0.
    """
    page = await service.list_products(limit=limit, offset=offset)
    return ProductListResponse(
        products=[Product.model_validate(p) for p in page["products"]],
        total=page["total"],
        limit=page["limit"],
        offset=page["offset"],
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_key)],
    openapi_extra=_PRODUCT_BODY_DOC,
)
async def create_product(
    service: ServiceDep,
    payload: JsonBodyDep,
) -> ProductResponse:
    """Create a product.

    Requires ``name`` (max 100 characters) and ``price`` (>= 0). ``stock``
    defaults to 0 and ``category`` to null.

    Raises:
        ValidationAppError: 400 for missing or invalid fields.
    """
    product = await service.create_product(payload)
    return ProductResponse(product=Product.model_validate(product))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: ProductIdDep, service: ServiceDep) -> ProductResponse:
    product = await service.get_product(product_id)
    return ProductResponse(product=Product.model_validate(product))


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(require_api_key)],
    openapi_extra=_PRODUCT_BODY_DOC,
)
async def update_product(
    product_id: ProductIdDep,
    service: ServiceDep,
    payload: JsonBodyDep,
) -> ProductResponse:
    """Update the fields present in the body; absent or null fields are kept."""
    product = await service.update_product(product_id, payload)
    return ProductResponse(product=Product.model_validate(product))


@router.delete(
    "/{product_id}",
    response_model=ProductDeletedResponse,
    dependencies=[Depends(require_api_key)],
)
async def delete_product(product_id: ProductIdDep, service: ServiceDep) -> ProductDeletedResponse:
    product = await service.delete_product(product_id)
    return ProductDeletedResponse(deleted=Product.model_validate(product))
