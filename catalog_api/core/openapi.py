"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- API Key security scheme (``x-api-key``) attached to write operations only

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from catalog_api.core.auth import API_KEY_HEADER, unauthorized_payload

_WRITE_METHODS = {"post", "put", "patch", "delete"}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``x-api-key``)
    - Marks write operations (POST/PUT/PATCH/DELETE) as requiring the key;
      reads stay open
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": API_KEY_HEADER,
                "description": (
                    "Shared secret for write operations. Same-site browser requests "
                    "are accepted without it."
                ),
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Products",
                "description": "Catalog CRUD endpoints.",
            },
            {
                "name": "Health",
                "description": "Liveness and database checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for methods in schema.get("paths", {}).values():
            for method, operation in methods.items():
                if method in _WRITE_METHODS and isinstance(operation, dict):
                    operation["security"] = [{"ApiKeyAuth": []}]
                    operation.setdefault("responses", {}).setdefault(
                        "401",
                        {
                            "description": "Missing or invalid API key",
                            "content": {"application/json": {"example": unauthorized_payload()}},
                        },
                    )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
