"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return the JSON envelope
``{"ok": false, "error": <message>, "code": <code>, "request_id": <id>}``.

Design:
- AppError subclasses → appropriate HTTP status (400, 401, 404, 429, 500)
- Request validation / routing errors → envelope with their own status
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog_api.core.errors import (
    AppError,
    AuthenticationAppError,
    NotFoundAppError,
    RateLimitAppError,
    StoreAppError,
    ValidationAppError,
)
from catalog_api.core.logging import get_request_id
from catalog_api.core.middleware import request_id_header

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (AuthenticationAppError, 401),
    (NotFoundAppError, 404),
    (RateLimitAppError, 429),
    (StoreAppError, 500),
)


def status_code_for(exc: AppError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def error_envelope(message: str, code: str, **extra: Any) -> dict[str, Any]:
    """Build the failure envelope shared by every error response."""
    content: dict[str, Any] = {
        "ok": False,
        "error": message,
        "code": code,
        "request_id": get_request_id(),
    }
    content.update(extra)
    return content


def _rate_limit_headers(request: Request, exc: RateLimitAppError) -> dict[str, str]:
    details = exc.details or {}
    headers = {"X-RateLimit-Remaining": "0"}

    app_settings = getattr(getattr(request.app.state, "settings", None), "app", None)
    if app_settings is None or app_settings.rate_limit_include_headers:
        headers["Retry-After"] = str(details.get("retry_after", 0))
        headers["X-RateLimit-Limit"] = str(details.get("limit", ""))
        headers["X-RateLimit-Reset"] = str(details.get("reset_at", ""))
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with the JSON envelope.

    Routes domain errors to appropriate HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - AuthenticationAppError → 401 Unauthorized
    - NotFoundAppError → 404 Not Found
    - RateLimitAppError → 429 Too Many Requests (+ rate limit headers)
    - StoreAppError → 500 Internal Server Error (message is the driver error)

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    headers = None
    extra: dict[str, Any] = {}
    if isinstance(exc, RateLimitAppError):
        headers = _rate_limit_headers(request, exc)
        extra["remaining"] = 0
    elif isinstance(exc, ValidationAppError) and exc.details and "field" in exc.details:
        extra["field"] = exc.details["field"]

    return JSONResponse(
        status_code=status_code,
        content=error_envelope(exc.message, exc.code, **extra),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies and bad parameters become 400 envelopes."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"

    logger.warning(
        "request_validation_failed",
        extra={
            "error_count": len(errors),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return JSONResponse(status_code=400, content=error_envelope(message, "invalid_request"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (unknown route, wrong method) keep their status."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail), "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers.
    Logs detailed information for debugging while returning generic message.
    Prevents information leakage (no stack traces to client).

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    # Runs outside the request id middleware, which skips its response
    # headers when the app raises.
    request_id = get_request_id()
    headers = {request_id_header(request): request_id} if request_id else None

    return JSONResponse(
        status_code=500,
        content=error_envelope(
            "An unexpected error occurred. Please try again later.",
            "internal_server_error",
        ),
        headers=headers,
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
