"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.
- One limiter per process: built by the app factory and kept on
  ``app.state`` instead of a module global.

Rate limiting strategy:
- Fixed-window limit per client identifier.
- The identifier is the first X-Forwarded-For entry, then X-Real-IP, then
  the literal ``"unknown"``.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from catalog_api.adapters.rate_limit.base import AbstractRateLimiter
from catalog_api.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from catalog_api.core.config import AppSettings
from catalog_api.core.errors import RateLimitAppError
from catalog_api.core.logging import hash_identifier

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def build_rate_limiter(app_settings: AppSettings) -> AbstractRateLimiter:
    """Create the process-wide limiter from configuration."""
    return InMemoryFixedWindowRateLimiter(
        limit=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window_seconds,
        max_tracked_keys=app_settings.rate_limit_max_tracked_keys,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter attached to the running application."""
    return request.app.state.rate_limiter


def resolve_client_identifier(request: Request) -> str:
    """Pick the client identifier used as the limiter key.

    Args:
        request: FastAPI request.

    Returns:
        str: Source IP reported by the proxy headers, or ``"unknown"``.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, counts one request against the client's budget and reports
    the remaining quota in the response headers. Over budget, raises
    RateLimitAppError which the exception handlers turn into HTTP 429.

    Args:
        request: FastAPI request.
        response: Sub-response whose headers are merged into the final one.

    Raises:
        RateLimitAppError: When the client exhausted its budget.
    """

    app_settings: AppSettings = request.app.state.settings.app
    if not app_settings.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    identifier = resolve_client_identifier(request)
    key_hash = hash_identifier(identifier)

    result = limiter.consume(f"ip:{identifier}")
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        if app_settings.rate_limit_include_headers:
            response.headers["X-RateLimit-Limit"] = str(result.limit)
            response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": app_settings.rate_limit_window_seconds,
            "retry_after_s": retry_after,
        },
    )

    raise RateLimitAppError(
        code="rate_limited",
        message="Too many requests. Try again later.",
        details={
            "limit": result.limit,
            "remaining": 0,
            "reset_at": result.reset_at,
            "retry_after": retry_after,
        },
    )
