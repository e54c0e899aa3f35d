"""Request correlation and access logging middleware.

Every request gets an id: the client's own (``X-Request-ID`` by default,
see ``LOG_REQUEST_ID_HEADER``) when it is usable, a fresh UUID otherwise.
The id is bound to the logging context for the lifetime of the request and
echoed in the response together with ``X-Request-Duration-ms``.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from catalog_api.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("catalog_api.access")

DEFAULT_REQUEST_ID_HEADER = "X-Request-ID"
DURATION_HEADER = "X-Request-Duration-ms"
MAX_REQUEST_ID_LENGTH = 128


def request_id_header(request: Request) -> str:
    """Header name carrying the request id for this application."""
    app_settings = getattr(request.app.state, "settings", None)
    if app_settings is None:
        return DEFAULT_REQUEST_ID_HEADER
    return app_settings.log.request_id_header


def resolve_request_id(incoming: str | None) -> str:
    """Keep a client supplied id when it is short printable ASCII.

    Anything else (missing, oversized, control characters) is replaced so
    it can neither flood nor forge log lines.

    Examples:
        >>> resolve_request_id("req-abc-123")
        'req-abc-123'
    """
    if (
        incoming
        and len(incoming) <= MAX_REQUEST_ID_LENGTH
        and incoming.isascii()
        and incoming.isprintable()
    ):
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id, time the request and write the access log line.

    When the downstream app raises, the id stays bound so the fallback 500
    handler (which runs outside this middleware) can still report it.
    """
    header_name = request_id_header(request)
    request_id = resolve_request_id(request.headers.get(header_name))
    set_request_id(request_id)

    started = time.perf_counter()
    response: Response = await call_next(request)
    duration_ms = round((time.perf_counter() - started) * 1000, 2)

    logger.info(
        "http.request",
        extra={
            "request_method": request.method,
            "request_path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{duration_ms:.2f}")
    return response
