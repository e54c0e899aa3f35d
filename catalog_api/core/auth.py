"""Write-access authorization logic.

Mutating routes are gated by an ``AccessGuard``. A request is authorized when
it comes from the same site (a browser ``fetch`` from our own pages) or when
it carries the shared secret in the ``x-api-key`` header.

Design principles:
- Single Responsibility: Only decides whether a request may write
- Dependency Injection: The guard lives on ``app.state`` and is used via
  FastAPI Depends()
- Configuration-driven: Secret and enable flag come from env vars
- Testable: ``verify`` only looks at headers, no FastAPI machinery needed
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Mapping
from urllib.parse import urlsplit

from fastapi import Request

from catalog_api.core.config import AppSettings
from catalog_api.core.errors import AuthenticationAppError
from catalog_api.core.logging import hash_identifier

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
UNAUTHORIZED_MESSAGE = "Unauthorized: Invalid or missing API key"
TRUSTED_HOSTNAMES = frozenset({"localhost"})


def unauthorized_payload() -> dict[str, Any]:
    """Static response body for rejected write requests."""
    return {"ok": False, "error": UNAUTHORIZED_MESSAGE}


def _hostname_from_url(value: str) -> str | None:
    """Extract the hostname of an Origin/Referer header value.

    Returns None when the value does not parse as a URL with a host.
    """
    try:
        return urlsplit(value).hostname
    except ValueError:
        return None


def _host_without_port(host: str) -> str:
    return host.split(":")[0].lower()


class AccessGuard:
    """Decide whether a mutating request is authorized.

    Attributes:
        enabled: When False every request is allowed (local/dev fail-open).
    """

    def __init__(self, *, secret: str | None, enabled: bool) -> None:
        self._secret = secret or None
        self.enabled = enabled

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "AccessGuard":
        guard = cls(
            secret=app_settings.api_secret_key,
            enabled=app_settings.access_guard_enabled,
        )
        if not guard.enabled:
            logger.warning(
                "auth.guard_disabled",
                extra={"reason": "api_key_not_required"},
            )
        elif guard._secret is None:
            logger.error(
                "auth.secret_not_configured",
                extra={
                    "hint": "Set APP_API_SECRET_KEY or disable auth with APP_API_KEY_REQUIRED=false",
                },
            )
        return guard

    def _is_same_site(self, headers: Mapping[str, str]) -> bool:
        host = headers.get("host")
        if not host:
            return False

        host_domain = _host_without_port(host)
        for header_name in ("origin", "referer"):
            value = headers.get(header_name)
            if not value:
                continue
            hostname = _hostname_from_url(value)
            if hostname and (hostname == host_domain or hostname in TRUSTED_HOSTNAMES):
                return True
        return False

    def _matches_secret(self, provided_key: str | None) -> bool:
        if self._secret is None or provided_key is None:
            return False
        return hmac.compare_digest(provided_key.encode(), self._secret.encode())

    def verify(self, headers: Mapping[str, str]) -> bool:
        """Check the request headers against the guard policy.

        Evaluated in order, first match wins:
        1. Guard disabled.
        2. Origin hostname equals the Host header (port ignored) or localhost.
        3. Referer hostname, same rule.
        4. ``x-api-key`` equals the configured secret.

        Args:
            headers: Case-insensitive request headers (Starlette ``Headers``).

        Returns:
            True when the request may proceed.
        """
        if not self.enabled:
            return True

        if self._is_same_site(headers):
            return True

        return self._matches_secret(headers.get(API_KEY_HEADER))


def get_access_guard(request: Request) -> AccessGuard:
    return request.app.state.access_guard


async def require_api_key(request: Request) -> None:
    """FastAPI dependency authorizing mutating requests.

    Usage:
        @router.post("/products", dependencies=[Depends(require_api_key)])
        async def create_product(...):
            ...

    Raises:
        AuthenticationAppError: 401 Unauthorized if the guard rejects the request.
    """
    guard = get_access_guard(request)

    if guard.verify(request.headers):
        return

    provided_key = request.headers.get(API_KEY_HEADER)
    logger.warning(
        "auth.denied",
        extra={
            "api_key_present": provided_key is not None,
            "api_key_hash": hash_identifier(provided_key) if provided_key else None,
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )
    raise AuthenticationAppError(code="unauthorized", message=UNAUTHORIZED_MESSAGE)
