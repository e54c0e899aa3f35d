"""Structured logging for the catalog service.

Every log line is a JSON object (or a plain line when ``LOG_FORMAT=plain``)
carrying the request id of the HTTP request that produced it. Values under
sensitive keys (API keys, secrets, connection strings) are replaced with
``[REDACTED]`` at any nesting depth before a handler sees them.

Client addresses and API keys are never logged as-is: callers pass them
through :func:`hash_identifier` first.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from catalog_api.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "api_secret_key",
        "app_api_secret_key",
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
        "db_url",
        "database_url",
        "postgres_url",
    }
)

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(
    LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Request id of the HTTP request being served, if any."""
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: str) -> str:
    """Short SHA-256 digest used in logs in place of IPs and keys."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


class Redactor:
    """Replace values stored under sensitive keys, recursively.

    Key matching is case-insensitive. Mappings are walked key by key; lists
    and tuples are walked element by element.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        keys = SENSITIVE_KEYS_DEFAULT if sensitive_keys is None else sensitive_keys
        self.sensitive_keys = frozenset(k.lower() for k in keys)

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: REDACTED if self.is_sensitive(str(k)) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """The ``extra`` fields of a record, redacted."""
        return {
            key: REDACTED if self.is_sensitive(key) else self.redact(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Copy the context request id onto records that lack one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive ``extra`` fields in place, whatever the formatter."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Fixed fields come first (``timestamp``, ``level``, ``logger``,
    ``message``, ``request_id``), followed by the redacted ``extra`` fields
    and, for ``logger.exception`` calls, the formatted traceback.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(self.redactor.extras(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/catalog.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def _build_formatter(log_settings: LogSettings) -> logging.Formatter:
    if log_settings.format.lower() == "plain":
        return logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
            defaults={"request_id": "-"},
        )
    return JsonFormatter()


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    Safe to call repeatedly (each app built by the factory calls it); the
    previous root handlers are replaced, not stacked.

    Args:
        log_settings: Logging settings; the environment-loaded ones when omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(_build_formatter(cfg))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # uvicorn installs its own handlers; keep its records out of ours
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
