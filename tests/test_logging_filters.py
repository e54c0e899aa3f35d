"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from catalog_api.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.handlers.clear()

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys():
    """Ensure SensitiveDataFilter redacts API key fields."""

    logger, stream = _capture("test_redaction")

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_connection_strings():
    """Database URLs carry credentials and never reach the logs."""

    logger, stream = _capture("test_db_redaction")

    logger.info(
        "db_event",
        extra={
            "db_url": "postgresql://catalog:hunter2@db/catalog",
            "postgres_url": "postgres://catalog:hunter2@db/catalog",
            "pool_size": 5,
        },
    )

    output = stream.getvalue()

    assert "hunter2" not in output
    assert "pool_size" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "request_path": "/products",
            "status_code": 200,
            "duration_ms": 150.5,
        },
    )

    payload = json.loads(stream.getvalue())

    assert payload["request_id"] == "req-123"
    assert payload["request_path"] == "/products"
    assert payload["status_code"] == 200
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-api-key": "secret-key",
                "user-agent": "pytest",
            },
        },
    )

    payload = json.loads(stream.getvalue())

    assert payload["headers"] == {"x-api-key": "[REDACTED]", "user-agent": "pytest"}


def test_request_id_from_context_is_attached():
    logger, stream = _capture("test_request_id")

    set_request_id("ctx-42")
    try:
        logger.info("with_context")
    finally:
        clear_request_id()
    logger.info("without_context")

    first, second = (json.loads(line) for line in stream.getvalue().splitlines())
    assert first["request_id"] == "ctx-42"
    assert "request_id" not in second


def test_hash_identifier_is_stable_and_short():
    digest = hash_identifier("203.0.113.7")

    assert digest == hash_identifier("203.0.113.7")
    assert digest != hash_identifier("203.0.113.8")
    assert len(digest) == 16
    assert "203.0.113.7" not in digest
