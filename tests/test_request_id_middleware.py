from __future__ import annotations

from fastapi.testclient import TestClient

from catalog_api.core.app_factory import create_app
from catalog_api.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)
    assert len(generated) > 0

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_envelope_carries_the_request_id():
    resp = client.get("/does-not-exist", headers={"X-Request-ID": "req-404"})

    assert resp.status_code == 404
    assert resp.json()["request_id"] == "req-404"
    assert resp.headers.get("X-Request-ID") == "req-404"


def test_duration_header_is_a_millisecond_count():
    resp = client.get("/health")

    assert float(resp.headers["X-Request-Duration-ms"]) >= 0


def test_unusable_incoming_id_is_replaced():
    oversized = "x" * 500
    resp = client.get("/health", headers={"X-Request-ID": oversized})

    replaced = resp.headers.get("X-Request-ID")
    assert replaced
    assert replaced != oversized


def test_custom_request_id_header(settings_factory):
    cfg = settings_factory(create_tables=False)
    cfg.log.request_id_header = "X-Correlation-ID"
    custom_client = TestClient(create_app(app_settings=cfg))

    resp = custom_client.get("/health", headers={"X-Correlation-ID": "corr-7"})

    assert resp.headers.get("X-Correlation-ID") == "corr-7"
    assert "X-Request-ID" not in resp.headers


def test_unhandled_error_response_keeps_the_request_id(settings_factory):
    crashing_app = create_app(app_settings=settings_factory(create_tables=False))

    @crashing_app.get("/crash")
    async def crash():
        raise RuntimeError("boom")

    crash_client = TestClient(crashing_app, raise_server_exceptions=False)
    resp = crash_client.get("/crash", headers={"X-Request-ID": "req-500"})

    assert resp.status_code == 500
    assert resp.json()["request_id"] == "req-500"
    assert resp.headers.get("X-Request-ID") == "req-500"
