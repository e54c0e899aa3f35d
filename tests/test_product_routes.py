"""Tests for the products API routes.

Every test gets its own app and SQLite database (see conftest.py), so rows
and rate limit counters never leak between tests.

Authentication:
- ``client`` has no secret configured, so writes are open (fail-open default)
- ``secured_client`` requires the x-api-key header for POST/PUT/DELETE
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from catalog_api.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from catalog_api.core.auth import UNAUTHORIZED_MESSAGE


def _create(client: TestClient, **overrides) -> dict:
    payload = {"name": "Wireless Mouse", "price": 25.9, "stock": 10, "category": "Electronics"}
    payload.update(overrides)
    response = client.post("/products", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["product"]


class TestCreateProduct:
    def test_valid_product_returns_201_and_id(self, client: TestClient) -> None:
        response = client.post("/products", json={"name": "Desk Lamp", "price": 32})

        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert isinstance(data["product"]["id"], int)
        assert data["product"]["name"] == "Desk Lamp"
        assert data["product"]["price"] == 32
        assert data["product"]["stock"] == 0
        assert data["product"]["category"] is None
        assert data["product"]["created_at"] is not None

    def test_name_of_101_characters_returns_400(self, client: TestClient) -> None:
        response = client.post("/products", json={"name": "x" * 101, "price": 10})

        assert response.status_code == 400
        data = response.json()
        assert data["ok"] is False
        assert "100" in data["error"]
        assert data["field"] == "name"

    def test_negative_price_returns_400(self, client: TestClient) -> None:
        response = client.post("/products", json={"name": "Pen", "price": -1})

        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_missing_body_returns_400(self, client: TestClient) -> None:
        response = client.post("/products")

        assert response.status_code == 400
        assert response.json()["error"] == "Request body must be a JSON object"

    def test_array_body_returns_400(self, client: TestClient) -> None:
        response = client.post("/products", json=[{"name": "Pen", "price": 1}])

        assert response.status_code == 400

    def test_malformed_json_returns_400_envelope(self, client: TestClient) -> None:
        response = client.post(
            "/products",
            content=b'{"name": "Pen", ',
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["ok"] is False
        assert response.json()["code"] == "invalid_json"


class TestListProducts:
    def test_empty_catalog(self, client: TestClient) -> None:
        response = client.get("/products")

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "products": [],
            "total": 0,
            "limit": 100,
            "offset": 0,
        }

    def test_products_are_ordered_by_id(self, client: TestClient) -> None:
        first = _create(client, name="B")
        second = _create(client, name="A")

        products = client.get("/products").json()["products"]

        assert [p["id"] for p in products] == [first["id"], second["id"]]

    def test_pagination(self, client: TestClient) -> None:
        created = [_create(client, name=f"Item {i}") for i in range(3)]

        data = client.get("/products", params={"limit": 2, "offset": 1}).json()

        assert data["total"] == 3
        assert data["limit"] == 2
        assert data["offset"] == 1
        assert [p["id"] for p in data["products"]] == [created[1]["id"], created[2]["id"]]

    def test_limit_is_capped_and_bad_values_fall_back(self, client: TestClient) -> None:
        data = client.get("/products", params={"limit": 500, "offset": "abc"}).json()

        assert data["limit"] == 100
        assert data["offset"] == 0


class TestReadUpdateDelete:
    def test_get_existing_product(self, client: TestClient) -> None:
        product = _create(client)

        response = client.get(f"/products/{product['id']}")

        assert response.status_code == 200
        assert response.json()["product"] == product

    def test_get_missing_product_returns_404(self, client: TestClient) -> None:
        response = client.get("/products/9999")

        assert response.status_code == 404
        assert response.json()["ok"] is False
        assert response.json()["error"] == "Product not found"

    def test_non_numeric_id_returns_400(self, client: TestClient) -> None:
        response = client.get("/products/abc")

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_product_id"

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_id_beyond_column_range_returns_404(self, client: TestClient, method: str) -> None:
        kwargs = {"json": {"price": 1}} if method == "put" else {}

        response = client.request(method.upper(), "/products/99999999999999999999", **kwargs)

        assert response.status_code == 404
        assert response.json()["ok"] is False
        assert response.json()["code"] == "product_not_found"

    def test_update_changes_only_given_fields(self, client: TestClient) -> None:
        product = _create(client, name="Old name", price=10, stock=3)

        response = client.put(f"/products/{product['id']}", json={"price": 12.5, "name": None})

        assert response.status_code == 200
        updated = response.json()["product"]
        assert updated["price"] == 12.5
        assert updated["name"] == "Old name"
        assert updated["stock"] == 3
        assert updated["category"] == product["category"]

    def test_update_validates_fields(self, client: TestClient) -> None:
        product = _create(client)

        response = client.put(f"/products/{product['id']}", json={"price": -1})

        assert response.status_code == 400

    def test_update_missing_product_returns_404(self, client: TestClient) -> None:
        response = client.put("/products/9999", json={"price": 1})

        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_delete_returns_deleted_row(self, client: TestClient) -> None:
        product = _create(client)

        response = client.delete(f"/products/{product['id']}")

        assert response.status_code == 200
        assert response.json()["deleted"]["id"] == product["id"]
        assert client.get(f"/products/{product['id']}").status_code == 404

    def test_delete_missing_product_returns_404(self, client: TestClient) -> None:
        response = client.delete("/products/9999")

        assert response.status_code == 404
        assert response.json()["ok"] is False


class TestWriteAuthorization:
    def test_write_without_key_returns_401(self, secured_client: TestClient) -> None:
        response = secured_client.post("/products", json={"name": "Pen", "price": 1})

        assert response.status_code == 401
        assert response.json()["ok"] is False
        assert response.json()["error"] == UNAUTHORIZED_MESSAGE

    def test_write_with_wrong_key_returns_401(self, secured_client: TestClient) -> None:
        response = secured_client.delete("/products/1", headers={"x-api-key": "nope"})

        assert response.status_code == 401

    def test_write_with_key_succeeds(
        self, secured_client: TestClient, api_key_headers: dict[str, str]
    ) -> None:
        response = secured_client.post(
            "/products", json={"name": "Pen", "price": 1}, headers=api_key_headers
        )

        assert response.status_code == 201

    def test_same_origin_write_needs_no_key(self, secured_client: TestClient) -> None:
        response = secured_client.post(
            "/products",
            json={"name": "Pen", "price": 1},
            headers={"origin": "http://testserver"},
        )

        assert response.status_code == 201

    def test_foreign_origin_write_needs_key(self, secured_client: TestClient) -> None:
        response = secured_client.post(
            "/products",
            json={"name": "Pen", "price": 1},
            headers={"origin": "https://evil.example"},
        )

        assert response.status_code == 401

    def test_auth_runs_before_lookup(self, secured_client: TestClient) -> None:
        assert secured_client.put("/products/9999", json={"price": 1}).status_code == 401

    def test_malformed_body_without_key_returns_401(self, secured_client: TestClient) -> None:
        response = secured_client.post(
            "/products", content=b"{bad", headers={"content-type": "application/json"}
        )

        assert response.status_code == 401

    def test_malformed_body_with_key_returns_400(
        self, secured_client: TestClient, api_key_headers: dict[str, str]
    ) -> None:
        response = secured_client.put(
            "/products/1",
            content=b"{bad",
            headers={"content-type": "application/json", **api_key_headers},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_json"

    def test_reads_are_open(self, secured_client: TestClient) -> None:
        assert secured_client.get("/products").status_code == 200


class TestRateLimiting:
    def test_allowed_responses_report_remaining_quota(self, client: TestClient) -> None:
        first = client.get("/products")
        second = client.get("/products")

        assert first.headers["X-RateLimit-Limit"] == "30"
        assert first.headers["X-RateLimit-Remaining"] == "29"
        assert second.headers["X-RateLimit-Remaining"] == "28"

    def test_thirty_first_request_returns_429(self, client: TestClient) -> None:
        for _ in range(30):
            assert client.get("/products").status_code == 200

        blocked = client.get("/products")

        assert blocked.status_code == 429
        assert blocked.json()["ok"] is False
        assert blocked.json()["remaining"] == 0
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in blocked.headers

    def test_writes_count_against_the_same_budget(self, client_factory) -> None:
        client = client_factory(rate_limit_requests=1)

        assert client.post("/products", json={"name": "Pen", "price": 1}).status_code == 201
        assert client.post("/products", json={"name": "Pen", "price": 1}).status_code == 429

    def test_malformed_body_still_counts_against_the_budget(self, client_factory) -> None:
        client = client_factory(rate_limit_requests=1, api_secret_key="s")
        assert client.get("/products").status_code == 200

        response = client.post(
            "/products", content=b"{bad", headers={"content-type": "application/json"}
        )

        assert response.status_code == 429

    def test_clients_are_keyed_by_forwarded_ip(self, client_factory) -> None:
        client = client_factory(rate_limit_requests=1)

        a = {"x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        b = {"x-real-ip": "198.51.100.2"}

        assert client.get("/products", headers=a).status_code == 200
        assert client.get("/products", headers=a).status_code == 429
        assert client.get("/products", headers={"x-forwarded-for": "203.0.113.7"}).status_code == 429
        assert client.get("/products", headers=b).status_code == 200
        assert client.get("/products").status_code == 200

    def test_window_expiry_with_injected_clock(self, client_factory) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)
        client = client_factory(rate_limiter=limiter)

        assert client.get("/products").status_code == 200
        assert client.get("/products").status_code == 200
        assert client.get("/products").status_code == 429

        clock.return_value = 1061.0
        response = client.get("/products")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_disabled_rate_limit(self, client_factory) -> None:
        client = client_factory(rate_limit_enabled=False, rate_limit_requests=1)

        assert client.get("/products").status_code == 200
        response = client.get("/products")
        assert response.status_code == 200
        assert "X-RateLimit-Remaining" not in response.headers


class TestStoreFailures:
    def test_database_error_returns_500_with_cause(self, client_factory) -> None:
        client = client_factory(create_tables=False)

        response = client.get("/products")

        assert response.status_code == 500
        data = response.json()
        assert data["ok"] is False
        assert data["code"] == "database_error"
        assert "products" in data["error"]
        assert "Traceback" not in data["error"]


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "status": "ok"}

    def test_database_health(self, client: TestClient) -> None:
        response = client.get("/health/db")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "result": {"ok": 1}}

    def test_health_is_not_rate_limited(self, client_factory) -> None:
        client = client_factory(rate_limit_requests=1)

        for _ in range(3):
            assert client.get("/health").status_code == 200

    def test_unknown_route_uses_envelope(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["ok"] is False
