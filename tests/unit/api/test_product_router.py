"""Tests for the product HTTP API."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from src.pantry.entities.service.product.entity import EXPIRY_DATE_MESSAGE


def _create(client: TestClient, **fields) -> dict:
    payload = {"name": "Milk", "quantity": 2, "unit": "l", **fields}
    response = client.post("/products", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestProductCrud:
    """Create, read, update and delete through the API."""

    def test_create_returns_location(self, client: TestClient):
        response = client.post(
            "/products",
            json={"name": "Milk", "quantity": 2, "unit": "l", "expiry_date": "2024-12-31"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body == {
            "id": body["id"],
            "name": "Milk",
            "quantity": 2,
            "unit": "l",
            "expiry_date": "2024-12-31",
        }
        assert body["id"] > 0
        assert response.headers["location"] == f"/products/{body['id']}"

    def test_expiry_date_round_trips_literally(self, client: TestClient):
        created = _create(client, expiry_date="2024-12-31")

        fetched = client.get(f"/products/{created['id']}").json()

        assert fetched["expiry_date"] == "2024-12-31"

    def test_get_missing_product(self, client: TestClient):
        response = client.get("/products/999")

        assert response.status_code == 404
        assert response.json()["detail"] == "Product not found"

    def test_update_replaces_fields(self, client: TestClient):
        created = _create(client, expiry_date="2024-12-31")

        response = client.put(
            f"/products/{created['id']}",
            json={"name": "Milk", "quantity": 5, "unit": "l", "expiry_date": None},
        )

        assert response.status_code == 204
        assert response.content == b""
        fetched = client.get(f"/products/{created['id']}").json()
        assert fetched["quantity"] == 5
        assert fetched["expiry_date"] is None

    def test_update_missing_product(self, client: TestClient):
        response = client.put(
            "/products/999", json={"name": "Milk", "quantity": 1, "unit": "l"}
        )
        assert response.status_code == 404

    def test_delete(self, client: TestClient):
        created = _create(client)

        assert client.delete(f"/products/{created['id']}").status_code == 204
        assert client.get(f"/products/{created['id']}").status_code == 404
        assert client.delete(f"/products/{created['id']}").status_code == 404


class TestProductValidation:
    """Invalid payloads are answered with 400 and a list of messages."""

    def test_invalid_expiry_date(self, client: TestClient):
        response = client.post(
            "/products",
            json={
                "name": "Milk",
                "quantity": 2,
                "unit": "l",
                "expiry_date": "invalid-date-format",
            },
        )

        assert response.status_code == 400
        assert response.json() == {"errors": [EXPIRY_DATE_MESSAGE]}
        assert client.get("/products").json() == []

    def test_missing_fields(self, client: TestClient):
        response = client.post("/products", json={})

        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Product name is required",
            "Quantity is required",
            "Unit is required",
        ]

    def test_update_is_validated(self, client: TestClient):
        created = _create(client)

        response = client.put(
            f"/products/{created['id']}",
            json={"name": "Milk", "quantity": 0, "unit": "l"},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == ["Quantity must be greater than 0"]
        assert client.get(f"/products/{created['id']}").json()["quantity"] == 2

    def test_malformed_json(self, client: TestClient):
        response = client.post(
            "/products",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert isinstance(response.json()["errors"], list)
        assert response.json()["errors"]


class TestProductListing:
    """Filtering and ordering by expiry date."""

    @pytest.fixture
    def seeded(self, client: TestClient) -> dict[str, int]:
        today = date.today()
        dates = {
            "undated": None,
            "expired": today - timedelta(days=1),
            "soon": today + timedelta(days=3),
            "later": today + timedelta(days=400),
        }
        return {
            key: _create(
                client, name=key, expiry_date=value.isoformat() if value else None
            )["id"]
            for key, value in dates.items()
        }

    def _ids(self, client: TestClient, **params) -> list[int]:
        response = client.get("/products", params=params)
        assert response.status_code == 200
        return [product["id"] for product in response.json()]

    def test_ascending_puts_undated_last(self, client: TestClient, seeded):
        assert self._ids(client) == [
            seeded["expired"],
            seeded["soon"],
            seeded["later"],
            seeded["undated"],
        ]
        assert self._ids(client, sortOrder="asc") == self._ids(client)

    def test_descending_puts_undated_first(self, client: TestClient, seeded):
        assert self._ids(client, sortOrder="desc") == [
            seeded["undated"],
            seeded["later"],
            seeded["soon"],
            seeded["expired"],
        ]

    def test_only_undated_products(self, client: TestClient):
        first = _create(client, name="Salt")["id"]
        second = _create(client, name="Sugar")["id"]

        assert self._ids(client) == [first, second]
        assert self._ids(client, sortOrder="desc") == [first, second]

    @pytest.mark.parametrize(
        ("expiry_filter", "expected"),
        [
            ("withDate", {"expired", "soon", "later"}),
            ("WITHOUTDATE", {"undated"}),
            ("expired", {"expired"}),
            ("expiringSoon", {"soon"}),
            ("valid", {"undated", "soon", "later"}),
            ("unknown", {"undated", "expired", "soon", "later"}),
            ("", {"undated", "expired", "soon", "later"}),
        ],
    )
    def test_filters(self, client: TestClient, seeded, expiry_filter, expected):
        ids = set(self._ids(client, filter=expiry_filter))
        assert ids == {seeded[key] for key in expected}

    def test_expiring_this_month(self, client: TestClient, seeded):
        ids = set(self._ids(client, filter="expiringThisMonth"))

        assert seeded["expired"] not in ids
        assert seeded["later"] not in ids
        assert seeded["undated"] not in ids


class TestHealth:
    def test_liveness(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client: TestClient):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "healthy"

    def test_request_id_header(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"
