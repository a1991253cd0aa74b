"""Tests for error translation in the product API client."""

import json

import httpx
import pytest

from src.pantry.client import NotFoundError, ProductApiClient, TransportError, ValidationError
from src.pantry.entities.service.product import ProductDraft

MILK = {"id": 1, "name": "Milk", "quantity": 2, "unit": "l", "expiry_date": "2024-12-31"}
DRAFT = ProductDraft(name="Milk", quantity=2, unit="l", expiry_date="2024-12-31")


def _client(handler) -> ProductApiClient:
    return ProductApiClient("http://api.test/", transport=httpx.MockTransport(handler))


class TestProductApiClient:
    """Responses and failures map onto the client error taxonomy."""

    @pytest.mark.asyncio
    async def test_list_sends_filter_and_sort(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[MILK])

        async with _client(handler) as client:
            products = await client.list_products("expired", "desc")

        assert products[0].expiry_date == "2024-12-31"
        assert seen[0].url.path == "/products"
        assert seen[0].url.params["filter"] == "expired"
        assert seen[0].url.params["sortOrder"] == "desc"

    @pytest.mark.asyncio
    async def test_create_posts_wire_fields(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert json.loads(request.content) == DRAFT.model_dump()
            return httpx.Response(201, json=MILK)

        async with _client(handler) as client:
            created = await client.create_product(DRAFT)

        assert created.id == 1

    @pytest.mark.asyncio
    async def test_update_and_delete_accept_no_content(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/products/1"
            return httpx.Response(204)

        async with _client(handler) as client:
            assert await client.update_product(1, DRAFT) is None
            assert await client.delete_product(1) is None

    @pytest.mark.asyncio
    async def test_400_is_a_validation_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"errors": ["Quantity must be greater than 0"]})

        async with _client(handler) as client:
            with pytest.raises(ValidationError) as exc_info:
                await client.create_product(DRAFT)

        assert exc_info.value.errors == ["Quantity must be greater than 0"]

    @pytest.mark.asyncio
    async def test_404_is_not_found(self):
        async with _client(lambda request: httpx.Response(404, json={"detail": "x"})) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.get_product(7)

        assert exc_info.value.product_id == 7

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503])
    async def test_server_errors_are_transport_errors(self, status):
        async with _client(lambda request: httpx.Response(status)) as client:
            with pytest.raises(TransportError):
                await client.list_products()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")]
    )
    async def test_network_failures_are_transport_errors(self, error):
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        async with _client(handler) as client:
            with pytest.raises(TransportError):
                await client.delete_product(1)

    @pytest.mark.asyncio
    async def test_malformed_body_is_a_transport_error(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(TransportError):
                await client.list_products()
            with pytest.raises(TransportError):
                await client.get_product(1)

    @pytest.mark.asyncio
    async def test_ping(self):
        async with _client(lambda request: httpx.Response(200, json={"status": "healthy"})) as client:
            assert await client.ping() is True

        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        async with _client(unreachable) as client:
            assert await client.ping() is False

    def test_base_url(self):
        client = ProductApiClient("http://api.test/")
        assert client.base_url.startswith("http://api.test")
