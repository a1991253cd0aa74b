"""HTTP client for the product API."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.pantry.client.errors import NotFoundError, TransportError, ValidationError
from src.pantry.entities.service.product import Product, ProductDraft

_PRODUCT_LIST = TypeAdapter(list[Product])


class ProductApiClient:
    """Typed wrapper over the product endpoints.

    Every failure surfaces as one of three errors: ``ValidationError``
    (400), ``NotFoundError`` (404) or ``TransportError`` (anything else,
    including timeouts and bodies that do not parse).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def __aenter__(self) -> ProductApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        product_id: int | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.debug("{} {} failed: {}", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.is_success:
            return response
        if response.status_code in (400, 422):
            raise ValidationError(self._error_messages(response))
        if response.status_code == 404 and product_id is not None:
            raise NotFoundError(product_id)
        raise TransportError(f"Server error: {response.status_code}")

    @staticmethod
    def _error_messages(response: httpx.Response) -> list[str]:
        try:
            body = response.json()
        except ValueError:
            return [response.text or "Invalid product"]
        if isinstance(body, dict) and isinstance(body.get("errors"), list):
            return [str(message) for message in body["errors"]]
        if isinstance(body, dict) and "detail" in body:
            return [str(body["detail"])]
        return ["Invalid product"]

    @staticmethod
    def _parse_product(response: httpx.Response) -> Product:
        try:
            return Product.model_validate_json(response.content)
        except PydanticValidationError as e:
            raise TransportError(f"Malformed product in response: {e}") from e

    async def ping(self) -> bool:
        """Whether the API answers its liveness probe."""
        try:
            await self._request("GET", "/health")
            return True
        except (TransportError, ValidationError):
            return False

    async def list_products(
        self, filter: str | None = None, sort_order: str | None = None
    ) -> list[Product]:
        params = {}
        if filter:
            params["filter"] = filter
        if sort_order:
            params["sortOrder"] = sort_order
        response = await self._request("GET", "/products", params=params)
        try:
            return _PRODUCT_LIST.validate_json(response.content)
        except PydanticValidationError as e:
            raise TransportError(f"Malformed product list in response: {e}") from e

    async def get_product(self, product_id: int) -> Product:
        response = await self._request("GET", f"/products/{product_id}", product_id)
        return self._parse_product(response)

    async def create_product(self, draft: ProductDraft) -> Product:
        response = await self._request("POST", "/products", json=draft.model_dump())
        return self._parse_product(response)

    async def update_product(self, product_id: int, draft: ProductDraft) -> None:
        await self._request(
            "PUT", f"/products/{product_id}", product_id, json=draft.model_dump()
        )

    async def delete_product(self, product_id: int) -> None:
        await self._request("DELETE", f"/products/{product_id}", product_id)
