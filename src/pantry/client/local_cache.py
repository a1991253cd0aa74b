"""Durable local copy of the product collection."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.pantry.client.models import CachedProduct, utc_now_iso
from src.pantry.client.store import JsonListStore
from src.pantry.core.storage.kv_storage import KeyValueStorage
from src.pantry.entities.service.product import ProductDraft

DEFAULT_PRODUCTS_KEY = "products_offline"


class ConflictPolicy(str, Enum):
    """Which copy survives when the server list and the cache share an id."""

    LOCAL_WINS = "local_wins"
    SERVER_WINS = "server_wins"
    PENDING_WINS = "pending_wins"


class LocalProductCache:
    """Product records keyed by id, persisted as one JSON array.

    Order is insertion order. Every mutator is a read-modify-write over
    ``get_all``/``save``; serializing concurrent callers is the owner's job.
    """

    def __init__(self, storage: KeyValueStorage, key: str = DEFAULT_PRODUCTS_KEY):
        self._store = JsonListStore(storage, key)

    @property
    def degraded(self) -> bool:
        return self._store.degraded

    async def get_all(self) -> list[CachedProduct]:
        products = []
        for raw in await self._store.load():
            try:
                products.append(CachedProduct.model_validate(raw))
            except PydanticValidationError:
                logger.warning("Skipping malformed cached product: {}", raw)
        return products

    async def save(self, products: Iterable[CachedProduct]) -> bool:
        return await self._store.save([product.to_storage() for product in products])

    async def clear(self) -> None:
        await self._store.clear()

    async def get(self, product_id: int) -> CachedProduct | None:
        for product in await self.get_all():
            if product.id == product_id:
                return product
        return None

    @staticmethod
    def next_placeholder_id(products: Iterable[CachedProduct]) -> int:
        """One below the negated largest absolute id; -1 for an empty cache."""
        largest = max((abs(product.id) for product in products), default=0)
        return -(largest + 1)

    async def add_offline(self, draft: ProductDraft) -> CachedProduct:
        """Store a record that exists only locally, under a placeholder id."""
        products = await self.get_all()
        product = CachedProduct(
            id=self.next_placeholder_id(products),
            name=draft.name,
            quantity=draft.quantity,
            unit=draft.unit,
            expiry_date=draft.expiry_date,
            offline=True,
            created_at=utc_now_iso(),
        )
        products.append(product)
        await self.save(products)
        return product

    async def add(self, product: CachedProduct) -> CachedProduct:
        """Append a server-confirmed record."""
        return await self.upsert(product)

    async def upsert(self, product: CachedProduct) -> CachedProduct:
        """Replace the record with the same id in place, or append it."""
        products = await self.get_all()
        for index, existing in enumerate(products):
            if existing.id == product.id:
                products[index] = product
                break
        else:
            products.append(product)
        await self.save(products)
        return product

    async def update(self, product_id: int, changes: dict[str, Any]) -> CachedProduct | None:
        """Overlay ``changes`` on the cached record; None if the id is absent."""
        products = await self.get_all()
        for index, existing in enumerate(products):
            if existing.id == product_id:
                updated = existing.model_copy(
                    update={**changes, "id": product_id, "updated_at": utc_now_iso()}
                )
                products[index] = updated
                await self.save(products)
                return updated
        return None

    async def remove(self, product_id: int) -> bool:
        products = await self.get_all()
        remaining = [product for product in products if product.id != product_id]
        if len(remaining) == len(products):
            return False
        await self.save(remaining)
        return True

    async def rekey(self, old_id: int, confirmed: CachedProduct) -> CachedProduct:
        """Swap a placeholder record for its server-confirmed version.

        The record keeps its position. Any other record already holding the
        confirmed id is dropped so ids stay unique.
        """
        products = [
            product for product in await self.get_all() if product.id != confirmed.id
        ]
        for index, existing in enumerate(products):
            if existing.id == old_id:
                products[index] = confirmed.model_copy(
                    update={"created_at": existing.created_at, "updated_at": utc_now_iso()}
                )
                break
        else:
            products.append(confirmed)
        await self.save(products)
        return confirmed

    async def merge_with_server(
        self,
        server_products: Iterable[CachedProduct],
        policy: ConflictPolicy = ConflictPolicy.LOCAL_WINS,
        pending_ids: Collection[int] = (),
        deleted_ids: Collection[int] = (),
    ) -> list[CachedProduct]:
        """Reconcile the cache with a full server listing.

        For each server record, ``policy`` picks between it and a synced
        local record with the same id. ``pending_ids`` are the ids with
        queued outbox entries (consulted by ``PENDING_WINS``), and records
        in ``deleted_ids`` have a queued delete and are not brought back.
        Unsynced offline records are always kept.
        """
        local = await self.get_all()
        synced_local = {product.id: product for product in local if not product.offline}

        merged: list[CachedProduct] = []
        server_ids: set[int] = set()
        for server_product in server_products:
            server_ids.add(server_product.id)
            if server_product.id in deleted_ids:
                continue
            local_match = synced_local.get(server_product.id)
            if local_match is None or policy is ConflictPolicy.SERVER_WINS:
                merged.append(server_product)
            elif policy is ConflictPolicy.LOCAL_WINS:
                merged.append(local_match)
            elif server_product.id in pending_ids:
                merged.append(local_match)
            else:
                merged.append(server_product)

        merged.extend(
            product
            for product in local
            if (product.offline or product.id < 0) and product.id not in server_ids
        )

        await self.save(merged)
        return merged
