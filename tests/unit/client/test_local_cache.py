"""Tests for the local product cache."""

import json

import pytest

from src.pantry.client import CachedProduct, ConflictPolicy, LocalProductCache
from src.pantry.core.storage.kv_storage import InMemoryKeyValueStorage
from src.pantry.entities.service.product import ProductDraft
from tests.fixtures.client import FailingStorage


def _product(product_id: int, quantity: int = 1, **fields) -> CachedProduct:
    return CachedProduct(id=product_id, name=f"p{product_id}", quantity=quantity, unit="g", **fields)


class TestPlaceholderIds:
    def test_empty_cache_starts_at_minus_one(self):
        assert LocalProductCache.next_placeholder_id([]) == -1

    def test_distinct_from_every_existing_id(self):
        existing = [_product(3), _product(-1), _product(7)]

        placeholder = LocalProductCache.next_placeholder_id(existing)

        assert placeholder == -8
        assert placeholder not in {p.id for p in existing}

    @pytest.mark.asyncio
    async def test_add_offline_assigns_fresh_placeholders(self):
        cache = LocalProductCache(InMemoryKeyValueStorage())
        draft = ProductDraft(name="Milk", quantity=2, unit="l")

        first = await cache.add_offline(draft)
        second = await cache.add_offline(draft)

        assert (first.id, second.id) == (-1, -2)
        assert first.offline and first.is_placeholder
        assert first.created_at is not None


class TestLocalProductCache:
    """Test single-record mutators and persistence."""

    def setup_method(self):
        self.storage = InMemoryKeyValueStorage()
        self.cache = LocalProductCache(self.storage)

    @pytest.mark.asyncio
    async def test_records_persist_with_local_annotations(self):
        await self.cache.add_offline(ProductDraft(name="Milk", quantity=2, unit="l"))

        raw = json.loads(await self.storage.get_item("products_offline"))

        assert raw[0]["id"] == -1
        assert raw[0]["_offline"] is True
        assert raw[0]["_createdAt"]
        assert raw[0]["expiry_date"] is None

        reopened = LocalProductCache(self.storage)
        assert (await reopened.get(-1)).name == "Milk"

    @pytest.mark.asyncio
    async def test_upsert_keeps_position(self):
        await self.cache.save([_product(1), _product(2), _product(3)])

        await self.cache.upsert(_product(2, quantity=9))

        products = await self.cache.get_all()
        assert [p.id for p in products] == [1, 2, 3]
        assert products[1].quantity == 9

    @pytest.mark.asyncio
    async def test_update_overlays_changes(self):
        await self.cache.save([_product(1, quantity=2)])

        updated = await self.cache.update(1, {"quantity": 5})

        assert updated.quantity == 5
        assert updated.name == "p1"
        assert updated.updated_at is not None
        assert (await self.cache.get(1)).quantity == 5

    @pytest.mark.asyncio
    async def test_update_missing_record(self):
        assert await self.cache.update(42, {"quantity": 5}) is None
        assert await self.cache.get_all() == []

    @pytest.mark.asyncio
    async def test_remove(self):
        await self.cache.save([_product(1), _product(2)])

        assert await self.cache.remove(1) is True
        assert await self.cache.remove(1) is False
        assert [p.id for p in await self.cache.get_all()] == [2]

    @pytest.mark.asyncio
    async def test_rekey_replaces_placeholder_in_place(self):
        placeholder = await self.cache.add_offline(ProductDraft(name="Milk", quantity=2, unit="l"))
        await self.cache.add(_product(5))

        await self.cache.rekey(placeholder.id, CachedProduct(id=12, name="Milk", quantity=2, unit="l"))

        products = await self.cache.get_all()
        assert [p.id for p in products] == [12, 5]
        assert products[0].offline is False
        assert products[0].created_at == placeholder.created_at

    @pytest.mark.asyncio
    async def test_rekey_keeps_ids_unique(self):
        placeholder = await self.cache.add_offline(ProductDraft(name="Milk", quantity=2, unit="l"))
        await self.cache.add(_product(12))

        await self.cache.rekey(placeholder.id, CachedProduct(id=12, name="Milk", quantity=2, unit="l"))

        assert [p.id for p in await self.cache.get_all()] == [12]

    @pytest.mark.asyncio
    async def test_corrupt_storage_reads_as_empty(self):
        await self.storage.set_item("products_offline", "{not json")
        assert await self.cache.get_all() == []

        await self.storage.set_item("products_offline", '{"id": 1}')
        assert await self.cache.get_all() == []

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self):
        await self.storage.set_item(
            "products_offline",
            json.dumps([{"id": 1, "name": "Salt", "quantity": 1, "unit": "kg"}, {"id": "x"}]),
        )
        assert [p.id for p in await self.cache.get_all()] == [1]

    @pytest.mark.asyncio
    async def test_clear(self):
        await self.cache.save([_product(1)])
        await self.cache.clear()
        assert await self.storage.get_item("products_offline") is None


class TestStorageDegradation:
    @pytest.mark.asyncio
    async def test_write_failure_continues_in_memory(self):
        cache = LocalProductCache(FailingStorage())

        placeholder = await cache.add_offline(ProductDraft(name="Milk", quantity=2, unit="l"))

        assert cache.degraded
        assert (await cache.get(placeholder.id)).to_storage() == placeholder.to_storage()
        assert await cache.save([]) is False
        assert await cache.get_all() == []


class TestMergeWithServer:
    """Reconciling the cache with a full server listing."""

    def setup_method(self):
        self.cache = LocalProductCache(InMemoryKeyValueStorage())

    async def _seed(self):
        await self.cache.save(
            [
                _product(1, quantity=5),
                _product(-1, quantity=3, offline=True),
                _product(9, quantity=1),
            ]
        )

    @staticmethod
    def _server():
        return [_product(1, quantity=2), _product(2, quantity=7)]

    @pytest.mark.asyncio
    async def test_local_wins(self):
        await self._seed()

        merged = await self.cache.merge_with_server(self._server(), ConflictPolicy.LOCAL_WINS)

        assert [(p.id, p.quantity) for p in merged] == [(1, 5), (2, 7), (-1, 3)]
        assert [p.to_storage() for p in await self.cache.get_all()] == [
            p.to_storage() for p in merged
        ]

    @pytest.mark.asyncio
    async def test_server_wins(self):
        await self._seed()

        merged = await self.cache.merge_with_server(self._server(), ConflictPolicy.SERVER_WINS)

        assert [(p.id, p.quantity) for p in merged] == [(1, 2), (2, 7), (-1, 3)]

    @pytest.mark.asyncio
    async def test_pending_wins_keeps_only_pending_edits(self):
        await self._seed()

        with_pending = await self.cache.merge_with_server(
            self._server(), ConflictPolicy.PENDING_WINS, pending_ids={1}
        )
        assert (with_pending[0].id, with_pending[0].quantity) == (1, 5)

        await self._seed()
        without_pending = await self.cache.merge_with_server(
            self._server(), ConflictPolicy.PENDING_WINS
        )
        assert (without_pending[0].id, without_pending[0].quantity) == (1, 2)

    @pytest.mark.asyncio
    async def test_synced_records_missing_on_server_are_dropped(self):
        await self._seed()

        merged = await self.cache.merge_with_server(self._server(), ConflictPolicy.PENDING_WINS)

        assert 9 not in {p.id for p in merged}

    @pytest.mark.asyncio
    async def test_pending_deletes_are_not_resurrected(self):
        await self._seed()

        merged = await self.cache.merge_with_server(
            self._server(), ConflictPolicy.SERVER_WINS, deleted_ids={2}
        )

        assert [p.id for p in merged] == [1, -1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", list(ConflictPolicy))
    async def test_offline_records_are_never_dropped(self, policy):
        await self._seed()

        merged = await self.cache.merge_with_server([], policy)

        assert [p.id for p in merged] == [-1]
        assert merged[0].offline
