"""Sync coordinator: the single entry point for product operations.

Every call goes to the API first. When the API is unreachable the call
falls back to the local cache and the mutation is appended to the outbox,
which is replayed in enqueue order once connectivity returns.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import date
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.pantry.client.errors import NotFoundError, TransportError, ValidationError
from src.pantry.client.local_cache import ConflictPolicy, LocalProductCache
from src.pantry.client.models import CachedProduct, OperationKind, OutboxEntry, SyncReport
from src.pantry.client.outbox import Outbox
from src.pantry.client.remote import ProductApiClient
from src.pantry.core.storage.kv_storage import KeyValueStorage, create_kv_storage
from src.pantry.entities.service.product import (
    ExpiryFilter,
    Product,
    ProductDraft,
    ProductPatch,
    SortOrder,
)
from src.pantry.entities.service.product.entity import validation_messages
from src.pantry.entities.service.product.filters import matches_filter, sort_by_expiry
from src.pantry.runtime.config.config_data import ConfigData
from src.pantry.runtime.context import get_config

DraftInput = ProductDraft | Mapping[str, Any]
PatchInput = ProductPatch | Mapping[str, Any]


def _validate_draft(draft: DraftInput) -> ProductDraft:
    if isinstance(draft, ProductDraft):
        return draft
    try:
        return ProductDraft.model_validate(dict(draft))
    except PydanticValidationError as e:
        raise ValidationError(validation_messages(e)) from e


def _validate_patch(patch: PatchInput) -> ProductPatch:
    if isinstance(patch, ProductPatch):
        return patch
    try:
        return ProductPatch.model_validate(dict(patch))
    except PydanticValidationError as e:
        raise ValidationError(validation_messages(e)) from e


def _apply_patch(patch: ProductPatch, current: dict[str, Any]) -> ProductDraft:
    try:
        return patch.apply_to(current)
    except PydanticValidationError as e:
        raise ValidationError(validation_messages(e)) from e


class SyncCoordinator:
    """Routes product operations between the API, the cache and the outbox.

    The coordinator exclusively owns ``cache`` and ``outbox``. All of their
    read-modify-write sections run under one lock, and at most one replay
    pass runs at a time.
    """

    def __init__(
        self,
        remote: ProductApiClient,
        cache: LocalProductCache,
        outbox: Outbox,
        policy: ConflictPolicy = ConflictPolicy.PENDING_WINS,
        max_attempts: int = 5,
        online: bool = True,
    ):
        self.remote = remote
        self.cache = cache
        self.outbox = outbox
        self.policy = policy
        self.max_attempts = max_attempts
        self._online = online
        self._state_lock = asyncio.Lock()
        self._sync_lock = asyncio.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_lock.locked()

    async def aclose(self) -> None:
        await self.remote.aclose()

    async def connectivity_changed(self, online: bool) -> SyncReport | None:
        """Record a connectivity observation.

        A transition from offline to online replays the outbox once and
        returns the report; any other observation returns None.
        """
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("Connectivity restored, replaying pending operations")
            return await self.sync_pending()
        if was_online and not online:
            logger.warning("Connectivity lost, working offline")
        return None

    async def _went_offline(self, error: TransportError) -> None:
        logger.warning("API unreachable, falling back to local data: {}", error)
        await self.connectivity_changed(False)

    async def _has_pending(self, product_id: int) -> bool:
        return product_id in await self.outbox.pending_ids()

    # Reads

    async def list(
        self, filter: str | None = None, sort_order: str | None = None
    ) -> list[CachedProduct]:
        try:
            products = await self.remote.list_products(filter, sort_order)
        except TransportError as e:
            await self._went_offline(e)
            return await self._list_local(filter, sort_order)
        await self.connectivity_changed(True)

        server_products = [CachedProduct.from_product(product) for product in products]
        async with self._state_lock:
            if ExpiryFilter.parse(filter) is None:
                await self.cache.merge_with_server(
                    server_products,
                    self.policy,
                    pending_ids=await self.outbox.pending_ids(),
                    deleted_ids=await self.outbox.pending_delete_ids(),
                )
            else:
                await self._absorb(server_products)
        return server_products

    async def _absorb(self, server_products: list[CachedProduct]) -> None:
        """Upsert a partial server listing, honouring the conflict policy."""
        pending_ids = await self.outbox.pending_ids()
        for server_product in server_products:
            local = await self.cache.get(server_product.id)
            if local is not None and self.policy is ConflictPolicy.LOCAL_WINS:
                continue
            if (
                server_product.id in pending_ids
                and self.policy is not ConflictPolicy.SERVER_WINS
            ):
                continue
            await self.cache.upsert(server_product)

    async def _list_local(
        self, filter: str | None, sort_order: str | None
    ) -> list[CachedProduct]:
        products = await self.cache.get_all()
        expiry_filter = ExpiryFilter.parse(filter)
        if expiry_filter is None and sort_order is None:
            return products

        today = date.today()
        selected = [
            product
            for product in products
            if matches_filter(product.expiry_as_date(), expiry_filter, today)
        ]
        return sort_by_expiry(
            selected,
            expiry_of=lambda product: product.expiry_as_date(),
            id_of=lambda product: product.id,
            order=SortOrder.parse(sort_order),
        )

    async def get(self, product_id: int) -> CachedProduct:
        if product_id < 0:
            return await self._get_local(product_id)
        try:
            product = await self.remote.get_product(product_id)
        except NotFoundError:
            await self.connectivity_changed(True)
            raise
        except TransportError as e:
            await self._went_offline(e)
            return await self._get_local(product_id)
        await self.connectivity_changed(True)

        fetched = CachedProduct.from_product(product)
        async with self._state_lock:
            if await self._has_pending(product_id):
                return await self.cache.get(product_id) or fetched
            await self.cache.upsert(fetched)
        return fetched

    async def _get_local(self, product_id: int) -> CachedProduct:
        cached = await self.cache.get(product_id)
        if cached is None:
            raise NotFoundError(product_id)
        return cached

    # Mutations

    async def create(self, draft: DraftInput) -> CachedProduct:
        """Create a product; offline it gets a placeholder id and is queued."""
        draft = _validate_draft(draft)
        try:
            product = await self.remote.create_product(draft)
        except ValidationError:
            await self.connectivity_changed(True)
            raise
        except TransportError as e:
            await self._went_offline(e)
            async with self._state_lock:
                placeholder = await self.cache.add_offline(draft)
                await self.outbox.enqueue(
                    OperationKind.CREATE, placeholder.id, draft.model_dump()
                )
            logger.info("Created product {} offline", placeholder.id)
            return placeholder
        await self.connectivity_changed(True)

        async with self._state_lock:
            return await self.cache.add(CachedProduct.from_product(product))

    async def update(self, product_id: int, patch: PatchInput) -> CachedProduct:
        """Apply a partial update.

        The patch is overlaid on the cached record, or on the server copy when
        the record is not cached. Writes to a record that still has queued
        operations are queued behind them so the server sees them in order.
        """
        patch = _validate_patch(patch)
        cached = await self.cache.get(product_id)

        if cached is None:
            if product_id < 0:
                raise NotFoundError(product_id)
            try:
                current = (await self.remote.get_product(product_id)).model_dump()
            except NotFoundError:
                await self.connectivity_changed(True)
                raise
            except TransportError as e:
                await self._went_offline(e)
                raise NotFoundError(product_id) from e
            await self.connectivity_changed(True)
        else:
            current = cached.fields()
        draft = _apply_patch(patch, current)

        if not await self._can_send(product_id):
            return await self._update_offline(product_id, draft, cached)

        try:
            await self.remote.update_product(product_id, draft)
        except (ValidationError, NotFoundError):
            await self.connectivity_changed(True)
            raise
        except TransportError as e:
            await self._went_offline(e)
            return await self._update_offline(product_id, draft, cached)
        await self.connectivity_changed(True)

        async with self._state_lock:
            updated = await self.cache.update(product_id, draft.model_dump())
            if updated is None:
                updated = await self.cache.add(
                    CachedProduct(id=product_id, **draft.model_dump())
                )
        return updated

    async def _update_offline(
        self, product_id: int, draft: ProductDraft, cached: CachedProduct | None
    ) -> CachedProduct:
        if cached is None:
            raise NotFoundError(product_id)
        async with self._state_lock:
            updated = await self.cache.update(product_id, draft.model_dump())
            if updated is None:
                raise NotFoundError(product_id)
            await self.outbox.enqueue(
                OperationKind.UPDATE, product_id, draft.model_dump()
            )
        logger.info("Updated product {} offline", product_id)
        return updated

    async def delete(self, product_id: int) -> bool:
        """Delete a product; returns whether it was found.

        A 404 from the API means the record is already gone and counts as
        success.
        """
        if not await self._can_send(product_id):
            return await self._delete_offline(product_id)

        try:
            await self.remote.delete_product(product_id)
        except TransportError as e:
            await self._went_offline(e)
            return await self._delete_offline(product_id)
        except NotFoundError:
            logger.info("Product {} already deleted on the server", product_id)
            await self.connectivity_changed(True)
        else:
            await self.connectivity_changed(True)

        async with self._state_lock:
            await self.cache.remove(product_id)
        return True

    async def _delete_offline(self, product_id: int) -> bool:
        async with self._state_lock:
            existed = await self.cache.remove(product_id)
            await self.outbox.enqueue(OperationKind.DELETE, product_id)
        logger.info("Deleted product {} offline", product_id)
        return existed

    async def _can_send(self, product_id: int) -> bool:
        """Whether a write to ``product_id`` may go straight to the API.

        Placeholder ids never reach the API. A record with queued operations
        gets one replay pass first; if anything for it is still queued the
        write must queue too.
        """
        if product_id < 0:
            return False
        if not await self._has_pending(product_id):
            return True
        if self._online:
            await self.sync_pending()
        return not await self._has_pending(product_id)

    # Replay

    async def sync_pending(self) -> SyncReport:
        """Replay the outbox in enqueue order, one pass at a time.

        Each entry is committed on its own: a failure does not block later
        entries. A call made while a pass is running replays nothing and
        returns a report with ``skipped`` set.
        """
        if self._sync_lock.locked():
            logger.info("Sync already in progress, skipping")
            return SyncReport(skipped=True)

        async with self._sync_lock:
            report = SyncReport()
            keys = [entry.key for entry in await self.outbox.entries()]
            if keys:
                logger.info("Replaying {} pending operations", len(keys))

            # Targets with an earlier entry still queued in this pass.
            held: set[int] = set()
            for key in keys:
                entry = await self._entry(key)
                if entry is None:
                    continue
                if entry.target_id in held:
                    logger.debug("Deferring {} behind an earlier entry", entry.key)
                    continue
                if entry.kind is not OperationKind.CREATE and entry.target_id < 0:
                    logger.debug("Deferring {} until its create is confirmed", entry.key)
                    held.add(entry.target_id)
                    continue
                if not await self._replay(entry, report):
                    held.add(entry.target_id)

            report.remaining = await self.outbox.size()
            logger.info(
                "Sync finished: {} synced, {} failed, {} stalled, {} remaining",
                len(report.synced),
                len(report.failed),
                len(report.stalled),
                report.remaining,
            )
            return report

    async def _entry(self, key: str) -> OutboxEntry | None:
        for entry in await self.outbox.entries():
            if entry.key == key:
                return entry
        return None

    async def _replay(self, entry: OutboxEntry, report: SyncReport) -> bool:
        """Send one entry; False when it stays queued."""
        try:
            await self._send(entry)
        except (ValidationError, NotFoundError) as e:
            await self._dead_letter(entry, str(e), report)
            return True
        except TransportError as e:
            async with self._state_lock:
                failed = await self.outbox.record_failure(entry.key, str(e))
            logger.warning(
                "Replay of {} {} failed, keeping it queued: {}",
                entry.kind.value,
                entry.target_id,
                e,
            )
            if failed is not None and failed.attempts >= self.max_attempts:
                report.stalled.append(failed)
            return False
        report.synced.append(entry)
        return True

    async def _send(self, entry: OutboxEntry) -> None:
        if entry.kind is OperationKind.DELETE:
            try:
                await self.remote.delete_product(entry.target_id)
            except NotFoundError:
                logger.info("Product {} already deleted on the server", entry.target_id)
            async with self._state_lock:
                await self.outbox.dequeue_confirmed([entry.key])
                await self.cache.remove(entry.target_id)
            return

        draft = _validate_draft(entry.payload or {})
        if entry.kind is OperationKind.UPDATE:
            await self.remote.update_product(entry.target_id, draft)
            async with self._state_lock:
                await self.outbox.dequeue_confirmed([entry.key])
            return

        created: Product = await self.remote.create_product(draft)
        async with self._state_lock:
            await self.outbox.dequeue_confirmed([entry.key])
            if await self.cache.get(entry.target_id) is not None:
                await self.cache.rekey(entry.target_id, CachedProduct.from_product(created))
            await self.outbox.retarget(entry.target_id, created.id)
        logger.info("Product {} confirmed as {}", entry.target_id, created.id)

    async def _dead_letter(
        self, entry: OutboxEntry, error: str, report: SyncReport
    ) -> None:
        """Drop an entry that can never succeed, with everything that depends on it."""
        async with self._state_lock:
            doomed = [entry]
            if entry.kind is OperationKind.CREATE:
                doomed += [
                    other
                    for other in await self.outbox.entries()
                    if other.target_id == entry.target_id and other.key != entry.key
                ]
                await self.cache.remove(entry.target_id)
            await self.outbox.dequeue_confirmed([item.key for item in doomed])

        for item in doomed:
            logger.warning(
                "Dropping {} {}: {}", item.kind.value, item.target_id, error
            )
            report.failed.append(item.model_copy(update={"last_error": error}))


async def build_coordinator(
    config: ConfigData | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    storage: KeyValueStorage | None = None,
    online: bool = True,
) -> SyncCoordinator:
    """Compose a coordinator from configuration."""
    config = config or get_config()
    sync = config.sync
    if storage is None:
        storage = await create_kv_storage(config)
    remote = ProductApiClient(sync.api_base_url, sync.timeout_seconds, transport)
    return SyncCoordinator(
        remote,
        LocalProductCache(storage, sync.products_key),
        Outbox(storage, sync.queue_key),
        policy=ConflictPolicy(sync.conflict_policy),
        max_attempts=sync.max_attempts,
        online=online,
    )
