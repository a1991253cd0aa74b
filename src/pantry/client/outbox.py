"""Durable FIFO of mutations not yet confirmed by the API."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timedelta
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.pantry.client.models import OperationKind, OutboxEntry, utc_now_iso
from src.pantry.client.store import JsonListStore
from src.pantry.core.storage.kv_storage import KeyValueStorage

DEFAULT_QUEUE_KEY = "sync_queue"


class Outbox:
    """Pending create/update/delete operations in enqueue order.

    Entries are never deduplicated. Each is identified by its
    ``enqueued_at`` timestamp, which is strictly increasing within one
    outbox even when the clock does not move between two enqueues.
    """

    def __init__(self, storage: KeyValueStorage, key: str = DEFAULT_QUEUE_KEY):
        self._store = JsonListStore(storage, key)

    @property
    def degraded(self) -> bool:
        return self._store.degraded

    async def entries(self) -> list[OutboxEntry]:
        entries = []
        for raw in await self._store.load():
            try:
                entries.append(OutboxEntry.model_validate(raw))
            except PydanticValidationError:
                logger.warning("Skipping malformed outbox entry: {}", raw)
        return entries

    async def _save(self, entries: list[OutboxEntry]) -> None:
        await self._store.save([entry.model_dump(mode="json") for entry in entries])

    async def size(self) -> int:
        return len(await self.entries())

    async def pending_ids(self) -> set[int]:
        return {entry.target_id for entry in await self.entries()}

    async def pending_delete_ids(self) -> set[int]:
        return {
            entry.target_id
            for entry in await self.entries()
            if entry.kind is OperationKind.DELETE
        }

    @staticmethod
    def _next_timestamp(entries: list[OutboxEntry]) -> str:
        stamp = utc_now_iso()
        if entries and stamp <= entries[-1].enqueued_at:
            last = datetime.fromisoformat(entries[-1].enqueued_at)
            stamp = (last + timedelta(microseconds=1)).isoformat(timespec="microseconds")
        return stamp

    async def enqueue(
        self,
        kind: OperationKind,
        target_id: int,
        payload: dict[str, Any] | None = None,
    ) -> OutboxEntry:
        entries = await self.entries()
        entry = OutboxEntry(
            kind=kind,
            target_id=target_id,
            payload=payload,
            enqueued_at=self._next_timestamp(entries),
        )
        entries.append(entry)
        await self._save(entries)
        logger.info("Queued {} for product {}", kind.value, target_id)
        return entry

    async def dequeue_confirmed(self, keys: Collection[str]) -> int:
        """Remove the entries whose ``enqueued_at`` is in ``keys``."""
        if not keys:
            return 0
        entries = await self.entries()
        remaining = [entry for entry in entries if entry.key not in keys]
        removed = len(entries) - len(remaining)
        if removed:
            await self._save(remaining)
        return removed

    async def record_failure(self, key: str, error: str) -> OutboxEntry | None:
        """Count a failed replay attempt against the entry with ``key``."""
        entries = await self.entries()
        for index, entry in enumerate(entries):
            if entry.key == key:
                entries[index] = entry.model_copy(
                    update={"attempts": entry.attempts + 1, "last_error": error}
                )
                await self._save(entries)
                return entries[index]
        return None

    async def retarget(self, old_id: int, new_id: int) -> int:
        """Point every entry aimed at ``old_id`` at ``new_id`` instead."""
        entries = await self.entries()
        changed = 0
        for index, entry in enumerate(entries):
            if entry.target_id == old_id:
                entries[index] = entry.model_copy(update={"target_id": new_id})
                changed += 1
        if changed:
            await self._save(entries)
        return changed

    async def drain(self) -> None:
        """Empty the queue unconditionally."""
        await self._store.clear()
