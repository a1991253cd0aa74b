"""A JSON array persisted under one key of a key-value storage."""

import json
from typing import Any

from loguru import logger

from src.pantry.core.storage.kv_storage import KeyValueStorage, StorageError


class JsonListStore:
    """Reads and writes one JSON array, degrading to memory on write failure.

    A missing, unreadable or corrupt value reads as an empty list. Once a
    write fails, the list lives in memory for the rest of the session and
    the backend is no longer touched.
    """

    def __init__(self, storage: KeyValueStorage, key: str):
        self._storage = storage
        self._key = key
        self._memory: list[dict[str, Any]] | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def degraded(self) -> bool:
        return self._memory is not None

    async def load(self) -> list[dict[str, Any]]:
        if self._memory is not None:
            return [dict(item) for item in self._memory]

        try:
            raw = await self._storage.get_item(self._key)
        except StorageError as e:
            logger.error("Error reading {} from local storage: {}", self._key, e)
            return []
        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("Discarding corrupt {} in local storage: {}", self._key, e)
            return []
        if not isinstance(data, list):
            logger.error("Discarding {}: expected a JSON array", self._key)
            return []
        return [item for item in data if isinstance(item, dict)]

    async def save(self, items: list[dict[str, Any]]) -> bool:
        """Persist ``items``; returns False when only the in-memory copy was kept."""
        if self._memory is not None:
            self._memory = [dict(item) for item in items]
            return False

        try:
            await self._storage.set_item(self._key, json.dumps(items))
            return True
        except StorageError as e:
            logger.error(
                "Error saving {} to local storage, continuing in memory: {}", self._key, e
            )
            self._memory = [dict(item) for item in items]
            return False

    async def clear(self) -> None:
        if self._memory is not None:
            self._memory = []
            return
        try:
            await self._storage.remove_item(self._key)
        except StorageError as e:
            logger.error("Error clearing {} in local storage: {}", self._key, e)
            self._memory = []
