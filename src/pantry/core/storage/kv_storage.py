"""Key-value storage interface and implementations.

Durable string-to-string storage for the offline client, the server-side
counterpart of the browser's local storage. The file backend survives
process restarts; Redis can share state between processes; the in-memory
backend is the fallback when neither is usable.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from src.pantry.runtime.config.config_data import ConfigData


class StorageError(Exception):
    """The local key-value storage could not be read or written."""


class KeyValueStorage(ABC):
    """Abstract interface for key-value storage backends."""

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent.

        Raises:
            StorageError: If the backend cannot be read
        """

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageError: If the backend cannot be written
        """

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the last operation against the backend succeeded."""


class InMemoryKeyValueStorage(KeyValueStorage):
    """Process-local storage; contents vanish with the process."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def is_available(self) -> bool:
        """In-memory storage is always available."""
        return True


class FileKeyValueStorage(KeyValueStorage):
    """All keys in one JSON object file, replaced atomically on every write."""

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._available = True
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_for_update(self) -> dict[str, str]:
        try:
            return self._read_all()
        except (OSError, ValueError) as e:
            logger.warning("Discarding unreadable storage file {}: {}", self._path, e)
            return {}

    async def get_item(self, key: str) -> str | None:
        try:
            data = await asyncio.to_thread(self._read_all)
            self._available = True
        except (OSError, ValueError) as e:
            self._available = False
            raise StorageError(f"File storage read failed: {e}") from e
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_for_update)
            data[key] = value
            try:
                await asyncio.to_thread(self._write_all, data)
                self._available = True
            except OSError as e:
                self._available = False
                raise StorageError(f"File storage write failed: {e}") from e

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_for_update)
            if data.pop(key, None) is None:
                return
            try:
                await asyncio.to_thread(self._write_all, data)
                self._available = True
            except OSError as e:
                self._available = False
                raise StorageError(f"File storage write failed: {e}") from e

    def is_available(self) -> bool:
        return self._available


class RedisKeyValueStorage(KeyValueStorage):
    """Redis-based storage; keys are namespaced with ``prefix``."""

    def __init__(self, redis_client, prefix: str = "pantry:"):
        self._redis = redis_client
        self._prefix = prefix
        self._available = True

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get_item(self, key: str) -> str | None:
        try:
            data = await self._redis.get(self._key(key))
            self._available = True
        except Exception as e:
            self._available = False
            raise StorageError(f"Redis get failed: {e}") from e

        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return data

    async def set_item(self, key: str, value: str) -> None:
        try:
            await self._redis.set(self._key(key), value)
            self._available = True
        except Exception as e:
            self._available = False
            raise StorageError(f"Redis set failed: {e}") from e

    async def remove_item(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
            self._available = True
        except Exception as e:
            self._available = False
            raise StorageError(f"Redis delete failed: {e}") from e

    def is_available(self) -> bool:
        return self._available

    async def ping(self) -> bool:
        """Test Redis connection health."""
        try:
            await self._redis.ping()
            self._available = True
            return True
        except Exception:
            self._available = False
            return False


async def _connect_redis(config: ConfigData) -> KeyValueStorage:
    """Attempt to create Redis storage, fall back to in-memory."""
    try:
        import redis.asyncio as redis

        if not config.redis.enabled or not config.redis.url:
            raise RuntimeError("Redis not configured")

        redis_client = redis.from_url(
            config.redis.connection_string,
            encoding="utf-8",
            decode_responses=config.redis.decode_responses,
            socket_connect_timeout=2,
            socket_timeout=2,
        )

        redis_storage = RedisKeyValueStorage(redis_client)
        if await redis_storage.ping():
            logger.info("Local storage: Redis connected")
            return redis_storage
        raise RuntimeError("Redis ping failed")

    except Exception as e:
        logger.warning("Redis unavailable ({}), using in-memory local storage", e)
        return InMemoryKeyValueStorage()


async def create_kv_storage(config: ConfigData) -> KeyValueStorage:
    """Build the backend selected by ``config.sync.storage_backend``."""
    backend = config.sync.storage_backend
    if backend == "redis":
        return await _connect_redis(config)
    if backend == "file":
        logger.debug("Local storage: file {}", config.sync.storage_path)
        return FileKeyValueStorage(config.sync.storage_path)
    return InMemoryKeyValueStorage()
