"""Key-value storage backends for the offline client."""

from .kv_storage import KeyValueStorage, StorageError, create_kv_storage

__all__ = ["KeyValueStorage", "StorageError", "create_kv_storage"]
