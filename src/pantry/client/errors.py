"""Error taxonomy of the offline sync client.

``ValidationError`` and ``NotFoundError`` are terminal for the call that
raised them and reach the caller. ``TransportError`` is absorbed by the
sync coordinator and turned into a queued offline operation.
``StorageError`` is logged and the affected collection continues in memory.
"""

from src.pantry.core.storage.kv_storage import StorageError

__all__ = [
    "NotFoundError",
    "StorageError",
    "SyncError",
    "TransportError",
    "ValidationError",
]


class SyncError(Exception):
    """Base class for sync client errors."""


class ValidationError(SyncError):
    """The API (or the local pre-check) rejected a draft."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid product")


class TransportError(SyncError):
    """Network unreachable, timeout, server error or malformed response."""


class NotFoundError(SyncError):
    """The product does not exist."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")
