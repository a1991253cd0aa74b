"""Offline-first client for the product API.

The sync coordinator routes every operation through the remote client and
falls back to the local cache and the outbox while the API is unreachable.
"""

from .connectivity import ConnectivityWatcher
from .coordinator import SyncCoordinator, build_coordinator
from .errors import NotFoundError, StorageError, SyncError, TransportError, ValidationError
from .local_cache import ConflictPolicy, LocalProductCache
from .models import CachedProduct, OperationKind, OutboxEntry, SyncReport
from .outbox import Outbox
from .remote import ProductApiClient

__all__ = [
    "CachedProduct",
    "ConflictPolicy",
    "ConnectivityWatcher",
    "LocalProductCache",
    "NotFoundError",
    "OperationKind",
    "Outbox",
    "OutboxEntry",
    "ProductApiClient",
    "StorageError",
    "SyncCoordinator",
    "SyncError",
    "SyncReport",
    "TransportError",
    "ValidationError",
    "build_coordinator",
]
