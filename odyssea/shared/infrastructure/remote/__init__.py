"""Remote collection clients (document store + blob storage)."""

from odyssea.shared.infrastructure.remote.base import (
    SERVER_TIMESTAMP,
    FieldFilter,
    OrderBy,
    RemoteCollectionClient,
    RemoteDocument,
    Snapshot,
    Unsubscribe,
)
from odyssea.shared.infrastructure.remote.memory_client import InMemoryRemoteClient

__all__ = [
    "SERVER_TIMESTAMP",
    "FieldFilter",
    "OrderBy",
    "RemoteCollectionClient",
    "RemoteDocument",
    "Snapshot",
    "Unsubscribe",
    "InMemoryRemoteClient",
]
