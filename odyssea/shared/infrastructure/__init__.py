"""
Shared Infrastructure Module
=============================

Technical adapters for external systems (document store, blob storage,
identity provider, local cache). The Firestore adapter is imported on
demand from ``odyssea.shared.infrastructure.remote.firestore_client``.
"""

# Remote
from odyssea.shared.infrastructure.remote import (
    FieldFilter,
    OrderBy,
    RemoteCollectionClient,
    RemoteDocument,
    InMemoryRemoteClient,
)

# Identity
from odyssea.shared.infrastructure.identity import (
    IdentityProvider,
    InMemoryIdentityProvider,
    IdentityToolkitProvider,
)

# Persistence
from odyssea.shared.infrastructure.persistence import DuckDBKeyValueStorage

__all__ = [
    # Remote
    "FieldFilter",
    "OrderBy",
    "RemoteCollectionClient",
    "RemoteDocument",
    "InMemoryRemoteClient",
    # Identity
    "IdentityProvider",
    "InMemoryIdentityProvider",
    "IdentityToolkitProvider",
    # Persistence
    "DuckDBKeyValueStorage",
]
