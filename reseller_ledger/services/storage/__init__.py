"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
a device-local snapshot store and a Firestore-backed cloud store.
"""

from reseller_ledger.services.storage.interface import (
    Collection,
    ErrorCallback,
    KeyValueStore,
    RemoteBackend,
    Unsubscribe,
    noop_unsubscribe,
)
from reseller_ledger.services.storage.local import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    LocalCollectionAdapter,
)
from reseller_ledger.services.storage.remote import RemoteCollectionAdapter
from reseller_ledger.services.storage.seed import (
    default_expenses,
    default_transactions,
)

__all__ = [
    # Interfaces
    "Collection",
    "ErrorCallback",
    "KeyValueStore",
    "RemoteBackend",
    "Unsubscribe",
    "noop_unsubscribe",
    # Local
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "LocalCollectionAdapter",
    # Remote
    "RemoteCollectionAdapter",
    # Seed data
    "default_expenses",
    "default_transactions",
]
