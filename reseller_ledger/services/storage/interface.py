"""
Abstract Storage Interfaces

DESIGN DECISION: The ledger consumes two external collaborators through
abstract interfaces:
1. A device-local key-value store holding full collection snapshots
2. A remote realtime document backend gated by authentication

This allows us to:
- Swap the file store or the cloud database without touching the ledger
- Use in-memory doubles for testing
- Keep vendor exceptions out of business logic (adapters translate them
  into the ledger error taxonomy at this boundary)
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from reseller_ledger.config.remote import RemoteBackendConfig
from reseller_ledger.models.records import Principal


Unsubscribe = Callable[[], None]
DocumentSnapshotCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]
PrincipalCallback = Callable[[Optional[Principal]], None]


class Collection(str, Enum):
    """Collections the ledger keeps, named as in the cloud database."""
    TRANSACTIONS = "transactions"
    EXPENSES = "expenses"


def noop_unsubscribe() -> None:
    """Handle returned by subscriptions that never call back."""
    return None


class KeyValueStore(ABC):
    """
    Device-local durable storage.

    Values are opaque strings; the ledger stores serialized snapshots.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass


class RemoteBackend(ABC):
    """
    Remote realtime document backend.

    Implementations raise only ledger errors:
    - PermissionDeniedError for access-control rejections
    - RecordNotFoundError when updating a missing document
    - TransportError for anything else the transport reports
    """

    @abstractmethod
    def initialize(self, config: RemoteBackendConfig) -> bool:
        """
        Initialize the backend connection.

        Returns:
            True if the backend is ready for use
        """
        pass

    @abstractmethod
    async def authenticate(self) -> Principal:
        """
        Establish a principal through the identity provider.

        Fires the principal-change listeners on success.
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Drop the current principal and notify listeners with None."""
        pass

    @abstractmethod
    def on_principal_change(self, callback: PrincipalCallback) -> Unsubscribe:
        """Register a login/logout listener."""
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: Collection,
        owner_id: str,
        on_snapshot: DocumentSnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """
        Open a live query over one owner's documents.

        `on_snapshot` receives every matching document, newest date
        first, each as a dict with its `id` merged in.
        """
        pass

    @abstractmethod
    async def add(self, collection: Collection, data: dict[str, Any]) -> str:
        """
        Create a document with a backend-allocated id.

        Returns:
            The new document id
        """
        pass

    @abstractmethod
    async def update(self, collection: Collection, document_id: str, data: dict[str, Any]) -> None:
        """
        Replace the fields of an existing document.

        Raises:
            RecordNotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, document_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        pass

    @abstractmethod
    async def batch_write(self, writes: list[tuple[Collection, dict[str, Any]]]) -> list[str]:
        """
        Create many documents in one atomic commit.

        Either every document is created or none is.

        Returns:
            The new document ids, in input order
        """
        pass

    @abstractmethod
    def shutdown(self) -> None:
        """Release the connection. The backend is unusable afterwards."""
        pass
