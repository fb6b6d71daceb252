"""
Entity Store

One add/update/delete/subscribe contract over a collection, whichever
backend realizes it.

DESIGN DECISION: The active backend is never a per-call argument. Every
operation receives the SessionContext and routes on its mode:
- LOCAL  (disconnected): device snapshot, synchronous write-through
- REMOTE (connected):    cloud collection, owner-scoped and gated on sign-in

Switching modes is a session transition, never inferred mid-operation.
"""

from typing import Callable, Generic, Optional

from reseller_ledger.audit import AuditLogger
from reseller_ledger.models.records import DraftRecord, RecordT
from reseller_ledger.services.storage import (
    Collection,
    ErrorCallback,
    LocalCollectionAdapter,
    RemoteCollectionAdapter,
    Unsubscribe,
)
from reseller_ledger.session import BackendMode, SessionContext


class EntityStore(Generic[RecordT]):
    """
    Backend-agnostic store for one collection.

    Writes return nothing; their effect arrives through subscribers as a
    full replacement snapshot. Failures are raised, so a blocked write is
    always distinguishable from a successful one.
    """

    def __init__(
        self,
        local: LocalCollectionAdapter[RecordT],
        remote: RemoteCollectionAdapter[RecordT],
        audit_logger: Optional[AuditLogger] = None,
    ):
        if local.collection != remote.collection:
            raise ValueError("Local and remote adapters must back the same collection")
        self._local = local
        self._remote = remote
        self._audit_logger = audit_logger

    @property
    def collection(self) -> Collection:
        return self._local.collection

    @property
    def local(self) -> LocalCollectionAdapter[RecordT]:
        return self._local

    async def add(self, context: SessionContext, draft: DraftRecord) -> None:
        """
        Create a record from a draft.

        Local: random id, persisted immediately.
        Remote: backend id, `ownerId` stamped with the principal.

        Raises:
            UnauthorizedError: Remote mode with nobody signed in
            PermissionDeniedError: Backend rules rejected the write
        """
        if context.mode == BackendMode.REMOTE:
            await self._remote.add(context, draft)
            return

        record = self._local.add(draft)
        if self._audit_logger:
            self._audit_logger.log_record_added(self.collection.value, record.id, "local")

    async def update(self, context: SessionContext, record: RecordT) -> None:
        """
        Replace a full record, keeping its id and ownership.

        Raises:
            RecordNotFoundError: The id is not in the active backend
            UnauthorizedError: Remote mode with nobody signed in
        """
        if context.mode == BackendMode.REMOTE:
            await self._remote.update(context, record)
            return

        self._local.update(record)
        if self._audit_logger:
            self._audit_logger.log_record_updated(self.collection.value, record.id, "local")

    async def delete(self, context: SessionContext, record_id: str) -> None:
        """Permanently delete a record. An absent id is a no-op."""
        if context.mode == BackendMode.REMOTE:
            await self._remote.delete(context, record_id)
            return

        if self._local.delete(record_id) and self._audit_logger:
            self._audit_logger.log_record_deleted(self.collection.value, record_id, "local")

    def subscribe(
        self,
        context: SessionContext,
        callback: Callable[[list[RecordT]], None],
        error_callback: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """
        Receive the full collection on every change.

        Each call registers a separate listener with its own handle.
        In remote mode without a principal the callback never fires.
        `error_callback` receives remote subscription failures; local
        snapshots never fail.
        """
        if context.mode == BackendMode.REMOTE:
            return self._remote.subscribe(context, callback, error_callback)
        return self._local.subscribe(callback)
