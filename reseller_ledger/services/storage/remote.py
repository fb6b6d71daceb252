"""
Remote Sync Adapter

Backs one collection with the authenticated cloud database.

GUARANTEES:
- Writes without a signed-in principal fail with UnauthorizedError
  before any backend call is made
- Every add/update carries `ownerId` = current principal, whatever the
  caller supplied
- Subscriptions only ever see the current principal's documents; with no
  principal, subscribe never calls back

Delete requires a principal but does not check ownership itself: the
backend's security rules are the enforcement boundary.
"""

from typing import Any, Callable, Generic, Optional

from pydantic import ValidationError

from reseller_ledger.audit import AuditLogger
from reseller_ledger.errors import (
    NotConnectedError,
    PermissionDeniedError,
    TransportError,
    UnauthorizedError,
)
from reseller_ledger.models.audit import AuditEventBuilder
from reseller_ledger.models.records import (
    DraftRecord,
    Principal,
    RecordT,
    to_remote_payload,
)
from reseller_ledger.services.storage.interface import (
    Collection,
    ErrorCallback,
    RemoteBackend,
    Unsubscribe,
    noop_unsubscribe,
)
from reseller_ledger.session.machine import SessionContext


class RemoteCollectionAdapter(Generic[RecordT]):
    """Authenticated, owner-scoped access to one remote collection."""

    def __init__(
        self,
        collection: Collection,
        record_type: type[RecordT],
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._collection = collection
        self._record_type = record_type
        self._audit_logger = audit_logger

    @property
    def collection(self) -> Collection:
        return self._collection

    def _require_principal(
        self,
        context: SessionContext,
        operation: str,
    ) -> tuple[RemoteBackend, Principal]:
        """Pre-flight check run before every write."""
        if context.backend is None:
            raise NotConnectedError(
                f"{operation} on {self._collection.value} before backend initialization"
            )
        if context.principal is None:
            if self._audit_logger:
                self._audit_logger.log_write_blocked(self._collection.value, operation)
            raise UnauthorizedError(
                f"{operation} on {self._collection.value} with no signed-in principal"
            )
        return context.backend, context.principal

    async def _call(self, operation: str, call: Callable[[], Any]) -> Any:
        """Run a backend write, auditing the failure classes we surface."""
        try:
            return await call()
        except PermissionDeniedError as e:
            if self._audit_logger:
                self._audit_logger.log_permission_denied(
                    self._collection.value, operation, str(e)
                )
            raise
        except TransportError as e:
            if self._audit_logger:
                self._audit_logger.log_transport_error(
                    self._collection.value, operation, str(e)
                )
            raise

    async def add(self, context: SessionContext, draft: DraftRecord) -> str:
        """Create a document owned by the current principal."""
        backend, principal = self._require_principal(context, "add")
        payload = to_remote_payload(draft, principal.uid)

        new_id = await self._call(
            "add", lambda: backend.add(self._collection, payload)
        )
        if self._audit_logger:
            self._audit_logger.log_record_added(self._collection.value, new_id, "remote")
        return new_id

    async def update(self, context: SessionContext, record: RecordT) -> None:
        """
        Replace a document's fields, re-stamping ownership.

        Raises:
            RecordNotFoundError: If the document does not exist
        """
        backend, principal = self._require_principal(context, "update")
        payload = to_remote_payload(record, principal.uid)

        await self._call(
            "update", lambda: backend.update(self._collection, record.id, payload)
        )
        if self._audit_logger:
            self._audit_logger.log_record_updated(self._collection.value, record.id, "remote")

    async def delete(self, context: SessionContext, record_id: str) -> None:
        """Delete a document. An already-absent id is not an error."""
        backend, _ = self._require_principal(context, "delete")

        await self._call(
            "delete", lambda: backend.delete(self._collection, record_id)
        )
        if self._audit_logger:
            self._audit_logger.log_record_deleted(self._collection.value, record_id, "remote")

    def subscribe(
        self,
        context: SessionContext,
        callback: Callable[[list[RecordT]], None],
        error_callback: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """
        Open a live view of the principal's documents.

        With no backend or no principal this is a no-op: the callback
        is never invoked. Subscription failures are audited, then passed
        to `error_callback` if one is given.
        """
        backend = context.backend
        principal = context.principal
        if backend is None or principal is None:
            return noop_unsubscribe

        owner_id = principal.uid

        def on_snapshot(documents: list[dict[str, Any]]) -> None:
            callback(self._parse_documents(documents, owner_id))

        def on_error(error: Exception) -> None:
            # Transport retries are the backend's job; we only report them
            if self._audit_logger:
                if isinstance(error, PermissionDeniedError):
                    self._audit_logger.log_permission_denied(
                        self._collection.value, "subscribe", str(error)
                    )
                else:
                    self._audit_logger.log(AuditEventBuilder.subscription_error(
                        self._collection.value, str(error)
                    ))
            if error_callback is not None:
                error_callback(error)

        return backend.subscribe(self._collection, owner_id, on_snapshot, on_error)

    def _parse_documents(
        self,
        documents: list[dict[str, Any]],
        owner_id: str,
    ) -> list[RecordT]:
        """Validate snapshot documents, skipping malformed or foreign ones."""
        records = []
        for document in documents:
            document_id = str(document.get("id", ""))
            try:
                record = self._record_type.model_validate(document)
            except ValidationError as e:
                if self._audit_logger:
                    self._audit_logger.log(AuditEventBuilder.malformed_document_skipped(
                        self._collection.value, document_id, str(e)
                    ))
                continue

            if record.owner_id != owner_id:
                if self._audit_logger:
                    self._audit_logger.log(AuditEventBuilder.malformed_document_skipped(
                        self._collection.value, document_id, "ownerId does not match principal"
                    ))
                continue

            records.append(record)
        return records
