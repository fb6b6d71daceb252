"""
Migration Coordinator

One-shot bulk copy of the local Transaction and Expense collections into
the signed-in principal's cloud collections.

CRITICAL:
- Runs only after explicit operator confirmation
- All records are committed in ONE atomic batch: either every record
  lands or none does
- Every migrated record gets a fresh backend id (local ids are never
  reused) and `ownerId` = the current principal
- Local records are left untouched

KNOWN GAP: there is no idempotency guard. Running the migration twice
copies every record twice, with new ids each time. Operators must
confirm every run knowing this.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from reseller_ledger.audit import AuditLogger, create_correlation_id
from reseller_ledger.errors import (
    ConfirmationRequiredError,
    LedgerError,
    MigrationFailedError,
    NotConnectedError,
    PermissionDeniedError,
    UnauthorizedError,
)
from reseller_ledger.models.audit import AuditEventBuilder
from reseller_ledger.models.records import Expense, Transaction, to_remote_payload
from reseller_ledger.services.storage import Collection
from reseller_ledger.session import SessionContext


class MigrationReport(BaseModel):
    """Outcome of a committed migration."""
    model_config = ConfigDict(frozen=True)

    owner_id: str
    transactions_migrated: int
    expenses_migrated: int
    new_ids: list[str] = Field(default_factory=list)
    migrated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_migrated(self) -> int:
        return self.transactions_migrated + self.expenses_migrated


class MigrationCoordinator:
    """Copies local collections into the cloud in a single batch."""

    def __init__(
        self,
        max_batch_size: int = 500,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._max_batch_size = max_batch_size
        self._audit_logger = audit_logger

    async def migrate(
        self,
        context: SessionContext,
        transactions: Sequence[Transaction],
        expenses: Sequence[Expense],
        *,
        confirmed: bool,
    ) -> MigrationReport:
        """
        Migrate the given local records to the principal's collections.

        All preconditions are checked before any backend call.

        Raises:
            ConfirmationRequiredError: `confirmed` is not True
            NotConnectedError: No backend is connected
            UnauthorizedError: Nobody is signed in
            MigrationFailedError: The batch was too large or did not
                commit (nothing was applied)
        """
        if confirmed is not True:
            raise ConfirmationRequiredError("Migration requires explicit confirmation")
        if context.backend is None:
            raise NotConnectedError("Cannot migrate before connecting to a backend")
        if context.principal is None:
            raise UnauthorizedError("Cannot migrate with no signed-in principal")

        backend = context.backend
        owner_id = context.principal.uid
        correlation_id = create_correlation_id()

        writes = [
            (Collection.TRANSACTIONS, to_remote_payload(t, owner_id)) for t in transactions
        ] + [
            (Collection.EXPENSES, to_remote_payload(e, owner_id)) for e in expenses
        ]

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.migration_started(
                len(transactions), len(expenses), owner_id, correlation_id
            ))

        if len(writes) > self._max_batch_size:
            error = MigrationFailedError(
                f"{len(writes)} records exceed the single-batch limit of {self._max_batch_size}",
                user_message=(
                    f"Too many records to migrate atomically ({len(writes)}; "
                    f"limit {self._max_batch_size}). Nothing was copied."
                ),
            )
            self._log_failure(owner_id, error, correlation_id)
            raise error

        new_ids: list[str] = []
        if writes:
            try:
                new_ids = await backend.batch_write(writes)
            except LedgerError as e:
                user_message = None
                if isinstance(e, PermissionDeniedError):
                    user_message = (
                        "Migration was rejected by the database security rules. "
                        "Nothing was copied."
                    )
                error = MigrationFailedError(
                    f"Migration batch failed: {e}", user_message=user_message
                )
                self._log_failure(owner_id, error, correlation_id)
                raise error from e

        report = MigrationReport(
            owner_id=owner_id,
            transactions_migrated=len(transactions),
            expenses_migrated=len(expenses),
            new_ids=new_ids,
        )

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.migration_completed(
                report.transactions_migrated,
                report.expenses_migrated,
                owner_id,
                correlation_id,
            ))

        return report

    def _log_failure(self, owner_id: str, error: MigrationFailedError, correlation_id) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.migration_failed(
                owner_id, str(error), correlation_id
            ))
