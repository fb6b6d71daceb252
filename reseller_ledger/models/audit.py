"""
Audit Models for Reseller Ledger

Every significant ledger action is logged for audit purposes.
This provides:
1. Traceability of every write, blocked write and backend switch
2. Debugging information when sync goes wrong
3. A record of each migration run (they are not idempotent)

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Record writes
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    WRITE_BLOCKED = "write_blocked"

    # Backend failures
    PERMISSION_DENIED = "permission_denied"
    TRANSPORT_ERROR = "transport_error"
    SUBSCRIPTION_ERROR = "subscription_error"
    MALFORMED_DOCUMENT_SKIPPED = "malformed_document_skipped"

    # Local storage
    LOCAL_SNAPSHOT_SEEDED = "local_snapshot_seeded"
    LOCAL_SNAPSHOT_CORRUPT = "local_snapshot_corrupt"

    # Session transitions
    SESSION_CONNECTED = "session_connected"
    SESSION_CONNECT_FAILED = "session_connect_failed"
    SESSION_DISCONNECTED = "session_disconnected"
    PRINCIPAL_SIGNED_IN = "principal_signed_in"
    PRINCIPAL_SIGNED_OUT = "principal_signed_out"

    # Migration
    MIGRATION_STARTED = "migration_started"
    MIGRATION_COMPLETED = "migration_completed"
    MIGRATION_FAILED = "migration_failed"

    # Advisory
    ADVISORY_FAILED = "advisory_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection or subsystem (e.g., 'transactions', 'session')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Shared by related events (e.g., one migration run)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_added("transactions", record_id, "local")
        event = AuditEventBuilder.migration_completed(10, 3, owner_id, correlation_id)
    """

    @staticmethod
    def record_added(collection: str, record_id: Optional[str], backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            entity_type=collection,
            entity_id=record_id,
            description=f"Record added to {collection} ({backend})",
            details={"backend": backend},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(collection: str, record_id: str, backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=collection,
            entity_id=record_id,
            description=f"Record updated in {collection} ({backend})",
            details={"backend": backend},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(collection: str, record_id: str, backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=collection,
            entity_id=record_id,
            description=f"Record deleted from {collection} ({backend})",
            details={"backend": backend},
            is_user_action=True,
        )

    @staticmethod
    def write_blocked(collection: str, operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            description=f"{operation} on {collection} blocked: no signed-in principal",
            details={"operation": operation},
            error_code="unauthorized",
            is_user_action=True,
        )

    @staticmethod
    def permission_denied(collection: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERMISSION_DENIED,
            severity=AuditSeverity.ERROR,
            entity_type=collection,
            description=f"Backend denied {operation} on {collection}",
            details={"operation": operation},
            error_code="permission_denied",
            error_message=error_message,
        )

    @staticmethod
    def transport_error(collection: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSPORT_ERROR,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            description=f"Transport failure during {operation} on {collection}",
            details={"operation": operation},
            error_code="transport",
            error_message=error_message,
        )

    @staticmethod
    def subscription_error(collection: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ERROR,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            description=f"Live subscription to {collection} reported an error",
            error_message=error_message,
        )

    @staticmethod
    def malformed_document_skipped(collection: str, document_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MALFORMED_DOCUMENT_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            entity_id=document_id,
            description=f"Skipped malformed document in {collection}",
            error_message=error_message,
        )

    @staticmethod
    def local_snapshot_seeded(collection: str, record_count: int, corrupt: bool, error_message: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LOCAL_SNAPSHOT_CORRUPT if corrupt
                else AuditEventType.LOCAL_SNAPSHOT_SEEDED
            ),
            severity=AuditSeverity.WARNING if corrupt else AuditSeverity.INFO,
            entity_type=collection,
            description=(
                f"Local {collection} snapshot unreadable, reseeded with defaults"
                if corrupt
                else f"No local {collection} snapshot, seeded with defaults"
            ),
            details={"record_count": record_count},
            error_code="local_parse_failure" if corrupt else None,
            error_message=error_message,
        )

    @staticmethod
    def session_connected(project_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CONNECTED,
            entity_type="session",
            description=f"Connected to cloud project {project_id}",
            details={"project_id": project_id},
            is_user_action=True,
        )

    @staticmethod
    def session_connect_failed(project_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CONNECT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="session",
            description=f"Backend initialization failed for project {project_id}",
            details={"project_id": project_id},
            error_code="not_connected",
            is_user_action=True,
        )

    @staticmethod
    def session_disconnected() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_DISCONNECTED,
            entity_type="session",
            description="Disconnected from cloud database, local mode enabled",
            is_user_action=True,
        )

    @staticmethod
    def principal_signed_in(uid: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRINCIPAL_SIGNED_IN,
            entity_type="session",
            entity_id=uid,
            description="Principal signed in",
        )

    @staticmethod
    def principal_signed_out(uid: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRINCIPAL_SIGNED_OUT,
            entity_type="session",
            entity_id=uid,
            description="Principal signed out, in-memory data cleared",
        )

    @staticmethod
    def migration_started(transaction_count: int, expense_count: int, owner_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_STARTED,
            entity_type="migration",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Migrating {transaction_count} transactions and {expense_count} expenses",
            details={
                "transactions": transaction_count,
                "expenses": expense_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def migration_completed(transaction_count: int, expense_count: int, owner_id: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_COMPLETED,
            entity_type="migration",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Migrated {transaction_count + expense_count} records",
            details={
                "transactions": transaction_count,
                "expenses": expense_count,
            },
        )

    @staticmethod
    def migration_failed(owner_id: str, error_message: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="migration",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Migration batch was not committed",
            error_code="migration_failure",
            error_message=error_message,
        )

    @staticmethod
    def advisory_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVISORY_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="advisory",
            description=f"Business analyst {operation} failed",
            error_message=error_message,
        )
