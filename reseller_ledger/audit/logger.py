"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
The audit logger:
- Is synchronous: remote snapshot callbacks arrive on backend threads
  and must be able to log without an event loop
- Never raises into the ledger flow
- Keeps a bounded in-memory history the UI can show
- Supports correlation IDs to trace related events
"""

import threading
from collections import deque
from contextlib import suppress
from typing import Optional
from uuid import UUID, uuid4

import structlog

from reseller_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

_fallback_logger = structlog.get_logger("reseller_ledger.audit.fallback")


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A bounded in-memory history (for operator visibility)
    """

    def __init__(self, history_size: int = 200, environment: Optional[str] = None):
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self.environment = environment
        self._logger = structlog.get_logger("reseller_ledger.audit")
        if environment:
            self._logger = self._logger.bind(environment=environment)

    def log(self, event: AuditEvent) -> None:
        """
        Log an audit event locally and keep it in history.

        Never raises: a failing log sink must not break the ledger flow.
        The event is kept in history either way.
        """
        with self._lock:
            self._history.append(event)

        try:
            log_dict = event.to_log_dict()

            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            with suppress(Exception):
                _fallback_logger.error(
                    "audit_log_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        with self._lock:
            events = list(self._history)
        events.reverse()
        return events[:limit]

    def log_record_added(self, collection: str, record_id: Optional[str], backend: str) -> None:
        """Log a successful add."""
        self.log(AuditEventBuilder.record_added(collection, record_id, backend))

    def log_record_updated(self, collection: str, record_id: str, backend: str) -> None:
        """Log a successful update."""
        self.log(AuditEventBuilder.record_updated(collection, record_id, backend))

    def log_record_deleted(self, collection: str, record_id: str, backend: str) -> None:
        """Log a successful delete."""
        self.log(AuditEventBuilder.record_deleted(collection, record_id, backend))

    def log_write_blocked(self, collection: str, operation: str) -> None:
        """Log a write rejected before reaching the backend."""
        self.log(AuditEventBuilder.write_blocked(collection, operation))

    def log_permission_denied(self, collection: str, operation: str, error_message: str) -> None:
        """Log a backend access-control rejection."""
        self.log(AuditEventBuilder.permission_denied(collection, operation, error_message))

    def log_transport_error(self, collection: str, operation: str, error_message: str) -> None:
        """Log a non-fatal backend transport failure."""
        self.log(AuditEventBuilder.transport_error(collection, operation, error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g., a migration run).
    """
    return uuid4()
