"""Session state package."""

from reseller_ledger.session.machine import (
    BackendMode,
    SessionContext,
    SessionEvent,
    SessionState,
    SessionStateMachine,
    SessionTransition,
)

__all__ = [
    "BackendMode",
    "SessionContext",
    "SessionEvent",
    "SessionState",
    "SessionStateMachine",
    "SessionTransition",
]
