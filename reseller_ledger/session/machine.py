"""
Session State Machine

DESIGN DECISION: The active backend and principal live in an explicit
SessionContext handed to every store operation, not in a global handle.
Backend switches and sign-in changes are transitions of a small state
machine:

    DISCONNECTED --connect--> CONNECTED_UNAUTHENTICATED
    CONNECTED_UNAUTHENTICATED --login--> CONNECTED_AUTHENTICATED
    CONNECTED_AUTHENTICATED --logout--> CONNECTED_UNAUTHENTICATED
    CONNECTED_* --disconnect--> DISCONNECTED

Each applied transition is returned to the caller, which performs the
matching subscribe/unsubscribe actions in a fixed order.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict

from reseller_ledger.errors import NotConnectedError
from reseller_ledger.models.records import Principal

if TYPE_CHECKING:
    from reseller_ledger.config.remote import RemoteBackendConfig
    from reseller_ledger.services.storage.interface import RemoteBackend


class SessionState(str, Enum):
    """Connection and authentication state of the session."""
    DISCONNECTED = "disconnected"
    CONNECTED_UNAUTHENTICATED = "connected_unauthenticated"
    CONNECTED_AUTHENTICATED = "connected_authenticated"


class SessionEvent(str, Enum):
    """Inputs that move the session between states."""
    CONNECT = "connect"
    LOGIN = "login"
    LOGOUT = "logout"
    DISCONNECT = "disconnect"


class BackendMode(str, Enum):
    """Which backend realizes the entity stores."""
    LOCAL = "local"
    REMOTE = "remote"


_TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.DISCONNECTED, SessionEvent.CONNECT): SessionState.CONNECTED_UNAUTHENTICATED,
    (SessionState.CONNECTED_UNAUTHENTICATED, SessionEvent.LOGIN): SessionState.CONNECTED_AUTHENTICATED,
    (SessionState.CONNECTED_AUTHENTICATED, SessionEvent.LOGOUT): SessionState.CONNECTED_UNAUTHENTICATED,
    (SessionState.CONNECTED_UNAUTHENTICATED, SessionEvent.DISCONNECT): SessionState.DISCONNECTED,
    (SessionState.CONNECTED_AUTHENTICATED, SessionEvent.DISCONNECT): SessionState.DISCONNECTED,
}


class SessionTransition(BaseModel):
    """An applied state change."""
    model_config = ConfigDict(frozen=True)

    event: SessionEvent
    previous: SessionState
    current: SessionState


class SessionContext:
    """
    The session-scoped backend decision.

    Holds the active backend handle and principal. Only the state
    machine mutates it.
    """

    def __init__(self) -> None:
        self.state: SessionState = SessionState.DISCONNECTED
        self.backend: Optional["RemoteBackend"] = None
        self.principal: Optional[Principal] = None
        self.config: Optional["RemoteBackendConfig"] = None

    @property
    def mode(self) -> BackendMode:
        if self.state == SessionState.DISCONNECTED:
            return BackendMode.LOCAL
        return BackendMode.REMOTE

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.CONNECTED_AUTHENTICATED

    def __repr__(self) -> str:
        uid = self.principal.uid if self.principal else None
        return f"SessionContext(state={self.state.value}, principal={uid!r})"


class SessionStateMachine:
    """Applies session events to a SessionContext."""

    def __init__(self, context: Optional[SessionContext] = None):
        self._context = context or SessionContext()

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def state(self) -> SessionState:
        return self._context.state

    def _apply(self, event: SessionEvent) -> SessionTransition:
        previous = self._context.state
        current = _TRANSITIONS[(previous, event)]
        self._context.state = current
        return SessionTransition(event=event, previous=previous, current=current)

    def connect(
        self,
        backend: "RemoteBackend",
        config: "RemoteBackendConfig",
    ) -> SessionTransition:
        """
        Record an initialized backend as active.

        Raises:
            ValueError: If a backend is already connected (disconnect first)
        """
        if self._context.state != SessionState.DISCONNECTED:
            raise ValueError("Session is already connected; disconnect first")
        self._context.backend = backend
        self._context.config = config
        self._context.principal = None
        return self._apply(SessionEvent.CONNECT)

    def login(self, principal: Principal) -> Optional[SessionTransition]:
        """
        Record a signed-in principal.

        Returns None when the same principal is already signed in.

        Raises:
            NotConnectedError: If no backend is connected
            ValueError: If a different principal is signed in (logout first)
        """
        if self._context.state == SessionState.DISCONNECTED:
            raise NotConnectedError("Cannot sign in before connecting to a backend")
        if self._context.state == SessionState.CONNECTED_AUTHENTICATED:
            if self._context.principal and self._context.principal.uid == principal.uid:
                return None
            raise ValueError("A different principal is signed in; logout first")
        self._context.principal = principal
        return self._apply(SessionEvent.LOGIN)

    def logout(self) -> Optional[SessionTransition]:
        """Drop the principal. A no-op when nobody is signed in."""
        if self._context.state != SessionState.CONNECTED_AUTHENTICATED:
            return None
        self._context.principal = None
        return self._apply(SessionEvent.LOGOUT)

    def disconnect(self) -> Optional[SessionTransition]:
        """Forget the backend and principal. A no-op when disconnected."""
        if self._context.state == SessionState.DISCONNECTED:
            return None
        self._context.principal = None
        self._context.backend = None
        self._context.config = None
        return self._apply(SessionEvent.DISCONNECT)
