"""
Main Orchestrator for Reseller Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Session lifecycle (local mode -> connect -> login -> logout -> disconnect)
2. Ledger intents (add/update/delete sales and expenses)
3. Migration of local data into the cloud
4. Dashboard metrics and AI advice over the current snapshot

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every session transition performs its subscribe/unsubscribe actions
  in a fixed order; nothing is left to chained callbacks
- Losing the principal clears in-memory data immediately
- Snapshots from a torn-down subscription are ignored, so data from a
  previous principal or from local mode never shows up in cloud mode
"""

import logging
import threading
from typing import Callable, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from reseller_ledger.agents import BusinessAnalyst
from reseller_ledger.audit import AuditLogger
from reseller_ledger.config import RemoteBackendConfig, get_settings, parse_remote_config
from reseller_ledger.errors import (
    ConfigInvalidError,
    LedgerError,
    NotConnectedError,
    TransportError,
)
from reseller_ledger.metrics import build_dashboard, recent_transactions
from reseller_ledger.migration import MigrationCoordinator, MigrationReport
from reseller_ledger.models.audit import AuditEventBuilder
from reseller_ledger.models.metrics import DashboardMetrics
from reseller_ledger.models.records import (
    Expense,
    ExpenseDraft,
    Principal,
    Transaction,
    TransactionDraft,
)
from reseller_ledger.services.storage import (
    Collection,
    FileKeyValueStore,
    KeyValueStore,
    LocalCollectionAdapter,
    RemoteBackend,
    RemoteCollectionAdapter,
    Unsubscribe,
    default_expenses,
    default_transactions,
)
from reseller_ledger.services.storage.firestore import FirestoreBackend
from reseller_ledger.session import (
    BackendMode,
    SessionContext,
    SessionState,
    SessionStateMachine,
    SessionTransition,
)
from reseller_ledger.store import EntityStore


logger = structlog.get_logger(__name__)


class LedgerSnapshot(BaseModel):
    """What the UI renders from: the latest full collections."""
    model_config = ConfigDict(frozen=True)

    state: SessionState
    mode: BackendMode
    principal: Optional[Principal] = None
    transactions: list[Transaction]
    expenses: list[Expense]


class LedgerSession:
    """
    Orchestrates one ledger session.

    Holds exactly one in-memory collection per entity type. Each
    snapshot delivered by the active backend replaces it wholesale.

    Call `start()` once before use.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        transactions: EntityStore[Transaction],
        expenses: EntityStore[Expense],
        backend_factory: Callable[[], RemoteBackend],
        remote_config_key: str,
        migration: Optional[MigrationCoordinator] = None,
        audit_logger: Optional[AuditLogger] = None,
        trend_buckets: int = 7,
        recent_limit: int = 5,
    ):
        self._kv_store = kv_store
        self._stores = {
            Collection.TRANSACTIONS: transactions,
            Collection.EXPENSES: expenses,
        }
        self._backend_factory = backend_factory
        self._remote_config_key = remote_config_key
        self._migration = migration or MigrationCoordinator(audit_logger=audit_logger)
        self._audit_logger = audit_logger
        self._trend_buckets = trend_buckets
        self._recent_limit = recent_limit

        self._machine = SessionStateMachine()
        self._lock = threading.RLock()
        self._transactions: list[Transaction] = []
        self._expenses: list[Expense] = []
        self._subscriptions: list[Unsubscribe] = []
        self._principal_unsubscribe: Optional[Unsubscribe] = None
        self._generation = 0
        self._listeners: dict[int, Callable[[LedgerSnapshot], None]] = {}
        self._error_listeners: dict[int, Callable[[LedgerError], None]] = {}
        self._next_handle = 0

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def context(self) -> SessionContext:
        return self._machine.context

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def mode(self) -> BackendMode:
        return self.context.mode

    @property
    def principal(self) -> Optional[Principal]:
        return self.context.principal

    @property
    def transactions(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)

    @property
    def expenses(self) -> list[Expense]:
        with self._lock:
            return list(self._expenses)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                state=self.state,
                mode=self.mode,
                principal=self.principal,
                transactions=list(self._transactions),
                expenses=list(self._expenses),
            )

    def dashboard(self) -> DashboardMetrics:
        """Recompute all dashboard metrics from the current snapshot."""
        snapshot = self.snapshot()
        return build_dashboard(
            snapshot.transactions,
            snapshot.expenses,
            trend_buckets=self._trend_buckets,
        )

    def recent_transactions(self) -> list[Transaction]:
        return recent_transactions(self.transactions, self._recent_limit)

    def on_change(self, listener: Callable[[LedgerSnapshot], None]) -> Unsubscribe:
        """Register a listener called after every collection replacement."""
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._listeners[handle] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(handle, None)

        return unsubscribe

    def on_error(self, listener: Callable[[LedgerError], None]) -> Unsubscribe:
        """
        Register a listener for live subscription failures.

        Listeners receive the typed error; show `error.user_message`.
        A permission rejection arrives as PermissionDeniedError.
        """
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._error_listeners[handle] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._error_listeners.pop(handle, None)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(snapshot)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def _subscribe_all(self) -> None:
        """Subscribe both stores for the current generation."""
        generation = self._generation
        for collection, store in self._stores.items():
            self._subscriptions.append(store.subscribe(
                self.context,
                lambda records, c=collection, g=generation: self._on_snapshot(c, g, records),
                lambda error, g=generation: self._on_subscription_error(g, error),
            ))

    def _teardown_subscriptions(self) -> None:
        """Unsubscribe everything and invalidate in-flight snapshots."""
        subscriptions, self._subscriptions = self._subscriptions, []
        self._generation += 1
        for unsubscribe in subscriptions:
            unsubscribe()

    def _on_snapshot(self, collection: Collection, generation: int, records: list) -> None:
        with self._lock:
            if generation != self._generation:
                return
            if collection == Collection.TRANSACTIONS:
                self._transactions = list(records)
            else:
                self._expenses = list(records)
        self._notify()

    def _on_subscription_error(self, generation: int, error: Exception) -> None:
        """Pass a live subscription failure to the error listeners."""
        with self._lock:
            if generation != self._generation:
                return
            listeners = list(self._error_listeners.values())
        if not isinstance(error, LedgerError):
            error = TransportError(str(error))
        for listener in listeners:
            listener(error)

    def _clear_collections(self) -> None:
        with self._lock:
            self._transactions = []
            self._expenses = []
        self._notify()

    # -------------------------------------------------------------------------
    # Session transitions
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Begin the session.

        Reconnects with a saved backend config if one exists, otherwise
        loads the local snapshots. A saved config that no longer works
        is forgotten and local mode is used.
        """
        with self._lock:
            saved = self._kv_store.get(self._remote_config_key)
            if saved is not None:
                try:
                    self.connect(saved)
                    return
                except (ConfigInvalidError, NotConnectedError) as e:
                    logger.warning("saved_remote_config_rejected", error=str(e))
                    self._kv_store.remove(self._remote_config_key)

            if not self._subscriptions:
                self._subscribe_all()

    def connect(self, raw_config: Union[str, dict, RemoteBackendConfig]) -> SessionTransition:
        """
        Switch to cloud mode.

        The config is validated before anything else changes. Local
        subscriptions are torn down and the in-memory collections are
        cleared before the backend is initialized; live data only
        arrives after `login()`.

        Raises:
            ConfigInvalidError: The config is malformed (nothing changed)
            NotConnectedError: Backend initialization failed (local mode
                is re-enabled)
        """
        if isinstance(raw_config, RemoteBackendConfig):
            config = raw_config
        else:
            config = parse_remote_config(raw_config)

        with self._lock:
            if self.state != SessionState.DISCONNECTED:
                self._teardown_remote()

            self._teardown_subscriptions()
            self._clear_collections()

            backend = self._backend_factory()
            if not backend.initialize(config):
                if self._audit_logger:
                    self._audit_logger.log(AuditEventBuilder.session_connect_failed(config.project_id))
                # A previous connection's config must not come back on the next start()
                self._kv_store.remove(self._remote_config_key)
                self._subscribe_all()
                raise NotConnectedError(
                    f"Backend initialization failed for project {config.project_id}",
                    user_message="Could not connect to the cloud database. Check the project settings.",
                )

            transition = self._machine.connect(backend, config)
            self._principal_unsubscribe = backend.on_principal_change(self._handle_principal_change)
            self._kv_store.set(self._remote_config_key, config.to_storage_json())

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.session_connected(config.project_id))
        self._notify()
        return transition

    async def login(self) -> Principal:
        """
        Sign in through the backend's identity provider.

        Raises:
            NotConnectedError: Not connected to a backend
        """
        backend = self.context.backend
        if backend is None:
            raise NotConnectedError("Connect to a backend before signing in")

        principal = await backend.authenticate()
        self._handle_principal_change(principal)
        return principal

    async def logout(self) -> None:
        """Sign out. In-memory data is cleared immediately."""
        backend = self.context.backend
        if backend is None:
            return
        await backend.sign_out()
        self._handle_principal_change(None)

    def disconnect(self) -> Optional[SessionTransition]:
        """
        Return to local mode.

        Remote subscriptions and the principal listener are torn down
        before the local snapshots are loaded.
        """
        with self._lock:
            if self.state == SessionState.DISCONNECTED:
                return None

            transition = self._teardown_remote()
            self._kv_store.remove(self._remote_config_key)
            self._clear_collections()
            self._subscribe_all()

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.session_disconnected())
        return transition

    def _teardown_remote(self) -> Optional[SessionTransition]:
        self._teardown_subscriptions()
        if self._principal_unsubscribe is not None:
            self._principal_unsubscribe()
            self._principal_unsubscribe = None

        backend = self.context.backend
        transition = self._machine.disconnect()
        if backend is not None:
            backend.shutdown()
        return transition

    def _handle_principal_change(self, principal: Optional[Principal]) -> None:
        """
        React to login/logout, whether we asked for it or the backend
        reported it (e.g. an expired session).
        """
        with self._lock:
            if self.context.backend is None:
                return

            current = self.context.principal
            if principal is None:
                if current is not None:
                    self._apply_logout()
                return

            if current is not None and current.uid == principal.uid:
                return
            if current is not None:
                self._apply_logout()
            self._apply_login(principal)

    def _apply_login(self, principal: Principal) -> None:
        self._teardown_subscriptions()
        self._machine.login(principal)
        self._clear_collections()
        self._subscribe_all()
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.principal_signed_in(principal.uid))

    def _apply_logout(self) -> None:
        uid = self.context.principal.uid if self.context.principal else None
        self._teardown_subscriptions()
        self._machine.logout()
        self._clear_collections()
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.principal_signed_out(uid))

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    async def add_transaction(self, draft: TransactionDraft) -> None:
        await self._stores[Collection.TRANSACTIONS].add(self.context, draft)

    async def update_transaction(self, transaction: Transaction) -> None:
        await self._stores[Collection.TRANSACTIONS].update(self.context, transaction)

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._stores[Collection.TRANSACTIONS].delete(self.context, transaction_id)

    async def add_expense(self, draft: ExpenseDraft) -> None:
        await self._stores[Collection.EXPENSES].add(self.context, draft)

    async def update_expense(self, expense: Expense) -> None:
        await self._stores[Collection.EXPENSES].update(self.context, expense)

    async def delete_expense(self, expense_id: str) -> None:
        await self._stores[Collection.EXPENSES].delete(self.context, expense_id)

    async def migrate_local_data(self, *, confirmed: bool) -> MigrationReport:
        """
        Copy every local record into the signed-in principal's cloud
        collections. Local data is left as it is.

        NOTE: Not idempotent. Each run duplicates every record again.
        """
        local_transactions = self._stores[Collection.TRANSACTIONS].local.snapshot()
        local_expenses = self._stores[Collection.EXPENSES].local.snapshot()
        return await self._migration.migrate(
            self.context,
            local_transactions,
            local_expenses,
            confirmed=confirmed,
        )


class AdvisoryFlow:
    """
    Feeds the session's current transactions to the business analyst.

    The analyst gets a copy; it cannot affect ledger state.
    """

    def __init__(self, session: LedgerSession, analyst: BusinessAnalyst):
        self._session = session
        self._analyst = analyst

    async def ask(self, question: str) -> str:
        return await self._analyst.analyze(self._session.transactions, question)

    async def forecast(self) -> str:
        return await self._analyst.forecast(self._session.transactions)


def create_ledger_components(
    kv_store: Optional[KeyValueStore] = None,
    backend_factory: Optional[Callable[[], RemoteBackend]] = None,
    analyst: Optional[BusinessAnalyst] = None,
    use_advisory: bool = True,
) -> tuple[LedgerSession, Optional[AdvisoryFlow], AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        kv_store: Local durable store. Defaults to files under
            LocalStorageSettings.data_dir.
        backend_factory: Builds a fresh remote backend per connect.
            Defaults to FirestoreBackend.
        analyst: Pre-built analyst. If None and use_advisory is True,
            one is configured from GeminiSettings.
        use_advisory: Set to False to run without the AI analyst.

    Returns:
        (ledger_session, advisory_flow, audit_logger). The session is
        not started; call `start()`.
    """
    settings = get_settings()
    local_settings = settings.local_storage
    app_settings = settings.app

    logging.getLogger("reseller_ledger").setLevel(
        logging.DEBUG if app_settings.debug_mode else logging.INFO
    )
    audit_logger = AuditLogger(environment=app_settings.app_environment)
    kv_store = kv_store or FileKeyValueStore(local_settings.data_dir)

    transactions = EntityStore(
        LocalCollectionAdapter(
            kv_store,
            local_settings.transactions_key,
            Collection.TRANSACTIONS,
            Transaction,
            default_transactions,
            audit_logger,
        ),
        RemoteCollectionAdapter(Collection.TRANSACTIONS, Transaction, audit_logger),
        audit_logger,
    )
    expenses = EntityStore(
        LocalCollectionAdapter(
            kv_store,
            local_settings.expenses_key,
            Collection.EXPENSES,
            Expense,
            default_expenses,
            audit_logger,
        ),
        RemoteCollectionAdapter(Collection.EXPENSES, Expense, audit_logger),
        audit_logger,
    )

    session = LedgerSession(
        kv_store=kv_store,
        transactions=transactions,
        expenses=expenses,
        backend_factory=backend_factory or FirestoreBackend,
        remote_config_key=local_settings.remote_config_key,
        migration=MigrationCoordinator(
            max_batch_size=app_settings.migration_max_batch_size,
            audit_logger=audit_logger,
        ),
        audit_logger=audit_logger,
        trend_buckets=app_settings.trend_window_days,
        recent_limit=app_settings.recent_transactions_limit,
    )

    advisory = None
    if analyst is not None:
        advisory = AdvisoryFlow(session, analyst)
    elif use_advisory:
        try:
            advisory = AdvisoryFlow(
                session,
                BusinessAnalyst(
                    context_limit=app_settings.advisory_context_limit,
                    audit_logger=audit_logger,
                ),
            )
        except ValidationError as e:
            # Gemini not configured - ledger works without advice
            logger.warning("advisory_not_configured", error=str(e))

    return session, advisory, audit_logger
