"""
Shared fixtures for the Reseller Ledger tests.

No real cloud or model calls are made: the remote backend is replaced by
an in-memory double that honours the RemoteBackend contract.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import pytest

from reseller_ledger.audit import AuditLogger
from reseller_ledger.config import parse_remote_config
from reseller_ledger.errors import RecordNotFoundError
from reseller_ledger.models.records import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    PlanType,
    Principal,
    Transaction,
    TransactionDraft,
)
from reseller_ledger.orchestrator import LedgerSession
from reseller_ledger.services.storage import (
    Collection,
    InMemoryKeyValueStore,
    LocalCollectionAdapter,
    RemoteBackend,
    RemoteCollectionAdapter,
    default_expenses,
    default_transactions,
)
from reseller_ledger.session import SessionStateMachine
from reseller_ledger.store import EntityStore


REMOTE_CONFIG_KEY = "reseller_remote_config"
TRANSACTIONS_KEY = "reseller_transactions"
EXPENSES_KEY = "reseller_expenses"


class FakeRemoteBackend(RemoteBackend):
    """
    In-memory stand-in for the cloud database.

    Every call is recorded in `calls`. Set `fail_with` to make the next
    write raise; batch writes apply all documents or none.
    """

    def __init__(self, principal: Optional[Principal] = None, initialize_ok: bool = True):
        self.documents: dict[Collection, dict[str, dict[str, Any]]] = {c: {} for c in Collection}
        self.calls: list[tuple] = []
        self.initialize_ok = initialize_ok
        self.initialized = False
        self.shut_down = False
        self.next_principal = principal or Principal(uid="owner-1", email="owner@example.com")
        self.current_principal: Optional[Principal] = None
        self.fail_with: Optional[Exception] = None
        self._principal_listeners: dict[int, Any] = {}
        self._subscriptions: dict[int, tuple] = {}
        self._next_handle = 0
        self._next_id = 0

    # --- helpers -----------------------------------------------------------

    def _handle(self) -> int:
        self._next_handle += 1
        return self._next_handle

    def _allocate_id(self) -> str:
        self._next_id += 1
        return f"doc-{self._next_id}"

    def _raise_if_failing(self) -> None:
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

    def _emit_principal(self) -> None:
        for callback in list(self._principal_listeners.values()):
            callback(self.current_principal)

    def publish(self, collection: Collection) -> None:
        for sub_collection, owner_id, on_snapshot, _ in list(self._subscriptions.values()):
            if sub_collection == collection:
                on_snapshot(self.query(collection, owner_id))

    def query(self, collection: Collection, owner_id: str) -> list[dict[str, Any]]:
        matching = [
            {**data, "id": doc_id}
            for doc_id, data in self.documents[collection].items()
            if data.get("ownerId") == owner_id
        ]
        return sorted(matching, key=lambda d: str(d.get("date", "")), reverse=True)

    def put_raw(self, collection: Collection, doc_id: str, data: dict[str, Any]) -> None:
        """Insert a document bypassing the write path, then publish."""
        self.documents[collection][doc_id] = dict(data)
        self.publish(collection)

    def emit_error(self, collection: Collection, error: Exception) -> None:
        for sub_collection, _, _, on_error in list(self._subscriptions.values()):
            if sub_collection == collection:
                on_error(error)

    def expire_session(self) -> None:
        """Simulate the identity provider dropping the principal."""
        self.current_principal = None
        self._emit_principal()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    @property
    def write_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("add", "update", "delete", "batch_write")]

    # --- RemoteBackend -----------------------------------------------------

    def initialize(self, config) -> bool:
        self.calls.append(("initialize", config.project_id))
        self.initialized = self.initialize_ok
        return self.initialize_ok

    async def authenticate(self) -> Principal:
        self.calls.append(("authenticate",))
        self.current_principal = self.next_principal
        self._emit_principal()
        return self.current_principal

    async def sign_out(self) -> None:
        self.calls.append(("sign_out",))
        self.current_principal = None
        self._emit_principal()

    def on_principal_change(self, callback):
        handle = self._handle()
        self._principal_listeners[handle] = callback

        def unsubscribe() -> None:
            self._principal_listeners.pop(handle, None)

        return unsubscribe

    def subscribe(self, collection, owner_id, on_snapshot, on_error):
        self.calls.append(("subscribe", collection, owner_id))
        handle = self._handle()
        self._subscriptions[handle] = (collection, owner_id, on_snapshot, on_error)
        on_snapshot(self.query(collection, owner_id))

        def unsubscribe() -> None:
            self._subscriptions.pop(handle, None)

        return unsubscribe

    async def add(self, collection, data):
        self.calls.append(("add", collection, dict(data)))
        self._raise_if_failing()
        doc_id = self._allocate_id()
        self.documents[collection][doc_id] = dict(data)
        self.publish(collection)
        return doc_id

    async def update(self, collection, document_id, data):
        self.calls.append(("update", collection, document_id, dict(data)))
        self._raise_if_failing()
        if document_id not in self.documents[collection]:
            raise RecordNotFoundError(f"{collection.value}/{document_id} does not exist")
        self.documents[collection][document_id] = dict(data)
        self.publish(collection)

    async def delete(self, collection, document_id):
        self.calls.append(("delete", collection, document_id))
        self._raise_if_failing()
        self.documents[collection].pop(document_id, None)
        self.publish(collection)

    async def batch_write(self, writes):
        self.calls.append(("batch_write", len(writes)))
        self._raise_if_failing()
        staged = [(collection, self._allocate_id(), dict(data)) for collection, data in writes]
        for collection, doc_id, data in staged:
            self.documents[collection][doc_id] = data
        for collection in {c for c, _, _ in staged}:
            self.publish(collection)
        return [doc_id for _, doc_id, _ in staged]

    def shutdown(self) -> None:
        self.shut_down = True
        self._subscriptions.clear()
        self._principal_listeners.clear()


# =============================================================================
# Builders
# =============================================================================

def make_transaction_draft(**overrides) -> TransactionDraft:
    fields = {
        "date": date(2024, 3, 1),
        "customer_name": "Erin Park",
        "plan_type": PlanType.PLUS,
        "cost_price": Decimal("20"),
        "sale_price": Decimal("28"),
    }
    fields.update(overrides)
    return TransactionDraft(**fields)


def make_transaction(**overrides) -> Transaction:
    fields = {
        "id": "tx-1",
        "date": date(2024, 3, 1),
        "customer_name": "Erin Park",
        "plan_type": PlanType.PLUS,
        "cost_price": Decimal("20"),
        "sale_price": Decimal("28"),
    }
    fields.update(overrides)
    return Transaction(**fields)


def make_expense_draft(**overrides) -> ExpenseDraft:
    fields = {
        "date": date(2024, 3, 1),
        "category": ExpenseCategory.FACEBOOK_ADS,
        "amount": Decimal("15.50"),
    }
    fields.update(overrides)
    return ExpenseDraft(**fields)


def make_expense(**overrides) -> Expense:
    fields = {
        "id": "exp-1",
        "date": date(2024, 3, 1),
        "category": ExpenseCategory.GMAIL,
        "amount": Decimal("6"),
    }
    fields.update(overrides)
    return Expense(**fields)


def build_stores(kv_store, audit_logger):
    transactions = EntityStore(
        LocalCollectionAdapter(
            kv_store, TRANSACTIONS_KEY, Collection.TRANSACTIONS,
            Transaction, default_transactions, audit_logger,
        ),
        RemoteCollectionAdapter(Collection.TRANSACTIONS, Transaction, audit_logger),
        audit_logger,
    )
    expenses = EntityStore(
        LocalCollectionAdapter(
            kv_store, EXPENSES_KEY, Collection.EXPENSES,
            Expense, default_expenses, audit_logger,
        ),
        RemoteCollectionAdapter(Collection.EXPENSES, Expense, audit_logger),
        audit_logger,
    )
    return transactions, expenses


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def fake_backend():
    return FakeRemoteBackend()


@pytest.fixture
def remote_config():
    return {
        "apiKey": "AIza-test-key",
        "authDomain": "demo-ledger.firebaseapp.com",
        "projectId": "demo-ledger",
        "appId": "1:1234:web:abcd",
    }


@pytest.fixture
def remote_config_json(remote_config):
    return json.dumps(remote_config)


@pytest.fixture
def principal():
    return Principal(uid="owner-1", email="owner@example.com")


@pytest.fixture
def connected_machine(fake_backend, remote_config):
    """A session connected to the fake backend with nobody signed in."""
    machine = SessionStateMachine()
    machine.connect(fake_backend, parse_remote_config(remote_config))
    return machine


@pytest.fixture
def stores(kv_store, audit_logger):
    return build_stores(kv_store, audit_logger)


@pytest.fixture
def ledger_session(kv_store, fake_backend, audit_logger, stores):
    transactions, expenses = stores
    session = LedgerSession(
        kv_store=kv_store,
        transactions=transactions,
        expenses=expenses,
        backend_factory=lambda: fake_backend,
        remote_config_key=REMOTE_CONFIG_KEY,
        audit_logger=audit_logger,
    )
    session.start()
    return session
