"""
Tests for Reseller Ledger models

Test strategy:
1. Unit tests for individual components (models, metrics, adapters)
2. Integration tests for flows (with an in-memory remote backend)
3. No real API calls in tests (use fakes)
"""

import json
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from reseller_ledger.audit import AuditLogger
from reseller_ledger.models.records import (
    Expense,
    ExpenseCategory,
    PlanType,
    Principal,
    Transaction,
    TransactionDraft,
    to_remote_payload,
    to_storage_dict,
)
from reseller_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

from conftest import make_expense, make_transaction, make_transaction_draft


class TestTransactionModels:
    """Tests for sale records."""

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        tx = make_transaction()
        assert tx.quantity == 1
        assert tx.currency == "USD"
        assert tx.is_historical is False
        assert tx.owner_id is None

    def test_customer_name_strips_whitespace(self):
        """Test that whitespace is stripped from customer names."""
        tx = make_transaction(customer_name="  Alice  ")
        assert tx.customer_name == "Alice"

    def test_rejects_negative_prices(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            make_transaction(cost_price=Decimal("-1"))
        with pytest.raises(ValidationError):
            make_transaction(sale_price=Decimal("-0.01"))

    def test_rejects_zero_quantity(self):
        """Test quantity must be at least 1."""
        with pytest.raises(ValidationError):
            make_transaction(quantity=0)

    def test_rejects_unknown_plan(self):
        with pytest.raises(ValidationError):
            make_transaction(plan_type="Enterprise")

    def test_id_is_required(self):
        with pytest.raises(ValidationError):
            Transaction(
                date=date(2024, 1, 1),
                plan_type=PlanType.GO,
                cost_price=Decimal("1"),
                sale_price=Decimal("2"),
            )

    def test_accepts_camel_case_keys(self):
        """Stored documents use camelCase keys."""
        tx = Transaction.model_validate({
            "id": "abc",
            "date": "2024-02-10",
            "planType": "Google AI Pro",
            "costPrice": 50,
            "salePrice": 80.5,
            "isHistorical": True,
            "ownerId": "owner-1",
        })
        assert tx.plan_type == PlanType.GOOGLE_AI_PRO
        assert tx.sale_price == Decimal("80.5")
        assert tx.is_historical is True
        assert tx.owner_id == "owner-1"

    def test_models_are_frozen(self):
        tx = make_transaction()
        with pytest.raises(ValidationError):
            tx.quantity = 3


class TestUnitEconomics:
    """Tests for quantity and unit price handling."""

    def test_unit_prices_are_derived(self):
        tx = make_transaction(cost_price=Decimal("60"), sale_price=Decimal("84"), quantity=3)
        assert tx.unit_cost_price == Decimal("20")
        assert tx.unit_sale_price == Decimal("28")
        assert tx.gross_profit == Decimal("24")

    def test_with_quantity_keeps_unit_prices(self):
        """Changing quantity rescales totals, never unit prices."""
        draft = make_transaction_draft(cost_price=Decimal("20"), sale_price=Decimal("28"))
        tripled = draft.with_quantity(3)

        assert tripled.quantity == 3
        assert tripled.cost_price == Decimal("60")
        assert tripled.sale_price == Decimal("84")
        assert tripled.unit_cost_price == draft.unit_cost_price
        assert tripled.unit_sale_price == draft.unit_sale_price
        assert draft.quantity == 1

    def test_with_quantity_keeps_unit_prices_for_uneven_totals(self):
        """Totals that do not divide by the quantity keep their unit prices at any quantity."""
        draft = make_transaction_draft(
            cost_price=Decimal("10"), sale_price=Decimal("20"), quantity=3
        )

        for quantity in range(1, 50):
            rescaled = draft.with_quantity(quantity)
            assert rescaled.unit_cost_price == draft.unit_cost_price == Decimal("3.33")
            assert rescaled.unit_sale_price == draft.unit_sale_price == Decimal("6.67")
            assert rescaled.with_quantity(3).unit_cost_price == draft.unit_cost_price

    def test_with_quantity_same_quantity_is_unchanged(self):
        draft = make_transaction_draft(cost_price=Decimal("10"), quantity=3)
        assert draft.with_quantity(3).cost_price == Decimal("10")

    def test_money_is_rounded_to_cents(self):
        tx = make_transaction(cost_price=Decimal("10.005"), sale_price=Decimal("3.333333"))
        assert tx.cost_price == Decimal("10.01")
        assert tx.sale_price == Decimal("3.33")

    def test_with_quantity_rejects_zero(self):
        with pytest.raises(ValueError):
            make_transaction_draft().with_quantity(0)

    def test_from_unit_prices(self):
        draft = TransactionDraft.from_unit_prices(
            unit_cost=Decimal("12.50"),
            unit_sale=Decimal("18"),
            quantity=4,
            date=date(2024, 5, 5),
            plan_type=PlanType.GO,
        )
        assert draft.cost_price == Decimal("50")
        assert draft.sale_price == Decimal("72")
        assert draft.unit_sale_price == Decimal("18")


class TestExpenseModels:

    def test_expense_creation(self):
        expense = make_expense()
        assert expense.category == ExpenseCategory.GMAIL
        assert expense.amount == Decimal("6")

    def test_rejects_negative_amount(self):
        with pytest.raises(ValidationError):
            make_expense(amount=Decimal("-5"))

    def test_rejects_unknown_category(self):
        with pytest.raises(ValidationError):
            make_expense(category="Rent")


class TestSerialization:
    """Tests for the storage and cloud document shapes."""

    def test_storage_dict_is_camel_case_json(self):
        data = to_storage_dict(make_transaction(quantity=2, cost_price=Decimal("40"), sale_price=Decimal("56")))
        assert data["planType"] == "Plus"
        assert data["costPrice"] == 40.0
        assert data["date"] == "2024-03-01"
        assert "ownerId" not in data
        json.dumps(data)

    def test_json_money_reloads_exactly(self):
        """A rescaled record read back from its JSON form has the same amounts."""
        tx = make_transaction(cost_price=Decimal("10"), sale_price=Decimal("20"), quantity=3)
        rescaled = tx.with_quantity(7)

        reloaded = Transaction.model_validate_json(rescaled.model_dump_json(by_alias=True))

        assert reloaded.cost_price == rescaled.cost_price == Decimal("23.31")
        assert reloaded.unit_cost_price == tx.unit_cost_price

    def test_remote_payload_overrides_owner(self):
        """ownerId is always the given principal, never the caller's value."""
        tx = make_transaction(owner_id="someone-else")
        payload = to_remote_payload(tx, "owner-1")

        assert payload["ownerId"] == "owner-1"
        assert "id" not in payload

    def test_remote_payload_from_draft(self):
        payload = to_remote_payload(make_transaction_draft(), "owner-1")
        assert payload["ownerId"] == "owner-1"
        assert payload["salePrice"] == 28.0

    def test_principal_requires_uid(self):
        with pytest.raises(ValidationError):
            Principal(uid="")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_ADDED,
            description="Test record added",
        )
        assert event.event_type == AuditEventType.RECORD_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.record_added("transactions", "tx-9", "local")
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "record_added"
        assert log_dict["entity_type"] == "transactions"
        assert log_dict["entity_id"] == "tx-9"
        assert "timestamp" in log_dict

    def test_write_blocked_is_warning(self):
        event = AuditEventBuilder.write_blocked("expenses", "add")
        assert event.event_type == AuditEventType.WRITE_BLOCKED
        assert event.severity == AuditSeverity.WARNING

    def test_corrupt_snapshot_event(self):
        event = AuditEventBuilder.local_snapshot_seeded(
            "transactions", 5, corrupt=True, error_message="bad json"
        )
        assert event.event_type == AuditEventType.LOCAL_SNAPSHOT_CORRUPT
        assert event.error_message == "bad json"


class TestAuditLogger:

    def test_keeps_history_newest_first(self):
        audit_logger = AuditLogger(history_size=2)
        for record_id in ("a", "b", "c"):
            audit_logger.log_record_added("transactions", record_id, "local")

        assert [e.entity_id for e in audit_logger.recent_events()] == ["c", "b"]

    def test_failing_log_sink_never_raises(self):
        """A broken structured log still records the event and lets the caller continue."""
        audit_logger = AuditLogger()
        audit_logger._logger = MagicMock()
        audit_logger._logger.info.side_effect = OSError("disk full")

        audit_logger.log_record_added("transactions", "tx-1", "local")

        assert audit_logger.recent_events(1)[0].entity_id == "tx-1"
