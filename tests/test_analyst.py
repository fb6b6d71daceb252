"""Tests for the AI business analyst (model stubbed, no API calls)."""

import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from reseller_ledger.agents import (
    ANALYSIS_UNAVAILABLE,
    EMPTY_QUERY_MESSAGE,
    FORECAST_UNAVAILABLE,
    BusinessAnalyst,
)
from reseller_ledger.models.audit import AuditEventType
from reseller_ledger.orchestrator import AdvisoryFlow

from conftest import make_transaction


class StubModel:
    """Records prompts and replies with canned text or an error."""

    def __init__(self, text="Sales look healthy.", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class TestBusinessAnalyst:

    @pytest.mark.asyncio
    async def test_analyze_includes_snapshot_and_query(self):
        model = StubModel()
        analyst = BusinessAnalyst(model=model, context_limit=50)

        answer = await analyst.analyze([make_transaction(customer_name="Hana")], "  Which plan sells best? ")

        assert answer == "Sales look healthy."
        assert "Hana" in model.prompts[0]
        assert "User Query: Which plan sells best?" in model.prompts[0]

    @pytest.mark.asyncio
    async def test_empty_query_skips_model(self):
        model = StubModel()
        analyst = BusinessAnalyst(model=model, context_limit=50)

        assert await analyst.analyze([make_transaction()], "   ") == EMPTY_QUERY_MESSAGE
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_model_failure_degrades(self, audit_logger):
        analyst = BusinessAnalyst(
            model=StubModel(error=RuntimeError("quota exceeded")),
            context_limit=50,
            audit_logger=audit_logger,
        )

        assert await analyst.analyze([], "How are we doing?") == ANALYSIS_UNAVAILABLE
        assert await analyst.forecast([]) == FORECAST_UNAVAILABLE
        assert audit_logger.recent_events(1)[0].event_type == AuditEventType.ADVISORY_FAILED

    @pytest.mark.asyncio
    async def test_blank_reply_uses_fallback(self):
        analyst = BusinessAnalyst(model=StubModel(text="  "), context_limit=50)
        assert await analyst.forecast([make_transaction()]) == FORECAST_UNAVAILABLE

    def test_snapshot_is_bounded_to_most_recent(self):
        analyst = BusinessAnalyst(model=StubModel(), context_limit=3)
        txs = [
            make_transaction(id=str(i), date=date(2024, 1, 1) + timedelta(days=i))
            for i in range(10)
        ]

        snapshot = json.loads(analyst.build_snapshot(txs))

        assert [record["id"] for record in snapshot] == ["7", "8", "9"]


class TestAdvisoryFlow:

    @pytest.mark.asyncio
    async def test_uses_session_transactions_without_changing_them(self, ledger_session):
        model = StubModel(text="Forecast: growth.")
        flow = AdvisoryFlow(ledger_session, BusinessAnalyst(model=model, context_limit=50))
        before = ledger_session.transactions

        assert await flow.forecast() == "Forecast: growth."
        assert await flow.ask("Best customer?") == "Forecast: growth."
        assert "Alice Johnson" in model.prompts[0]
        assert ledger_session.transactions == before
