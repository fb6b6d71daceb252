"""Tests for the metrics engine."""

import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from reseller_ledger.metrics import (
    break_even,
    build_dashboard,
    calculate_unit_profit,
    compute_business_metrics,
    daily_profit_trend,
    expenses_by_category,
    net_profit,
    profit_margin,
    recent_transactions,
    sales_by_plan,
    sales_count,
)
from reseller_ledger.models.records import ExpenseCategory, PlanType

from conftest import make_expense, make_transaction


class TestLifetimeTotals:

    def test_profit_and_margin(self):
        """Revenue 5000, COGS 2500, OpEx 1500 -> profit 1000, margin 20%."""
        txs = [make_transaction(cost_price=Decimal("2500"), sale_price=Decimal("5000"))]
        exps = [make_expense(amount=Decimal("1500"))]

        metrics = compute_business_metrics(txs, exps)

        assert metrics.total_revenue == Decimal("5000")
        assert metrics.total_cogs == Decimal("2500")
        assert metrics.total_opex == Decimal("1500")
        assert metrics.net_profit == Decimal("1000")
        assert metrics.margin == Decimal("20")

    def test_margin_is_zero_without_revenue(self):
        assert profit_margin(Decimal("0"), Decimal("-10")) == Decimal("0")
        metrics = compute_business_metrics([], [make_expense(amount=Decimal("10"))])
        assert metrics.net_profit == Decimal("-10")
        assert metrics.margin == Decimal("0")

    def test_totals_do_not_depend_on_order(self):
        txs = [
            make_transaction(id=str(i), cost_price=Decimal(i), sale_price=Decimal(i * 2))
            for i in range(1, 20)
        ]
        exps = [make_expense(id=str(i), amount=Decimal("1.10")) for i in range(5)]
        shuffled = list(txs)
        random.Random(7).shuffle(shuffled)

        assert compute_business_metrics(txs, exps) == compute_business_metrics(shuffled, list(reversed(exps)))

    def test_historical_sales_count_in_lifetime_totals(self):
        """A historical sale moves the totals but not the trend."""
        live = make_transaction(id="live", date=date(2024, 3, 2))
        historical = make_transaction(
            id="old",
            date=date(2024, 3, 1),
            cost_price=Decimal("100"),
            sale_price=Decimal("150"),
            is_historical=True,
        )

        before = compute_business_metrics([live], [])
        after = compute_business_metrics([live, historical], [])

        assert after.total_revenue - before.total_revenue == Decimal("150")
        assert after.sales_count == before.sales_count + 1
        assert daily_profit_trend([live, historical]) == daily_profit_trend([live])
        assert sales_by_plan([live, historical]) == sales_by_plan([live])

    def test_sales_count_sums_quantity(self):
        txs = [
            make_transaction(id="a", quantity=3, cost_price=Decimal("60"), sale_price=Decimal("84")),
            make_transaction(id="b"),
        ]
        assert sales_count(txs) == 4

    def test_net_profit(self):
        txs = [make_transaction(cost_price=Decimal("20"), sale_price=Decimal("28"))]
        exps = [make_expense(amount=Decimal("6"))]
        assert net_profit(txs, exps) == Decimal("2")


class TestBreakEven:

    def test_break_even_sales_needed(self):
        """Sale 450, cost 250, OpEx 7000 -> 35 sales."""
        result = break_even(450, 250, 7000)
        assert result.reachable is True
        assert result.contribution_margin == Decimal("200")
        assert result.sales_needed == 35

    def test_break_even_rounds_up(self):
        assert break_even(Decimal("10"), Decimal("7"), Decimal("10")).sales_needed == 4

    @pytest.mark.parametrize("sale,cost", [(250, 250), (200, 250)])
    def test_unreachable_when_margin_not_positive(self, sale, cost):
        result = break_even(sale, cost, 7000)
        assert result.reachable is False
        assert result.sales_needed is None

    def test_zero_opex_needs_no_sales(self):
        assert break_even(10, 5, 0).sales_needed == 0


class TestTrendSeries:

    def test_daily_trend_keeps_most_recent_buckets(self):
        start = date(2024, 1, 1)
        txs = [
            make_transaction(id=str(i), date=start + timedelta(days=i))
            for i in range(10)
        ]

        trend = daily_profit_trend(txs, buckets=7)

        assert len(trend) == 7
        assert trend[0].name == "2024-01-04"
        assert trend[-1].name == "2024-01-10"
        assert all(point.value == Decimal("8") for point in trend)

    def test_daily_trend_sums_same_day(self):
        txs = [make_transaction(id="a"), make_transaction(id="b")]
        trend = daily_profit_trend(txs)
        assert len(trend) == 1
        assert trend[0].value == Decimal("16")

    def test_sales_by_plan_uses_quantity(self):
        txs = [
            make_transaction(id="a", plan_type=PlanType.GO, quantity=2, cost_price=Decimal("2"), sale_price=Decimal("4")),
            make_transaction(id="b", plan_type=PlanType.PLUS),
        ]
        points = {p.name: p.value for p in sales_by_plan(txs)}
        assert points == {"Plus": Decimal("1"), "Go": Decimal("2")}

    def test_expenses_by_category(self):
        exps = [
            make_expense(id="a", category=ExpenseCategory.GMAIL, amount=Decimal("3")),
            make_expense(id="b", category=ExpenseCategory.GMAIL, amount=Decimal("3")),
            make_expense(id="c", category=ExpenseCategory.POSTER, amount=Decimal("2")),
        ]
        points = {p.name: p.value for p in expenses_by_category(exps)}
        assert points == {"Gmail": Decimal("6"), "Poster": Decimal("2")}

    def test_recent_transactions_newest_first(self):
        txs = [
            make_transaction(id=str(i), date=date(2024, 1, 1) + timedelta(days=i))
            for i in range(8)
        ]
        recent = recent_transactions(txs, limit=5)
        assert [t.id for t in recent] == ["7", "6", "5", "4", "3"]


class TestUnitProfitCalculator:

    def test_all_costs_attributed(self):
        result = calculate_unit_profit(
            sale_price=450,
            base_cost=200,
            gmail_cost=20,
            ad_cost=20,
            poster_cost=10,
        )
        assert result.total_unit_cost == Decimal("250")
        assert result.profit == Decimal("200")
        assert result.margin == Decimal("200") / Decimal("450") * 100

    def test_exchange_rate_and_fees(self):
        result = calculate_unit_profit(
            sale_price=3000,
            base_cost=20,
            exchange_rate=110,
            fees=100,
        )
        assert result.total_unit_cost == Decimal("2200")
        assert result.net_sale == Decimal("2900")
        assert result.profit == Decimal("700")

    def test_zero_net_sale_has_zero_margin(self):
        result = calculate_unit_profit(sale_price=10, base_cost=5, fees=10)
        assert result.margin == Decimal("0")


def test_dashboard_from_one_snapshot():
    txs = [make_transaction()]
    exps = [make_expense(amount=Decimal("2"))]

    dashboard = build_dashboard(txs, exps, trend_buckets=3)

    assert dashboard.totals.net_profit == Decimal("6")
    assert len(dashboard.profit_trend) == 1
    assert dashboard.sales_by_plan[0].name == "Plus"
    assert dashboard.expenses_by_category[0].name == "Gmail"
