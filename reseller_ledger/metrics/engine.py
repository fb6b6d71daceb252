"""
Metrics Engine

Pure derivations over the in-memory collections. No I/O and no cached
aggregate state: every render recomputes from the current snapshot.

Two families of numbers with different inclusion rules:
- LIFETIME totals (revenue, COGS, OpEx, profit, margin, sales count)
  use every record, historical ones included
- TREND series (daily profit, plan breakdown) skip `is_historical`
  records, bucket by date or plan, and keep the most recent buckets
"""

import math
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence, Union

from reseller_ledger.models.metrics import (
    BreakEvenResult,
    BusinessMetrics,
    ChartDataPoint,
    DashboardMetrics,
    UnitProfitBreakdown,
)
from reseller_ledger.models.records import (
    Expense,
    ExpenseCategory,
    PlanType,
    Transaction,
)


Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


def _trend_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if not t.is_historical]


# =============================================================================
# LIFETIME TOTALS
# =============================================================================

def total_revenue(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.sale_price for t in transactions), ZERO)


def total_cogs(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.cost_price for t in transactions), ZERO)


def total_opex(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def net_profit(
    transactions: Sequence[Transaction],
    expenses: Sequence[Expense],
) -> Decimal:
    """Revenue minus COGS minus OpEx."""
    return total_revenue(transactions) - total_cogs(transactions) - total_opex(expenses)


def profit_margin(revenue: Decimal, profit: Decimal) -> Decimal:
    """Profit as a percentage of revenue; 0 when there is no revenue."""
    if revenue <= 0:
        return ZERO
    return profit / revenue * HUNDRED


def sales_count(transactions: Iterable[Transaction]) -> int:
    """Units sold: quantity summed, not record count."""
    return sum(t.quantity for t in transactions)


def compute_business_metrics(
    transactions: Sequence[Transaction],
    expenses: Sequence[Expense],
) -> BusinessMetrics:
    """Lifetime metric cards, historical records included."""
    revenue = total_revenue(transactions)
    cogs = total_cogs(transactions)
    opex = total_opex(expenses)
    profit = revenue - cogs - opex

    return BusinessMetrics(
        total_revenue=revenue,
        total_cogs=cogs,
        total_opex=opex,
        net_profit=profit,
        margin=profit_margin(revenue, profit),
        sales_count=sales_count(transactions),
    )


# =============================================================================
# BREAK-EVEN
# =============================================================================

def break_even(
    unit_sale_price: Number,
    unit_cost: Number,
    total_opex_amount: Number,
) -> BreakEvenResult:
    """
    Sales needed for contribution margin to cover OpEx.

    contribution margin = unit sale price - unit cost. When it is zero
    or negative no volume breaks even, and the result is unreachable
    instead of a division.

    Example: sale 450, cost 250, OpEx 7000 -> margin 200 -> 35 sales.
    """
    contribution = _to_decimal(unit_sale_price) - _to_decimal(unit_cost)
    if contribution <= 0:
        return BreakEvenResult(
            contribution_margin=contribution,
            reachable=False,
            sales_needed=None,
        )

    opex = _to_decimal(total_opex_amount)
    return BreakEvenResult(
        contribution_margin=contribution,
        reachable=True,
        sales_needed=max(0, math.ceil(opex / contribution)),
    )


# =============================================================================
# TREND SERIES (non-historical only)
# =============================================================================

def daily_profit_trend(
    transactions: Iterable[Transaction],
    buckets: int = 7,
) -> list[ChartDataPoint]:
    """
    Gross profit per date for the most recent `buckets` dates.

    Historical records are excluded. Points are in chronological order.
    """
    per_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for t in _trend_transactions(transactions):
        per_day[t.date] += t.gross_profit

    days = sorted(per_day)
    if buckets > 0:
        days = days[-buckets:]
    else:
        days = []

    return [ChartDataPoint(name=day.isoformat(), value=per_day[day]) for day in days]


def sales_by_plan(transactions: Iterable[Transaction]) -> list[ChartDataPoint]:
    """
    Units sold per plan type, for the breakdown chart.

    Historical records are excluded; plans with no sales are dropped.
    """
    units: dict[PlanType, int] = defaultdict(int)
    for t in _trend_transactions(transactions):
        units[t.plan_type] += t.quantity

    return [
        ChartDataPoint(name=plan.value, value=Decimal(units[plan]))
        for plan in PlanType
        if units[plan] > 0
    ]


def expenses_by_category(expenses: Iterable[Expense]) -> list[ChartDataPoint]:
    """OpEx per category; empty categories are dropped."""
    spend: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    for e in expenses:
        spend[e.category] += e.amount

    return [
        ChartDataPoint(name=category.value, value=spend[category])
        for category in ExpenseCategory
        if spend[category] > 0
    ]


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 5,
) -> list[Transaction]:
    """Newest sales first, for the recent sales table."""
    ordered = sorted(transactions, key=lambda t: t.date, reverse=True)
    return ordered[:limit]


# =============================================================================
# UNIT PROFIT CALCULATOR
# =============================================================================

def calculate_unit_profit(
    sale_price: Number,
    base_cost: Number,
    gmail_cost: Number = 0,
    ad_cost: Number = 0,
    poster_cost: Number = 0,
    exchange_rate: Number = 1,
    fees: Number = 0,
) -> UnitProfitBreakdown:
    """
    True per-unit profit of one sale with every cost attributed.

    All cost inputs share one currency and are converted with
    `exchange_rate`; fees are deducted from the sale price. Margin is
    taken on the net sale and is 0 when the net sale is not positive.
    """
    unit_cost = (
        _to_decimal(base_cost)
        + _to_decimal(gmail_cost)
        + _to_decimal(ad_cost)
        + _to_decimal(poster_cost)
    ) * _to_decimal(exchange_rate)

    net_sale = _to_decimal(sale_price) - _to_decimal(fees)
    profit = net_sale - unit_cost
    margin = profit / net_sale * HUNDRED if net_sale > 0 else ZERO

    return UnitProfitBreakdown(
        total_unit_cost=unit_cost,
        net_sale=net_sale,
        profit=profit,
        margin=margin,
    )


# =============================================================================
# DASHBOARD
# =============================================================================

def build_dashboard(
    transactions: Sequence[Transaction],
    expenses: Sequence[Expense],
    trend_buckets: int = 7,
) -> DashboardMetrics:
    """Everything one dashboard render needs, from one snapshot."""
    return DashboardMetrics(
        totals=compute_business_metrics(transactions, expenses),
        profit_trend=daily_profit_trend(transactions, trend_buckets),
        sales_by_plan=sales_by_plan(transactions),
        expenses_by_category=expenses_by_category(expenses),
    )
