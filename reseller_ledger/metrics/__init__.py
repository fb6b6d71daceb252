"""Metrics engine package."""

from reseller_ledger.metrics.engine import (
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
    total_cogs,
    total_opex,
    total_revenue,
)

__all__ = [
    "break_even",
    "build_dashboard",
    "calculate_unit_profit",
    "compute_business_metrics",
    "daily_profit_trend",
    "expenses_by_category",
    "net_profit",
    "profit_margin",
    "recent_transactions",
    "sales_by_plan",
    "sales_count",
    "total_cogs",
    "total_opex",
    "total_revenue",
]
