"""
Derived Metric Models

Result shapes produced by the metrics engine. None of these are stored;
they are rebuilt from the current snapshot on every render.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BusinessMetrics(BaseModel):
    """Lifetime totals, historical records included."""
    model_config = ConfigDict(frozen=True)

    total_revenue: Decimal
    total_cogs: Decimal
    total_opex: Decimal
    net_profit: Decimal
    margin: Decimal = Field(description="Net profit as a percentage of revenue")
    sales_count: int = Field(description="Units sold (sum of quantity)")


class ChartDataPoint(BaseModel):
    """One labelled value in a trend or breakdown series."""
    model_config = ConfigDict(frozen=True)

    name: str
    value: Decimal


class BreakEvenResult(BaseModel):
    """
    Sales needed to cover operating expenses.

    When the contribution margin is not positive, no number of sales
    covers OpEx: `reachable` is False and `sales_needed` is None.
    """
    model_config = ConfigDict(frozen=True)

    contribution_margin: Decimal
    reachable: bool
    sales_needed: Optional[int] = None


class UnitProfitBreakdown(BaseModel):
    """Per-unit profitability of a single sale, all costs included."""
    model_config = ConfigDict(frozen=True)

    total_unit_cost: Decimal
    net_sale: Decimal
    profit: Decimal
    margin: Decimal


class DashboardMetrics(BaseModel):
    """Everything one dashboard render needs."""
    model_config = ConfigDict(frozen=True)

    totals: BusinessMetrics
    profit_trend: list[ChartDataPoint]
    sales_by_plan: list[ChartDataPoint]
    expenses_by_category: list[ChartDataPoint]
