"""AI Agents package."""

from reseller_ledger.agents.analyst import (
    ANALYSIS_UNAVAILABLE,
    EMPTY_QUERY_MESSAGE,
    FORECAST_UNAVAILABLE,
    BusinessAnalyst,
)

__all__ = [
    "ANALYSIS_UNAVAILABLE",
    "EMPTY_QUERY_MESSAGE",
    "FORECAST_UNAVAILABLE",
    "BusinessAnalyst",
]
