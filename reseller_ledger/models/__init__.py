"""
Data Models Package

This package contains all Pydantic models used in the Reseller Ledger.
All data flowing through the system must conform to these schemas.
"""

from reseller_ledger.models.records import (
    DraftRecord,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    LedgerRecord,
    PlanType,
    Principal,
    Transaction,
    TransactionDraft,
    to_remote_payload,
    to_storage_dict,
)
from reseller_ledger.models.metrics import (
    BreakEvenResult,
    BusinessMetrics,
    ChartDataPoint,
    DashboardMetrics,
    UnitProfitBreakdown,
)
from reseller_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "DraftRecord",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "LedgerRecord",
    "PlanType",
    "Principal",
    "Transaction",
    "TransactionDraft",
    "to_remote_payload",
    "to_storage_dict",
    # Metric models
    "BreakEvenResult",
    "BusinessMetrics",
    "ChartDataPoint",
    "DashboardMetrics",
    "UnitProfitBreakdown",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
