"""
First-run sample dataset.

Seeds an empty or unreadable local store so the dashboard is not blank
on first launch. Not production data.
"""

from datetime import date
from decimal import Decimal

from reseller_ledger.models.records import (
    Expense,
    ExpenseCategory,
    PlanType,
    Transaction,
)


def default_transactions() -> list[Transaction]:
    return [
        Transaction(
            id="1", date=date(2023, 10, 24), customer_name="Alice Johnson",
            plan_type=PlanType.PLUS, cost_price=Decimal("20"), sale_price=Decimal("28"),
        ),
        Transaction(
            id="2", date=date(2023, 10, 25), customer_name="TechCorp Inc",
            plan_type=PlanType.GOOGLE_AI_PRO, cost_price=Decimal("50"), sale_price=Decimal("80"),
        ),
        Transaction(
            id="3", date=date(2023, 10, 25), customer_name="Bob Smith",
            plan_type=PlanType.PLUS, cost_price=Decimal("20"), sale_price=Decimal("28"),
        ),
        Transaction(
            id="4", date=date(2023, 10, 26), customer_name="Charlie Brown",
            plan_type=PlanType.GO, cost_price=Decimal("100"), sale_price=Decimal("140"),
        ),
        Transaction(
            id="5", date=date(2023, 10, 27), customer_name="Dave Wilson",
            plan_type=PlanType.PLUS, cost_price=Decimal("20"), sale_price=Decimal("26"),
        ),
    ]


def default_expenses() -> list[Expense]:
    return [
        Expense(
            id="e1", date=date(2023, 10, 27), category=ExpenseCategory.GMAIL,
            amount=Decimal("6.00"), description="Gmail accounts for October sales",
        ),
        Expense(
            id="e2", date=date(2023, 10, 27), category=ExpenseCategory.FACEBOOK_ADS,
            amount=Decimal("20.50"), description="October ad campaign",
        ),
        Expense(
            id="e3", date=date(2023, 10, 27), category=ExpenseCategory.POSTER,
            amount=Decimal("2.00"),
        ),
    ]
