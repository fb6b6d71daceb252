"""
Core Ledger Records

These models define the strict schemas for sales and spend records.
They are designed to:
1. Enforce the ledger invariants at construction time
2. Serialize to the same camelCase shape in local and cloud storage
3. Be immutable values: edits produce copies, never in-place mutation

DESIGN DECISION: Money is Decimal in memory, rounded to cents on the way in,
and a JSON number on the wire. A cent amount below 10^13 has an exact
shortest float repr, so a write followed by a reload gives back the same
Decimal. Unit economics are compared at the same cent precision.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Optional, TypeVar, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel


CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round an amount to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


Money = Annotated[
    Decimal,
    Field(ge=0, lt=Decimal("1e13")),
    AfterValidator(quantize_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PlanType(str, Enum):
    """Subscription tiers the business resells."""
    PLUS = "Plus"
    GO = "Go"
    GOOGLE_AI_PRO = "Google AI Pro"


class ExpenseCategory(str, Enum):
    """Marketing and account-acquisition spend categories."""
    GMAIL = "Gmail"
    FACEBOOK_ADS = "Facebook Ads"
    POSTER = "Poster"
    OTHER = "Other"


# =============================================================================
# BASE
# =============================================================================

class LedgerModel(BaseModel):
    """Shared config: camelCase on the wire, frozen in memory."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
        extra="ignore",
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(LedgerModel):
    """
    A sale as entered by the operator, before it has an id.

    `cost_price` and `sale_price` are totals for the whole sale
    (unit value x quantity). Unit values are always derived.
    """

    date: date
    customer_name: Optional[str] = Field(default=None, max_length=200)
    plan_type: PlanType
    cost_price: Money
    sale_price: Money
    quantity: int = Field(default=1, ge=1)
    currency: str = Field(default="USD", min_length=1, max_length=10)
    is_historical: bool = Field(
        default=False,
        description="Past bookkeeping entry: counted in totals, not in trends"
    )
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def unit_cost_price(self) -> Decimal:
        """Cost per unit, in cents."""
        return quantize_money(self.cost_price / self.quantity)

    @property
    def unit_sale_price(self) -> Decimal:
        """Sale price per unit, in cents."""
        return quantize_money(self.sale_price / self.quantity)

    @property
    def gross_profit(self) -> Decimal:
        """Sale total minus cost total."""
        return self.sale_price - self.cost_price

    def with_quantity(self, quantity: int):
        """
        Return a copy with a new quantity and the same unit economics.

        The new totals are the cent unit prices times the new quantity,
        so `unit_cost_price` and `unit_sale_price` are unchanged for any
        quantity, including totals that do not divide evenly. Asking for
        the current quantity returns the record as it is.

        Raises:
            ValueError: If quantity is below 1
        """
        if quantity < 1:
            raise ValueError("Quantity must be at least 1")
        if quantity == self.quantity:
            return self
        return self.model_copy(update={
            "quantity": quantity,
            "cost_price": self.unit_cost_price * quantity,
            "sale_price": self.unit_sale_price * quantity,
        })

    @classmethod
    def from_unit_prices(
        cls,
        *,
        unit_cost: Decimal,
        unit_sale: Decimal,
        quantity: int = 1,
        **fields: Any,
    ) -> "TransactionDraft":
        """Build a sale from per-unit prices."""
        return cls(
            cost_price=quantize_money(unit_cost) * quantity,
            sale_price=quantize_money(unit_sale) * quantity,
            quantity=quantity,
            **fields,
        )


class Transaction(TransactionDraft):
    """
    A stored sale.

    `owner_id` is set if and only if the record lives in the cloud
    database, and always equals the principal that wrote it.
    """

    id: str = Field(..., min_length=1)
    owner_id: Optional[str] = None


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(LedgerModel):
    """Operating spend for a period, not tied to an individual sale."""

    date: date
    category: ExpenseCategory
    amount: Money
    description: Optional[str] = Field(default=None, max_length=1000)


class Expense(ExpenseDraft):
    """A stored expense."""

    id: str = Field(..., min_length=1)
    owner_id: Optional[str] = None


# =============================================================================
# PRINCIPAL
# =============================================================================

class Principal(BaseModel):
    """The authenticated identity that scopes cloud reads and writes."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = None


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

LedgerRecord = Union[Transaction, Expense]
DraftRecord = Union[TransactionDraft, ExpenseDraft]
RecordT = TypeVar("RecordT", Transaction, Expense)


def to_storage_dict(record: Union[LedgerRecord, DraftRecord]) -> dict[str, Any]:
    """Convert a record to its JSON-compatible camelCase shape."""
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def to_remote_payload(
    record: Union[LedgerRecord, DraftRecord],
    owner_id: str,
) -> dict[str, Any]:
    """
    Build the document body written to the cloud database.

    The id is never part of the body (the backend owns it) and
    `ownerId` is always the given principal, whatever the record held.
    """
    payload = record.model_dump(
        mode="json",
        by_alias=True,
        exclude={"id", "owner_id"},
    )
    payload["ownerId"] = owner_id
    return payload
