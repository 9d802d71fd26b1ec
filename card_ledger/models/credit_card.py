"""
Credit Card Data Models

These models describe the rows read from the data store and the
views derived from them:
1. Cards, purchases, installments and bills as stored
2. Purchase status and limit projections as shown to the user
3. Balances and bill line details

DESIGN DECISION: Every money value is a Decimal.
Rows may arrive as strings (Google Sheets) or numbers; pydantic parses
both, and nothing downstream ever sums floats.
"""

from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

MAX_INSTALLMENTS = 36


def to_money(value: Decimal) -> Decimal:
    """Quantize a Decimal to cents."""
    return value.quantize(CENT)


# =============================================================================
# BILL MONTH
# =============================================================================

class BillMonth(BaseModel):
    """
    A calendar year+month identifying one billing cycle.

    Stores may hold bill months as 'YYYY-MM' or as the first day of
    the month ('YYYY-MM-01'); both parse to the same value.
    """
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def parse(cls, value: Any) -> "BillMonth":
        """Build a BillMonth from a string, date or BillMonth."""
        if isinstance(value, BillMonth):
            return value
        if isinstance(value, date):
            return cls(year=value.year, month=value.month)
        if isinstance(value, str):
            parts = value.strip().split("-")
            if len(parts) in (2, 3) and all(p.isdigit() for p in parts):
                return cls(year=int(parts[0]), month=int(parts[1]))
        raise ValueError(f"Invalid bill month: {value!r}")

    @classmethod
    def of(cls, day: date) -> "BillMonth":
        return cls(year=day.year, month=day.month)

    def shift(self, months: int) -> "BillMonth":
        """Return the bill month `months` cycles later (or earlier if negative)."""
        index = self.year * 12 + (self.month - 1) + months
        return BillMonth(year=index // 12, month=index % 12 + 1)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.isoformat()

    def __lt__(self, other: "BillMonth") -> bool:
        return (self.year, self.month) < (other.year, other.month)

    def __le__(self, other: "BillMonth") -> bool:
        return (self.year, self.month) <= (other.year, other.month)

    def __gt__(self, other: "BillMonth") -> bool:
        return (self.year, self.month) > (other.year, other.month)

    def __ge__(self, other: "BillMonth") -> bool:
        return (self.year, self.month) >= (other.year, other.month)


def _coerce_bill_month(value: Any) -> BillMonth:
    if isinstance(value, dict):
        return BillMonth(**value)
    return BillMonth.parse(value)


# =============================================================================
# STORED ENTITIES
# =============================================================================

class CardSummary(BaseModel):
    """The card fields embedded in purchase and bill rows."""

    name: str = Field(..., min_length=1, max_length=200)
    is_active: bool = True


class CreditCard(BaseModel):
    """
    A credit card as stored.

    Deactivating a card never deletes its purchases or bills;
    it only flips `is_active`.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    credit_limit: Annotated[Decimal, Field(ge=0)]
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)
    is_active: bool = True

    @model_validator(mode='after')
    def validate_days(self) -> 'CreditCard':
        """Closing and due day must differ."""
        if self.closing_day == self.due_day:
            raise ValueError("Closing day must be different from due day")
        return self


class InstallmentFlag(BaseModel):
    """Paid flag of one installment, as embedded in a purchase row."""

    is_paid: bool = False


class Purchase(BaseModel):
    """
    A credit card purchase, optionally split in installments.

    `card` and `installment_flags` are filled by the ledger reader
    from the embedded card and installment rows.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    credit_card_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Annotated[Decimal, Field(gt=0)]
    purchase_date: date
    installments: int = Field(..., ge=1, le=MAX_INSTALLMENTS)
    category: Optional[str] = None
    card: Optional[CardSummary] = None
    installment_flags: list[InstallmentFlag] = Field(default_factory=list)

    @property
    def paid_installments(self) -> int:
        return sum(1 for flag in self.installment_flags if flag.is_paid)


class Installment(BaseModel):
    """One monthly share of a purchase, charged on a specific bill."""

    id: Optional[str] = None
    purchase_id: str = Field(..., min_length=1)
    credit_card_id: str = Field(..., min_length=1)
    installment_number: int = Field(default=1, ge=1, le=MAX_INSTALLMENTS)
    amount: Decimal
    due_date: Optional[date] = None
    bill_month: BillMonth
    is_paid: bool = False

    @field_validator('bill_month', mode='before')
    @classmethod
    def parse_bill_month(cls, v: Any) -> BillMonth:
        return _coerce_bill_month(v)


class Bill(BaseModel):
    """
    A monthly credit card bill.

    CRITICAL: `total_amount` as stored may be stale.
    The bill aggregator always replaces it with the sum of the
    bill's installment rows before a Bill leaves this package.
    """

    id: str = Field(..., min_length=1)
    credit_card_id: str = Field(..., min_length=1)
    bill_month: BillMonth
    total_amount: Decimal = Decimal("0.00")
    closing_date: Optional[date] = None
    due_date: Optional[date] = None
    is_paid: bool = False
    paid_date: Optional[date] = None
    card: Optional[CardSummary] = None

    @field_validator('bill_month', mode='before')
    @classmethod
    def parse_bill_month(cls, v: Any) -> BillMonth:
        return _coerce_bill_month(v)

    @field_validator('closing_date', 'due_date', 'paid_date', mode='before')
    @classmethod
    def empty_date_is_none(cls, v: Any) -> Any:
        """Blank cells come back as empty strings."""
        if v == "":
            return None
        return v


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class PurchaseStatus(BaseModel):
    """Payment progress of one purchase."""

    id: str
    description: str
    total_amount: Decimal
    installments: int = Field(..., ge=1)
    paid_installments: int = Field(..., ge=0)
    remaining_amount: Decimal = Field(..., ge=0)
    credit_card_name: str
    credit_card_active: bool
    purchase_date: date
    category: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.paid_installments >= self.installments


class LimitProjection(BaseModel):
    """Projected credit limit usage for one future month."""

    month: date
    projected_used: Decimal = Field(..., ge=0)
    projected_available: Decimal

    @field_validator('month', mode='before')
    @classmethod
    def parse_month(cls, v: Any) -> Any:
        """Accept 'YYYY-MM' as the first day of that month."""
        if isinstance(v, str) and len(v.strip()) == 7:
            return BillMonth.parse(v).first_day()
        return v


class CreditCardBalance(BaseModel):
    """Current committed and available limit of a card."""

    card_id: str
    card_name: str
    credit_limit: Decimal
    total_committed: Decimal = Field(..., ge=0)
    available_limit: Decimal
    is_active: bool


class BillInstallmentDetail(BaseModel):
    """One line of a bill: an installment and the purchase it belongs to."""

    id: str
    description: str
    purchase_date: date
    installment_number: int
    total_installments: int
    amount: Decimal
    category: Optional[str] = None


class PartialAggregationWarning(BaseModel):
    """
    A bill dropped from an aggregation because its installments
    could not be fetched.
    """

    bill_id: str
    credit_card_id: str
    bill_month: str
    error: str


class BillAggregation(BaseModel):
    """Bills with recomputed totals, plus the bills that had to be skipped."""

    credit_card_id: str
    bills: list[Bill] = Field(default_factory=list)
    warnings: list[PartialAggregationWarning] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return len(self.warnings) > 0

    @property
    def total_amount(self) -> Decimal:
        return sum((bill.total_amount for bill in self.bills), Decimal("0.00"))


# =============================================================================
# INSTALLMENT HELPERS
# =============================================================================

def split_amount(amount: Decimal, count: int) -> list[Decimal]:
    """
    Split a purchase amount into `count` installments.

    Every installment gets the amount divided evenly and truncated to
    cents; the last one absorbs the remainder so the shares add up
    exactly to `amount`.

    Example:
        100.00 / 3 -> [33.33, 33.33, 33.34]
    """
    if count < 1:
        raise ValueError("Installment count must be at least 1")
    amount = to_money(Decimal(amount))
    base = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    shares = [base] * count
    shares[-1] = amount - base * (count - 1)
    return shares


def installments_consistent(
    purchase: Purchase,
    installments: list[Installment],
    tolerance: Decimal = CENT,
) -> bool:
    """
    Check that a purchase's installment rows add up to its amount.

    The rows must belong to the purchase, there must be exactly
    `purchase.installments` of them, and their sum must match the
    purchase amount within `tolerance`.
    """
    rows = [inst for inst in installments if inst.purchase_id == purchase.id]
    if len(rows) != purchase.installments:
        return False
    total = sum((inst.amount for inst in rows), Decimal("0"))
    return abs(total - purchase.amount) <= tolerance
