"""
Core Data Models for Finance Tracker

These models define the schemas for everything flowing between the
database, the in-memory store and the presentation layer.
They are designed to:
1. Turn raw database rows into typed objects in one place
2. Keep derived fields (category stats, joined names) clearly marked
3. Be serializable for logging and display

DESIGN DECISION: Money is Decimal everywhere above the database layer.
The database stores REAL values; conversion happens when rows are validated.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_iso_date(value: Any) -> str:
    """Accept date/datetime objects or ISO-8601 strings; store the string form."""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValueError(f"Date must be an ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Date is not ISO-8601: {value!r}")
    return text


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a money movement.

    Rows written before the type column existed carry NULL,
    which is always read as EXPENSE.
    """
    EXPENSE = "expense"
    INCOME = "income"


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(BaseModel):
    """
    A category row, optionally augmented with month statistics.

    `total_spent` and `percentage` are derived by the month summary
    and are never written back to the database.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    name: str
    icon: str = ""
    color: str = ""
    budget_limit: Decimal = Field(
        default=Decimal("0"),
        description="Monthly budget limit (0 = no limit)"
    )
    category_type: TransactionType = Field(
        default=TransactionType.EXPENSE,
        description="Whether transactions in this category are expense or income"
    )

    # Derived-only
    total_spent: Optional[Decimal] = None
    percentage: Optional[int] = None

    @field_validator('icon', 'color', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('budget_limit', mode='before')
    @classmethod
    def default_budget(cls, v: Any) -> Any:
        return Decimal("0") if v is None else v

    @field_validator('category_type', mode='before')
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return v or TransactionType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.category_type == TransactionType.INCOME


class CategoryCreate(BaseModel):
    """Input for a new category. The id is assigned by the database."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = ""
    color: str = ""
    budget_limit: Optional[Decimal] = Field(default=None, ge=0)
    category_type: Optional[TransactionType] = None


class CategoryUpdate(BaseModel):
    """
    Partial category update.

    Only name, icon and color can change after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A transaction row joined with its category's display fields.

    category_name/icon/color are read-only projections of the join.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    category_id: int
    amount: Decimal
    date: str
    note: str = ""
    type: TransactionType = TransactionType.EXPENSE
    image_uri: Optional[str] = None
    created_at: Optional[int] = Field(
        default=None,
        description="Unix timestamp assigned by the database"
    )

    # Joined from categories
    category_name: Optional[str] = None
    category_icon: Optional[str] = None
    category_color: Optional[str] = None

    @field_validator('note', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('type', mode='before')
    @classmethod
    def default_type(cls, v: Any) -> Any:
        return v or TransactionType.EXPENSE


class TransactionCreate(BaseModel):
    """
    Input for a new transaction.

    The category must exist; that is checked by callers, not the store.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: int
    amount: Decimal = Field(..., gt=0, description="Positive amount")
    date: str = Field(..., description="ISO-8601 date or date-time")
    note: str = ""
    type: Optional[TransactionType] = None
    image_uri: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v: Any) -> str:
        return _validate_iso_date(v)


# =============================================================================
# SPLIT BILLS
# =============================================================================

class SplitBillMember(BaseModel):
    """One participant's share of a split bill."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    split_bill_id: int
    name: str
    share_amount: Decimal
    is_me: bool = False


class SplitBill(BaseModel):
    """
    A shared expense.

    `members` is empty unless the bill was loaded with its members.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    date: str
    name: str
    total_amount: Decimal
    image_uri: Optional[str] = None
    created_at: Optional[int] = None
    members: list[SplitBillMember] = Field(default_factory=list)


class SplitBillMemberCreate(BaseModel):
    """Input for one member of a new split bill."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    share_amount: Decimal = Field(..., ge=0)
    is_me: bool = False


class SplitBillCreate(BaseModel):
    """Input for a new split bill (members are passed separately)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    date: str
    total_amount: Decimal = Field(..., ge=0)
    image_uri: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v: Any) -> str:
        return _validate_iso_date(v)

    def shares_match(self, members: list[SplitBillMemberCreate]) -> bool:
        """Do the member shares add up to the bill total?"""
        return sum((m.share_amount for m in members), Decimal("0")) == self.total_amount


# =============================================================================
# SUMMARY & STATE
# =============================================================================

class MonthSummary(BaseModel):
    """Aggregate totals for one calendar month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Year and month as YYYY-MM"
    )
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    categories: list[Category] = Field(default_factory=list)


class FinanceState(BaseModel):
    """
    Immutable snapshot of the store's in-memory view.

    A new snapshot replaces the old one after every successful action,
    so readers never observe a half-applied update.
    """
    model_config = ConfigDict(frozen=True)

    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    split_bills: list[SplitBill] = Field(default_factory=list)

    balance: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")

    is_loading: bool = False

    @computed_field
    @property
    def total_month(self) -> Decimal:
        """Older name for balance."""
        return self.balance

    def categories_of(self, kind: TransactionType) -> list[Category]:
        return [c for c in self.categories if c.category_type == kind]


class ActionResult(BaseModel):
    """
    Outcome of a store action.

    Actions never raise; callers inspect `success` instead.
    """

    action: str
    success: bool
    entity_id: Optional[int] = None
    error_message: Optional[str] = None
    completed_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def ok(cls, action: str, entity_id: Optional[int] = None) -> "ActionResult":
        return cls(action=action, success=True, entity_id=entity_id)

    @classmethod
    def failed(
        cls,
        action: str,
        error: Exception,
        entity_id: Optional[int] = None,
    ) -> "ActionResult":
        return cls(
            action=action,
            success=False,
            entity_id=entity_id,
            error_message=f"{type(error).__name__}: {error}",
        )


# =============================================================================
# NATURAL LANGUAGE ENTRY
# =============================================================================

class ParsedTransaction(BaseModel):
    """
    What the text parser thinks the user meant.

    CRITICAL: This is PROPOSED data. It goes through TransactionValidator
    before anything is written.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = None
    name: str = ""
    category: str = ""
    type: TransactionType = TransactionType.EXPENSE

    @field_validator('name', 'category', mode='before')
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
        return v or TransactionType.EXPENSE


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_amount', 'category_not_found')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validating caller-side input."""

    validated_at: datetime = Field(default_factory=_utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
