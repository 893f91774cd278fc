"""
Core Data Models for the Finance Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal end to end (never float)
3. Be serializable for storage and logging
4. Replace loosely-typed dicts with explicit records

DESIGN DECISION: Stored records (Entry, Category, Payment) and derived
records (EntryTotals, AnnotatedEntry, EntryGroup) are separate models.
Derived records are recomputed on every request and never persisted.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ZERO = Decimal("0.00")
MAX_ENTRY_AMOUNT = Decimal("99999999.99")
MIN_PAYMENT_AMOUNT = Decimal("0.01")
UNCATEGORIZED_LABEL = "Uncategorized"
DATE_KEY_FORMAT = "%Y-%m-%d"
DATE_LABEL_FORMAT = "%b %d, %Y"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """Kind of ledger entry."""
    INCOME = "income"
    EXPENSE = "expense"


class GroupBy(str, Enum):
    """How the grouped view partitions entries."""
    DATE = "date"
    CATEGORY = "category"


class ExtensionDirection(str, Enum):
    """Which side of a loaded date window to grow."""
    BACKWARD = "backward"
    FORWARD = "forward"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Category(BaseModel):
    """
    A user-defined bucket for entries.

    Names are unique per owner, compared case-insensitively.
    The storage layer enforces uniqueness; this model only trims.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=65535)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def normalized_name(self) -> str:
        return self.name.lower()


class Entry(BaseModel):
    """
    A single income or expense record.

    Owned by exactly one user. Deleting a category does not delete
    its entries; category_id simply becomes None.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    type: EntryType
    amount: Annotated[
        Decimal,
        Field(ge=0, le=MAX_ENTRY_AMOUNT, decimal_places=2, description="Entry amount"),
    ]
    date: date
    description: Optional[str] = Field(default=None, max_length=65535)
    category_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_expense(self) -> bool:
        return self.type == EntryType.EXPENSE

    @property
    def is_income(self) -> bool:
        return self.type == EntryType.INCOME


class Payment(BaseModel):
    """
    A partial or full settlement recorded against an entry.

    Payments are immutable once created: there is no update operation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    entry_id: UUID
    amount: Annotated[
        Decimal,
        Field(ge=MIN_PAYMENT_AMOUNT, decimal_places=2, description="Amount paid"),
    ]
    date: date
    notes: Optional[str] = Field(default=None, max_length=65535)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DRAFTS - user input before it becomes a stored record
# =============================================================================

class EntryDraft(BaseModel):
    """
    Input for creating or updating an entry.

    Either category_id or category_name may be given. A category_name is
    resolved (case-insensitively) to an existing category or a new one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: EntryType
    amount: Annotated[
        Decimal,
        Field(ge=0, le=MAX_ENTRY_AMOUNT, decimal_places=2),
    ]
    date: date
    description: Optional[str] = Field(default=None, max_length=65535)
    category_id: Optional[UUID] = None
    category_name: Optional[str] = Field(default=None, max_length=255)


class PaymentDraft(BaseModel):
    """Input for recording a payment."""
    model_config = ConfigDict(str_strip_whitespace=True)

    entry_id: UUID
    amount: Annotated[
        Decimal,
        Field(ge=MIN_PAYMENT_AMOUNT, decimal_places=2),
    ]
    date: date
    notes: Optional[str] = Field(default=None, max_length=65535)


# =============================================================================
# DERIVED RECORDS (never persisted)
# =============================================================================

class EntryTotals(BaseModel):
    """Payment reconciliation snapshot for one entry."""

    total_paid: Decimal = ZERO
    remaining: Decimal = ZERO
    is_fully_paid: bool = False
    is_partially_paid: bool = False


class AnnotatedEntry(BaseModel):
    """
    An entry together with everything the grouped view needs to show it.

    Totals are computed once per request so that the value shown next to
    the entry is the same value summed into its group.
    """

    entry: Entry
    category_name: Optional[str] = None
    totals: EntryTotals = Field(default_factory=EntryTotals)

    @property
    def date(self) -> date:
        return self.entry.date

    @property
    def amount(self) -> Decimal:
        return self.entry.amount

    @property
    def type(self) -> EntryType:
        return self.entry.type

    @property
    def total_paid(self) -> Decimal:
        return self.totals.total_paid

    @property
    def is_paid(self) -> bool:
        return self.totals.is_fully_paid

    @property
    def category_label(self) -> str:
        return self.category_name or UNCATEGORIZED_LABEL


class EntryGroup(BaseModel):
    """
    A bucket of entries sharing a date or a category, with totals.

    total_remaining is NOT clamped at zero: an overpaid group shows a
    negative remaining, unlike the per-entry remaining.
    """

    key: str
    label: str
    entries: list[AnnotatedEntry] = Field(default_factory=list)
    total_payable: Decimal = ZERO
    total_payment: Decimal = ZERO
    total_remaining: Decimal = ZERO
    total_income: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_payable

    @property
    def is_placeholder(self) -> bool:
        return not self.entries

    @property
    def entry_count(self) -> int:
        return len(self.entries)


class DateWindow(BaseModel):
    """An inclusive calendar window."""

    date_from: date
    date_to: date

    @property
    def days(self) -> int:
        if self.date_from > self.date_to:
            return 0
        return (self.date_to - self.date_from).days + 1


# =============================================================================
# QUERY MODELS
# =============================================================================

class GroupingRequest(BaseModel):
    """
    Everything needed to build one grouped view.

    An empty category_ids list means "all categories". Absent date
    bounds mean unbounded on that side.
    """

    query_id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    entry_type: Optional[EntryType] = None
    category_ids: list[UUID] = Field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    group_by: GroupBy = GroupBy.DATE

    @field_validator("category_ids", mode="before")
    @classmethod
    def coerce_single_category(cls, v):
        """Accept a single id where a list is expected."""
        if v is None or v == "":
            return []
        if isinstance(v, (str, UUID)):
            return [v]
        return v

    @property
    def has_window(self) -> bool:
        return self.date_from is not None and self.date_to is not None

    def with_window(self, date_from: date, date_to: date) -> "GroupingRequest":
        return self.model_copy(update={"date_from": date_from, "date_to": date_to})


class GroupedEntriesResult(BaseModel):
    """
    Result of executing a GroupingRequest.

    filters echoes the effective filters, including a defaulted window.
    """

    query_id: UUID
    executed_at: datetime = Field(default_factory=utcnow)

    success: bool
    error_message: Optional[str] = None

    group_by: GroupBy
    groups: list[EntryGroup] = Field(default_factory=list)
    filters: dict = Field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return sum(group.entry_count for group in self.groups)


class TimelineItem(BaseModel):
    """
    One row of a category's combined entries-and-payments history.

    kind is "entry" or "payment".
    """

    kind: str = Field(..., pattern="^(entry|payment)$")
    id: UUID
    date: date
    amount: Decimal
    entry_id: UUID
    entry_type: EntryType
    description: Optional[str] = None
    notes: Optional[str] = None


class CategorySummary(BaseModel):
    """A category with the number of entries that reference it."""

    category: Category
    entry_count: int = Field(default=0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'overpayment')"
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


class ValidationResult(BaseModel):
    """
    Result of validating an entry or payment draft.

    Warnings (e.g. overpayment) never block a save.
    """

    validated_at: datetime = Field(default_factory=utcnow)
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
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @model_validator(mode="after")
    def sort_issues(self) -> "ValidationResult":
        """Errors first, then warnings, then info."""
        order = {"error": 0, "warning": 1, "info": 2}
        self.issues.sort(key=lambda issue: order[issue.severity])
        return self
