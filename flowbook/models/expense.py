"""
Core Data Models for FlowBook

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce the expense invariants at runtime (positive amount, non-blank title)
2. Provide clear validation error messages
3. Be serializable for storage, export and logging

DESIGN DECISION: Only `Expense` is persisted. The summary models are
derived on demand from the current set of expenses and never stored.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


DAY_KEY_FORMAT = "%Y-%m-%d"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    Values are the category names; that is also how they are persisted.
    Display name and icon come from a lookup table below.
    """
    STAFF = "STAFF"
    TRAVEL = "TRAVEL"
    FOOD = "FOOD"
    UTILITY = "UTILITY"

    @property
    def display_name(self) -> str:
        return _CATEGORY_DISPLAY[self][0]

    @property
    def icon(self) -> str:
        return _CATEGORY_DISPLAY[self][1]

    @classmethod
    def from_display_name(cls, display_name: str) -> Optional["ExpenseCategory"]:
        """Find a category by its display name ("Food" -> FOOD)."""
        for category in cls:
            if category.display_name == display_name:
                return category
        return None


_CATEGORY_DISPLAY = {
    ExpenseCategory.STAFF: ("Staff", "👥"),
    ExpenseCategory.TRAVEL: ("Travel", "✈️"),
    ExpenseCategory.FOOD: ("Food", "🍽️"),
    ExpenseCategory.UTILITY: ("Utility", "⚡"),
}


# =============================================================================
# CALENDAR DAY HELPERS
# =============================================================================
# Timestamps are naive datetimes in local time. Store filters and
# repository grouping both go through these helpers so they agree on
# where a calendar day starts and ends.

def day_key(moment: datetime) -> str:
    """Local calendar day of a timestamp as yyyy-MM-dd."""
    return moment.strftime(DAY_KEY_FORMAT)


def parse_day(value: Union[date, datetime, str]) -> date:
    """Accept a date, a datetime or a yyyy-MM-dd string and return the date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), DAY_KEY_FORMAT).date()
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid calendar day {value!r}, expected yyyy-MM-dd") from e


def to_epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch; naive datetimes are read as local time."""
    whole_seconds = int(moment.replace(microsecond=0).timestamp())
    return whole_seconds * 1000 + moment.microsecond // 1000


def from_epoch_millis(millis: int) -> datetime:
    """Inverse of to_epoch_millis, returning a naive local datetime."""
    seconds, remainder = divmod(int(millis), 1000)
    return datetime.fromtimestamp(seconds).replace(microsecond=remainder * 1000)


def day_bounds(day: Union[date, str]) -> tuple[int, int]:
    """Half-open [start, end) epoch-millis range covering a local calendar day."""
    start = datetime.combine(parse_day(day), time.min)
    end = start + timedelta(days=1)
    return to_epoch_millis(start), to_epoch_millis(end)


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(BaseModel):
    """
    A single recorded expense.

    `id` is None until the store assigns one on insert. `created_at`
    is set once at creation; updates never change it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Store-assigned identifier (None before insert)"
    )
    title: str = Field(
        ...,
        min_length=1,
        description="Short description shown in lists"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent, as entered"
    )
    category: ExpenseCategory = Field(
        ...,
        description="Expense category"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Optional free-text notes"
    )
    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the expense was recorded (local time)"
    )

    @field_validator('notes')
    @classmethod
    def blank_notes_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        """Convert to naive local time at millisecond precision, as stored."""
        if v.tzinfo is not None:
            v = v.astimezone().replace(tzinfo=None)
        return v.replace(microsecond=v.microsecond // 1000 * 1000)

    @property
    def day(self) -> str:
        """Calendar day key this expense is grouped under."""
        return day_key(self.created_at)


class ExpenseDraft(BaseModel):
    """
    Raw entry form input, before validation.

    Everything is kept as typed by the user so the form can be shown
    again unchanged when validation or saving fails.
    """

    title: str = ""
    amount: str = ""
    category: Optional[ExpenseCategory] = None
    notes: str = ""


# =============================================================================
# DERIVED SUMMARY MODELS
# =============================================================================

class DailyExpenseSummary(BaseModel):
    """Expenses of one calendar day."""

    date: str = Field(
        ...,
        description="Calendar day key (yyyy-MM-dd)"
    )
    total_amount: Decimal = Field(
        default=Decimal("0"),
        description="Sum of amounts for the day"
    )
    expense_count: int = Field(
        default=0,
        ge=0
    )
    expenses: list[Expense] = Field(default_factory=list)


class CategoryExpenseSummary(BaseModel):
    """Share of spending that went to one category."""

    category: ExpenseCategory
    total_amount: Decimal = Field(
        default=Decimal("0")
    )
    expense_count: int = Field(
        default=0,
        ge=0
    )
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        description="Share of the grand total, 0-100, unrounded"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem with an entry form field."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value', 'too_long')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class ValidationResult(BaseModel):
    """All issues found in one entry form submission."""

    validated_at: datetime = Field(
        default_factory=datetime.now
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="Every rule violation, in rule order"
    )

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def error_message(self) -> Optional[str]:
        """Messages joined for display, None when valid."""
        if self.is_valid:
            return None
        return ", ".join(self.messages)

    def fields_with_issues(self) -> set[str]:
        return {issue.field for issue in self.issues}
