"""
Entry Validation

DESIGN DECISION: Every rule is checked independently and ALL violations
are collected, so the user sees every problem with the form at once
instead of fixing them one submission at a time.

Rules:
1. Title must not be blank
2. Amount must be present, numeric, and greater than zero exactly as typed
3. A category must be selected
4. Notes, if given, must fit the notes length limit

IMPORTANT: Validation runs before any storage call. A rejected draft
never reaches the store and leaves nothing behind.
"""

from datetime import datetime
import math
from decimal import Decimal, InvalidOperation
from typing import Optional

from flowbook.config import get_settings
from flowbook.models.expense import (
    Expense,
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
)


class ValidationError(ValueError):
    """Raised when a draft cannot be turned into an expense."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.error_message or "Invalid expense")

    @property
    def messages(self) -> list[str]:
        return self.result.messages


class ExpenseValidator:
    """Validates and normalises entry form drafts."""

    def __init__(self, notes_max_length: Optional[int] = None):
        """
        Args:
            notes_max_length: Override the configured notes limit.
        """
        if notes_max_length is None:
            notes_max_length = get_settings().app.notes_max_length
        self._notes_max_length = notes_max_length

    @property
    def notes_max_length(self) -> int:
        return self._notes_max_length

    def _parse_amount(self, raw: str) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
        """
        Parse the amount field.

        Returns: (amount, issue). Exactly one of them is None.
        """
        text = (raw or "").strip()
        if not text:
            return None, ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
            )

        try:
            amount = Decimal(text)
        except InvalidOperation:
            amount = None
        # Amounts are stored as floating point; anything a float cannot hold is rejected
        if amount is None or not amount.is_finite() or not math.isfinite(float(amount)):
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Invalid amount format",
            )

        if amount <= 0:
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than 0",
            )
        return amount, None

    def validate(self, draft: ExpenseDraft) -> ValidationResult:
        """
        Check every rule and return all issues found.

        Args:
            draft: Raw form input

        Returns:
            ValidationResult; `is_valid` is True when there are no issues
        """
        issues = []

        if not draft.title.strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
            ))

        _, amount_issue = self._parse_amount(draft.amount)
        if amount_issue:
            issues.append(amount_issue)

        if draft.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
            ))

        if len(draft.notes) > self._notes_max_length:
            issues.append(ValidationIssue(
                field="notes",
                issue_type="too_long",
                message=f"Notes must be {self._notes_max_length} characters or less",
            ))

        return ValidationResult(issues=issues)

    def to_expense(
        self,
        draft: ExpenseDraft,
        created_at: Optional[datetime] = None,
    ) -> Expense:
        """
        Validate a draft and build the normalised expense to persist.

        Title is trimmed, blank notes become None and the amount is
        parsed to a Decimal exactly as typed.

        Raises:
            ValidationError: If any rule fails
        """
        result = self.validate(draft)
        if not result.is_valid:
            raise ValidationError(result)

        amount, _ = self._parse_amount(draft.amount)
        notes = draft.notes if draft.notes.strip() else None

        fields = {
            "title": draft.title.strip(),
            "amount": amount,
            "category": draft.category,
            "notes": notes,
        }
        if created_at is not None:
            fields["created_at"] = created_at
        return Expense(**fields)
