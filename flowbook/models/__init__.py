"""
Data Models Package

This package contains all Pydantic models used in FlowBook.
All data flowing through the system must conform to these schemas.
"""

from flowbook.models.expense import (
    CategoryExpenseSummary,
    DailyExpenseSummary,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
    day_bounds,
    day_key,
    from_epoch_millis,
    parse_day,
    to_epoch_millis,
)
from flowbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CategoryExpenseSummary",
    "DailyExpenseSummary",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ValidationIssue",
    "ValidationResult",
    # Calendar day helpers
    "day_bounds",
    "day_key",
    "from_epoch_millis",
    "parse_day",
    "to_epoch_millis",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
