"""Expense repository package."""

from flowbook.repository.expense_repository import (
    SUMMARY_WINDOW_DAYS,
    ExpenseRepository,
    group_expenses,
    summarize_by_category,
    summarize_last_7_days,
)

__all__ = [
    "SUMMARY_WINDOW_DAYS",
    "ExpenseRepository",
    "group_expenses",
    "summarize_by_category",
    "summarize_last_7_days",
]
