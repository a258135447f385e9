"""
Expense Repository

DESIGN DECISION: The repository is a thin facade over the store plus
two derived aggregates. All aggregation is DETERMINISTIC and done in
Python over the full expense list every time the list changes:
- last 7 days, one summary per calendar day that has expenses
- per-category totals with their share of the grand total

The data set is one person's expenses, so a full re-scan per change
is cheap. Store errors propagate unchanged; the repository adds no
error kinds of its own.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from flowbook.models.expense import (
    CategoryExpenseSummary,
    DailyExpenseSummary,
    Expense,
    ExpenseCategory,
)
from flowbook.services.storage import ExpenseStoreInterface, LiveQuery
from flowbook.services.storage.interface import Day


SUMMARY_WINDOW_DAYS = 7
ZERO = Decimal("0.00")


def _total(expenses: list[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), ZERO)


def summarize_last_7_days(expenses: list[Expense], today: date) -> list[DailyExpenseSummary]:
    """
    Group expenses into the last seven calendar days, oldest first.

    Days without expenses are left out, so the result has at most
    seven entries. Expenses outside the window are ignored.
    """
    summaries = []
    for days_back in range(SUMMARY_WINDOW_DAYS):
        day = (today - timedelta(days=days_back)).isoformat()
        day_expenses = [expense for expense in expenses if expense.day == day]
        summaries.append(DailyExpenseSummary(
            date=day,
            total_amount=_total(day_expenses),
            expense_count=len(day_expenses),
            expenses=day_expenses,
        ))

    summaries.reverse()
    return [summary for summary in summaries if summary.expense_count > 0]


def summarize_by_category(expenses: list[Expense]) -> list[CategoryExpenseSummary]:
    """
    Total per category in enumeration order, with percentage of the grand total.

    Categories with a zero total are dropped; an empty input gives an
    empty result.
    """
    grand_total = _total(expenses)

    summaries = []
    for category in ExpenseCategory:
        category_expenses = [expense for expense in expenses if expense.category == category]
        category_total = _total(category_expenses)
        if category_total <= 0:
            continue
        percentage = float(category_total / grand_total * 100) if grand_total > 0 else 0.0
        summaries.append(CategoryExpenseSummary(
            category=category,
            total_amount=category_total,
            expense_count=len(category_expenses),
            percentage=percentage,
        ))
    return summaries


def group_expenses(expenses: list[Expense], by_category: bool = False) -> dict[str, list[Expense]]:
    """
    Group a listing for display.

    Keys are category display names, or the creation time formatted
    like "05 Jan 2024 09:30 AM". Insertion order follows `expenses`.
    """
    groups: dict[str, list[Expense]] = {}
    for expense in expenses:
        if by_category:
            key = expense.category.display_name
        else:
            key = expense.created_at.strftime("%d %b %Y %I:%M %p")
        groups.setdefault(key, []).append(expense)
    return groups


class ExpenseRepository:
    """
    Entry point for everything the screens read and write.

    GUARANTEES:
    - Pass-through operations behave exactly like the store's
    - Scalar aggregates are never None (no rows -> 0)
    - Derived summaries are recomputed from a fresh snapshot on every change
    """

    def __init__(self, store: ExpenseStoreInterface):
        self._store = store

    @property
    def store(self) -> ExpenseStoreInterface:
        return self._store

    # Queries ---------------------------------------------------------------

    def all_expenses(self) -> LiveQuery[list[Expense]]:
        return self._store.all()

    def today_expenses(self) -> LiveQuery[list[Expense]]:
        return self._store.today()

    def expenses_by_date(self, day: Day) -> LiveQuery[list[Expense]]:
        return self._store.by_date(day)

    def expenses_by_category(self, category: ExpenseCategory) -> LiveQuery[list[Expense]]:
        return self._store.by_category(category)

    def expenses_by_date_range(self, start: datetime, end: datetime) -> LiveQuery[list[Expense]]:
        return self._store.by_date_range(start, end)

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        return await self._store.get_expense_by_id(expense_id)

    # Scalars ---------------------------------------------------------------

    async def today_total(self) -> Decimal:
        return await self._store.today_total() or ZERO

    async def total_by_date(self, day: Day) -> Decimal:
        return await self._store.get_total_for_day(day) or ZERO

    async def today_count(self) -> int:
        return await self._store.today_count() or 0

    async def count_by_date(self, day: Day) -> int:
        return await self._store.get_count_for_day(day) or 0

    # Commands --------------------------------------------------------------

    async def insert_expense(self, expense: Expense) -> int:
        return await self._store.insert_expense(expense)

    async def update_expense(self, expense: Expense) -> bool:
        return await self._store.update_expense(expense)

    async def delete_expense(self, expense: Expense) -> None:
        await self._store.delete_expense(expense)

    async def delete_expense_by_id(self, expense_id: int) -> None:
        await self._store.delete_expense_by_id(expense_id)

    # Derived aggregates ----------------------------------------------------

    def last_7_days_summaries(self) -> LiveQuery[list[DailyExpenseSummary]]:
        """Daily summaries for the last seven days, oldest first, empty days dropped."""
        return self.all_expenses().map(
            lambda expenses: summarize_last_7_days(expenses, self._store.current_day()),
            "last_7_days_summaries",
        )

    def category_summary(self) -> LiveQuery[list[CategoryExpenseSummary]]:
        """Per-category totals and percentages, zero categories dropped."""
        return self.all_expenses().map(summarize_by_category, "category_summary")
