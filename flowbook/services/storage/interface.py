"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for expense storage.
This allows us to:
1. Swap SQLite for another durable store later
2. Use small stub stores for testing failure paths
3. Keep the repository and flows decoupled from the storage engine

Implementations provide the async primitives (insert, update, delete,
filtered listing, per-day scalars). The interface builds the live
query handles on top of them, so every backend gets identical
observable semantics.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, Union

from flowbook.models.expense import Expense, ExpenseCategory, parse_day
from flowbook.services.storage.errors import (
    NotFoundError,
    StorageError,
    StoreConnectionError,
)
from flowbook.services.storage.live import ChangeNotifier, LiveQuery


Day = Union[date, str]


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation must implement the abstract methods and
    call `notify_changed()` after every mutation that changed the
    record set.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Returns the current local time. Decides what "today" is.
        """
        self._changes = ChangeNotifier()
        self._clock = clock or datetime.now

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_expense(self, expense: Expense) -> int:
        """
        Persist a new expense.

        Any id already set on `expense` is ignored.

        Returns:
            The newly assigned id (increasing, never reused)

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Replace title, amount, category and notes of a stored expense.

        `created_at` is never changed.

        Returns:
            True if updated successfully

        Raises:
            StorageError: If update fails
            NotFoundError: If no expense has this id
        """
        pass

    @abstractmethod
    async def delete_expense_by_id(self, expense_id: int) -> None:
        """
        Delete an expense by ID.

        Deleting an id that does not exist is a no-op.
        """
        pass

    @abstractmethod
    async def get_expense_by_id(self, expense_id: int) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        category: Optional[ExpenseCategory] = None,
        day: Optional[Day] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Expense]:
        """
        List expenses with optional filters, newest first.

        Args:
            category: Only this category
            day: Only expenses created on this local calendar day
            start: Created at or after this moment
            end: Created at or before this moment

        Returns:
            List of matching expenses ordered by created_at descending
        """
        pass

    @abstractmethod
    async def get_total_for_day(self, day: Day) -> Optional[Decimal]:
        """
        Sum of amounts created on a calendar day.

        Returns:
            The total, or None when the day has no expenses
        """
        pass

    @abstractmethod
    async def get_count_for_day(self, day: Day) -> int:
        """Number of expenses created on a calendar day."""
        pass

    # -------------------------------------------------------------------------
    # Shared behaviour
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def current_day(self) -> date:
        return self.now().date()

    async def notify_changed(self) -> None:
        """Push fresh snapshots to every active subscription."""
        await self._changes.notify()

    async def delete_expense(self, expense: Expense) -> None:
        """Delete by record; an unsaved expense (no id) is a no-op."""
        if expense.id is None:
            return
        await self.delete_expense_by_id(expense.id)

    def all(self) -> LiveQuery[list[Expense]]:
        return LiveQuery(self.list_expenses, self._changes, "all")

    def by_date(self, day: Day) -> LiveQuery[list[Expense]]:
        target = parse_day(day)
        return LiveQuery(
            lambda: self.list_expenses(day=target),
            self._changes,
            f"by_date({target.isoformat()})",
        )

    def by_category(self, category: ExpenseCategory) -> LiveQuery[list[Expense]]:
        category = ExpenseCategory(category)
        return LiveQuery(
            lambda: self.list_expenses(category=category),
            self._changes,
            f"by_category({category.value})",
        )

    def by_date_range(self, start: datetime, end: datetime) -> LiveQuery[list[Expense]]:
        return LiveQuery(
            lambda: self.list_expenses(start=start, end=end),
            self._changes,
            f"by_date_range({start.isoformat()}, {end.isoformat()})",
        )

    def today(self) -> LiveQuery[list[Expense]]:
        # The day is re-read on every materialisation so the handle rolls over at midnight
        return LiveQuery(
            lambda: self.list_expenses(day=self.current_day()),
            self._changes,
            "today",
        )

    async def today_total(self) -> Optional[Decimal]:
        return await self.get_total_for_day(self.current_day())

    async def today_count(self) -> int:
        return await self.get_count_for_day(self.current_day())


__all__ = [
    "Day",
    "ExpenseStoreInterface",
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
]
