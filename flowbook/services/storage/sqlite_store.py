"""
SQLite Storage Implementation

DESIGN DECISION: A single local SQLite file is the durable store because:
1. The data is one person's expenses on one machine
2. No server setup required
3. SQL gives us cheap per-day SUM/COUNT scalars

The table is declared with SQLAlchemy Core and every statement is built
with `select()` / `insert()` / `update()` / `delete()`, so switching the
engine URL is all it takes to point at another database.

TRADEOFFS:
- One writer at a time (fine for a single user; we serialise writes anyway)
- Amounts are stored as REAL, as entered

Timestamps are stored as epoch milliseconds in `createdAt`. Calendar
day filters are translated to the [start, end) millisecond range of
the local day, the same boundary the repository uses when grouping.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError as ModelValidationError
from sqlalchemy import (
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import URL, Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from flowbook.config import get_settings
from flowbook.models.expense import (
    Expense,
    ExpenseCategory,
    day_bounds,
    from_epoch_millis,
    to_epoch_millis,
)
from flowbook.services.storage.interface import (
    Day,
    ExpenseStoreInterface,
    NotFoundError,
    StorageError,
    StoreConnectionError,
)


MEMORY_DATABASE = ":memory:"

# SUM over REAL accumulates float noise; totals are cut back to this
SUM_PRECISION = Decimal("0.00000001")

metadata = MetaData()

expenses_table = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String, nullable=False),
    Column("amount", Float, nullable=False),
    Column("category", String, nullable=False),
    Column("notes", String, nullable=True),
    Column("createdAt", Integer, nullable=False),
    Index("idx_expenses_created_at", "createdAt"),
    Index("idx_expenses_category", "category"),
    sqlite_autoincrement=True,
)

logger = structlog.get_logger(__name__)


def _to_amount(value: float) -> Decimal:
    # repr of a float is the shortest string that reads back to it
    return Decimal(repr(float(value)))


def create_sqlite_engine(database_path: str) -> Engine:
    """
    Engine for a SQLite file, or a private in-memory database.

    An in-memory database lives as long as its single connection, so
    it is pinned with StaticPool.
    """
    url = URL.create("sqlite", database=database_path)
    if database_path == MEMORY_DATABASE:
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


class SQLiteExpenseStore(ExpenseStoreInterface):
    """
    SQLite implementation of expense storage.

    Expenses are stored one per row in the `expenses` table; ids come
    from AUTOINCREMENT so a deleted id is never handed out again.
    """

    def __init__(
        self,
        database_path: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            database_path: SQLite file to open. Defaults to the configured
                           storage path; ':memory:' gives a throwaway store.
            clock: Returns the current local time (defaults to datetime.now)
        """
        super().__init__(clock=clock)
        self._database_path = database_path or get_settings().storage.database_path
        self._write_lock = asyncio.Lock()
        self._engine = create_sqlite_engine(self._database_path)
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            self._engine.dispose()
            raise StoreConnectionError(
                f"Could not open expense database at {self._database_path}: {e}"
            ) from e

    @property
    def database_path(self) -> str:
        return self._database_path

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    def _row_to_expense(self, row: Row) -> Expense:
        """Convert a table row to an Expense."""
        return Expense(
            id=row.id,
            title=row.title,
            amount=_to_amount(row.amount),
            category=ExpenseCategory(row.category),
            notes=row.notes,
            created_at=from_epoch_millis(row.createdAt),
        )

    def _query(self, operation: str, statement) -> list[Row]:
        try:
            with self._engine.connect() as conn:
                return list(conn.execute(statement))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to {operation}: {e}") from e

    def _write(self, operation: str, statement, read: Callable) -> Any:
        """Run a statement in its own transaction and pull `read(result)` out before commit."""
        try:
            with self._engine.begin() as conn:
                return read(conn.execute(statement))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to {operation}: {e}") from e

    @staticmethod
    def _day_filter(day: Day):
        day_start, day_end = day_bounds(day)
        created_at = expenses_table.c.createdAt
        return (created_at >= day_start) & (created_at < day_end)

    async def insert_expense(self, expense: Expense) -> int:
        """Insert an expense and return its new id."""
        async with self._write_lock:
            expense_id = self._write(
                "save expense",
                insert(expenses_table).values(
                    title=expense.title,
                    amount=float(expense.amount),
                    category=expense.category.value,
                    notes=expense.notes,
                    createdAt=to_epoch_millis(expense.created_at),
                ),
                lambda result: result.inserted_primary_key[0],
            )

        logger.debug("expense_inserted", expense_id=expense_id, category=expense.category.value)
        await self.notify_changed()
        return expense_id

    async def update_expense(self, expense: Expense) -> bool:
        """Update the mutable fields of an existing expense."""
        if expense.id is None:
            raise NotFoundError("Expense has no id; it was never saved")

        async with self._write_lock:
            updated = self._write(
                "update expense",
                update(expenses_table)
                .where(expenses_table.c.id == expense.id)
                .values(
                    title=expense.title,
                    amount=float(expense.amount),
                    category=expense.category.value,
                    notes=expense.notes,
                ),
                lambda result: result.rowcount,
            )
            if updated == 0:
                raise NotFoundError(f"Expense not found: {expense.id}")

        logger.debug("expense_updated", expense_id=expense.id)
        await self.notify_changed()
        return True

    async def delete_expense_by_id(self, expense_id: int) -> None:
        """Delete an expense; a missing id changes nothing."""
        async with self._write_lock:
            deleted = self._write(
                "delete expense",
                delete(expenses_table).where(expenses_table.c.id == expense_id),
                lambda result: result.rowcount > 0,
            )

        logger.debug("expense_deleted", expense_id=expense_id, deleted=deleted)
        if deleted:
            await self.notify_changed()

    async def get_expense_by_id(self, expense_id: int) -> Optional[Expense]:
        rows = self._query(
            "get expense",
            select(expenses_table).where(expenses_table.c.id == expense_id),
        )
        if not rows:
            return None
        return self._row_to_expense(rows[0])

    async def list_expenses(
        self,
        category: Optional[ExpenseCategory] = None,
        day: Optional[Day] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Expense]:
        """List expenses with optional filters, newest first."""
        columns = expenses_table.c
        statement = select(expenses_table)

        if category is not None:
            statement = statement.where(columns.category == ExpenseCategory(category).value)
        if day is not None:
            statement = statement.where(self._day_filter(day))
        if start is not None:
            statement = statement.where(columns.createdAt >= to_epoch_millis(start))
        if end is not None:
            statement = statement.where(columns.createdAt <= to_epoch_millis(end))

        statement = statement.order_by(columns.createdAt.desc(), columns.id.desc())

        expenses = []
        for row in self._query("list expenses", statement):
            try:
                expenses.append(self._row_to_expense(row))
            except (ModelValidationError, ValueError) as e:
                logger.warning("malformed_expense_row_skipped", expense_id=row.id, error=str(e))
        return expenses

    async def get_total_for_day(self, day: Day) -> Optional[Decimal]:
        rows = self._query(
            "total expenses for day",
            select(func.sum(expenses_table.c.amount)).where(self._day_filter(day)),
        )
        total = rows[0][0]
        if total is None:
            return None
        total_amount = _to_amount(total)
        if total_amount.as_tuple().exponent < SUM_PRECISION.as_tuple().exponent:
            total_amount = total_amount.quantize(SUM_PRECISION)
        return total_amount

    async def get_count_for_day(self, day: Day) -> int:
        rows = self._query(
            "count expenses for day",
            select(func.count()).select_from(expenses_table).where(self._day_filter(day)),
        )
        return int(rows[0][0])
