"""
Main Orchestrator for FlowBook

This module ties together all the components and defines the
end-to-end flows behind the three screens:
1. Entry (form → validate → insert → refresh today's total)
2. List (date or category filter → live listing → delete)
3. Report (live summaries → plain-text / CSV export)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- Every failure becomes a message in screen state, never a crash
- Every change is audited

Each flow owns a pydantic state model and replaces it (never mutates
it in place), so callers can hold on to an old state safely.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from flowbook.audit import AuditLogger, configure_logging, create_correlation_id
from flowbook.config import get_settings
from flowbook.export import ExportError, ReportExporter
from flowbook.models.expense import (
    CategoryExpenseSummary,
    DailyExpenseSummary,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    parse_day,
)
from flowbook.repository import (
    ExpenseRepository,
    group_expenses,
    summarize_by_category,
    summarize_last_7_days,
)
from flowbook.services.storage import (
    ExpenseStoreInterface,
    SQLiteExpenseStore,
    StorageError,
    Subscription,
)
from flowbook.services.storage.interface import Day
from flowbook.validation import ExpenseValidator, ValidationError


ZERO = Decimal("0.00")


# =============================================================================
# Screen state
# =============================================================================

class EntryFormState(BaseModel):
    """State of the add-expense form."""

    title: str = ""
    amount: str = ""
    selected_category: Optional[ExpenseCategory] = None
    notes: str = ""
    is_loading: bool = False
    error_message: Optional[str] = None
    is_success: bool = False
    today_total: Decimal = ZERO

    def to_draft(self) -> ExpenseDraft:
        return ExpenseDraft(
            title=self.title,
            amount=self.amount,
            category=self.selected_category,
            notes=self.notes,
        )


class ListState(BaseModel):
    """State of the expense listing."""

    expenses: list[Expense] = Field(default_factory=list)
    selected_date: str
    selected_category: Optional[ExpenseCategory] = None
    group_by_category: bool = False
    total_amount: Decimal = ZERO
    total_count: int = 0
    is_loading: bool = False
    error_message: Optional[str] = None


class ReportState(BaseModel):
    """State of the report screen."""

    daily_summaries: list[DailyExpenseSummary] = Field(default_factory=list)
    category_summaries: list[CategoryExpenseSummary] = Field(default_factory=list)
    total_amount: Decimal = ZERO
    total_count: int = 0
    is_loading: bool = False
    error_message: Optional[str] = None
    is_exporting: bool = False


def _newest_days_first(summaries: list[DailyExpenseSummary]) -> list[DailyExpenseSummary]:
    return sorted(
        (summary for summary in summaries if summary.expense_count > 0),
        key=lambda summary: summary.date,
        reverse=True,
    )


async def _audit_live_failure(
    audit_logger: Optional[AuditLogger],
    query: str,
    error: Exception,
) -> None:
    """Record a failed live query read, or anything else a refresh raised."""
    if audit_logger is None:
        return
    if isinstance(error, StorageError):
        await audit_logger.log_query_failed(query=query, error_message=str(error))
    else:
        await audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"query": query},
        )


# =============================================================================
# Flows
# =============================================================================

class ExpenseEntryFlow:
    """
    Orchestrates adding a new expense.

    Flow:
    1. Field setters → update form state
    2. add_expense → validate (all rules) → insert
    3. Success → clear form, flag success, reload today's total
    4. Failure → keep the entered fields, set error message
    """

    def __init__(
        self,
        repository: ExpenseRepository,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger
        self.state = EntryFormState()

    def _update(self, **changes) -> EntryFormState:
        self.state = self.state.model_copy(update=changes)
        return self.state

    def update_title(self, title: str) -> None:
        self._update(title=title)

    def update_amount(self, amount: str) -> None:
        self._update(amount=amount)

    def update_category(self, category: Optional[ExpenseCategory]) -> None:
        self._update(selected_category=category)

    def update_notes(self, notes: str) -> None:
        self._update(notes=notes)

    def clear_error(self) -> None:
        self._update(error_message=None)

    def clear_success(self) -> None:
        self._update(is_success=False)

    async def load_today_total(self) -> Decimal:
        """Refresh today's running total; a read failure leaves the old value."""
        try:
            total = await self._repository.today_total()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_query_failed(query="today_total", error_message=str(e))
            return self.state.today_total
        self._update(today_total=total)
        return total

    async def add_expense(self, correlation_id: Optional[UUID] = None) -> Optional[int]:
        """
        Validate the form and insert the expense.

        Returns:
            The new expense id, or None if validation or the insert failed
            (the reason is in `state.error_message`)
        """
        correlation_id = correlation_id or create_correlation_id()
        submitted = self.state

        try:
            expense = self._validator.to_expense(
                submitted.to_draft(),
                created_at=self._repository.store.now(),
            )
        except ValidationError as e:
            self._update(error_message=e.result.error_message)
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    messages=e.messages,
                    correlation_id=correlation_id,
                )
            return None

        self._update(is_loading=True, error_message=None)
        try:
            expense_id = await self._repository.insert_expense(expense)
        except StorageError as e:
            self.state = submitted.model_copy(update={
                "is_loading": False,
                "error_message": f"Failed to add expense: {e}",
            })
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    operation="insert",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None

        self.state = EntryFormState(is_success=True, today_total=submitted.today_total)
        if self._audit_logger:
            await self._audit_logger.log_expense_saved(
                expense_id=expense_id,
                title=expense.title,
                amount=str(expense.amount),
                category=expense.category.value,
                correlation_id=correlation_id,
            )

        await self.load_today_total()
        return expense_id


class ExpenseListFlow:
    """
    Orchestrates the live expense listing.

    A selected category takes precedence over the selected date. Every
    filter change replaces the single active subscription, so the list
    keeps following the store until `close()` is called.
    """

    def __init__(
        self,
        repository: ExpenseRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit_logger = audit_logger
        self._subscription: Optional[Subscription] = None
        self.state = ListState(selected_date=repository.store.current_day().isoformat())

    def _update(self, **changes) -> ListState:
        self.state = self.state.model_copy(update=changes)
        return self.state

    def _on_expenses(self, expenses: list[Expense]) -> None:
        self._update(
            expenses=expenses,
            total_amount=sum((expense.amount for expense in expenses), ZERO),
            total_count=len(expenses),
            is_loading=False,
        )

    async def _on_error(self, error: Exception) -> None:
        self._update(is_loading=False, error_message=f"Failed to load expenses: {error}")
        await _audit_live_failure(self._audit_logger, "expense_list", error)

    async def load_expenses(self) -> None:
        """(Re)subscribe to the listing for the current filters."""
        self.close()
        self._update(is_loading=True, error_message=None)

        if self.state.selected_category is not None:
            query = self._repository.expenses_by_category(self.state.selected_category)
        else:
            query = self._repository.expenses_by_date(self.state.selected_date)

        try:
            self._subscription = await query.subscribe(self._on_expenses, on_error=self._on_error)
        except StorageError as e:
            await self._on_error(e)

    async def update_selected_date(self, day: Day) -> None:
        """
        Raises:
            ValueError: If `day` is not a valid calendar date
        """
        self._update(selected_date=parse_day(day).isoformat())
        await self.load_expenses()

    async def update_selected_category(self, category: Optional[ExpenseCategory]) -> None:
        self._update(selected_category=category)
        await self.load_expenses()

    def toggle_group_by_category(self) -> None:
        self._update(group_by_category=not self.state.group_by_category)

    def clear_error(self) -> None:
        self._update(error_message=None)

    async def delete_expense(self, expense: Expense, correlation_id: Optional[UUID] = None) -> bool:
        """
        Delete an expense; the live listing refreshes on its own.

        Returns:
            True if the delete went through
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._repository.delete_expense(expense)
        except StorageError as e:
            self._update(error_message=f"Failed to delete expense: {e}")
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    operation="delete",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return False

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense.id,
                correlation_id=correlation_id,
            )
        return True

    async def update_expense(self, expense: Expense, correlation_id: Optional[UUID] = None) -> bool:
        """
        Save edits to a listed expense; the live listing refreshes on its own.

        Title, amount, category and notes are replaced; the creation time
        stays as stored.

        Returns:
            True if the update went through
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._repository.update_expense(expense)
        except StorageError as e:
            self._update(error_message=f"Failed to update expense: {e}")
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    operation="update",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return False

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=expense.id,
                correlation_id=correlation_id,
            )
        return True

    def grouped_expenses(self) -> dict[str, list[Expense]]:
        return group_expenses(self.state.expenses, by_category=self.state.group_by_category)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None


class ExpenseReportFlow:
    """
    Orchestrates the report screen and exports.

    Daily summaries are shown newest first; the screen totals cover
    only the days shown. Exports read one fresh snapshot and build
    every section from it.
    """

    def __init__(
        self,
        repository: ExpenseRepository,
        exporter: Optional[ReportExporter] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._exporter = exporter or ReportExporter()
        self._audit_logger = audit_logger
        self._subscriptions: list[Subscription] = []
        self.state = ReportState()

    def _update(self, **changes) -> ReportState:
        self.state = self.state.model_copy(update=changes)
        return self.state

    def _on_daily(self, summaries: list[DailyExpenseSummary]) -> None:
        shown = _newest_days_first(summaries)
        self._update(
            daily_summaries=shown,
            total_amount=sum((summary.total_amount for summary in shown), ZERO),
            total_count=sum(summary.expense_count for summary in shown),
            is_loading=False,
        )

    def _on_categories(self, summaries: list[CategoryExpenseSummary]) -> None:
        self._update(category_summaries=summaries)

    async def _on_daily_error(self, error: Exception) -> None:
        self._update(is_loading=False, error_message=f"Failed to load report data: {error}")
        await _audit_live_failure(self._audit_logger, "last_7_days_summaries", error)

    async def _on_category_error(self, error: Exception) -> None:
        self._update(error_message=f"Failed to load category data: {error}")
        await _audit_live_failure(self._audit_logger, "category_summary", error)

    async def load_report_data(self) -> None:
        """Subscribe to the daily and category summaries."""
        self.close()
        self._update(is_loading=True, error_message=None)

        try:
            self._subscriptions.append(await self._repository.last_7_days_summaries().subscribe(
                self._on_daily, on_error=self._on_daily_error,
            ))
        except StorageError as e:
            await self._on_daily_error(e)

        try:
            self._subscriptions.append(await self._repository.category_summary().subscribe(
                self._on_categories, on_error=self._on_category_error,
            ))
        except StorageError as e:
            await self._on_category_error(e)

    def clear_error(self) -> None:
        self._update(error_message=None)

    async def _export(self, export_format: str, render, correlation_id: Optional[UUID]) -> str:
        correlation_id = correlation_id or create_correlation_id()
        self._update(is_exporting=True)

        try:
            expenses = await self._repository.all_expenses().snapshot()
            self._exporter.ensure_exportable(expenses)
        except ExportError as e:
            self._update(is_exporting=False, error_message=str(e))
            if self._audit_logger:
                await self._audit_logger.log_export_failed(
                    export_format=export_format,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except StorageError as e:
            self._update(
                is_exporting=False,
                error_message=f"Failed to export {export_format}: {e}",
            )
            if self._audit_logger:
                await self._audit_logger.log_export_failed(
                    export_format=export_format,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        payload = render(expenses)
        self._update(is_exporting=False)
        if self._audit_logger:
            await self._audit_logger.log_export_generated(
                export_format=export_format,
                expense_count=len(expenses),
                correlation_id=correlation_id,
            )
        return payload

    async def export_plain_text(
        self,
        generated_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Build the plain-text report from a fresh snapshot.

        Raises:
            ExportError: No expenses to export
            StorageError: The snapshot could not be read
        """
        store = self._repository.store

        def render(expenses: list[Expense]) -> str:
            return self._exporter.to_plain_text_report(
                expenses,
                _newest_days_first(summarize_last_7_days(expenses, store.current_day())),
                summarize_by_category(expenses),
                generated_at=generated_at or store.now(),
            )

        return await self._export("text", render, correlation_id)

    async def export_csv(self, correlation_id: Optional[UUID] = None) -> str:
        """
        Build the CSV export from a fresh snapshot.

        Raises:
            ExportError: No expenses to export
            StorageError: The snapshot could not be read
        """
        return await self._export("CSV", self._exporter.to_csv, correlation_id)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []


def create_app_components(
    database_path: Optional[str] = None,
    store: Optional[ExpenseStoreInterface] = None,
) -> tuple[ExpenseEntryFlow, ExpenseListFlow, ExpenseReportFlow, ExpenseRepository]:
    """
    Factory function to create all application components.

    Args:
        database_path: SQLite file to open. Defaults to the configured path.
        store: Use this store instead of opening SQLite (e.g. in tests).

    Returns:
        (entry_flow, list_flow, report_flow, repository)

    Raises:
        StoreConnectionError: If the database cannot be opened
    """
    app_settings = get_settings().app
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    store = store or SQLiteExpenseStore(database_path)
    repository = ExpenseRepository(store)
    audit_logger = AuditLogger(environment=app_settings.app_environment)

    entry_flow = ExpenseEntryFlow(
        repository,
        validator=ExpenseValidator(),
        audit_logger=audit_logger,
    )
    list_flow = ExpenseListFlow(repository, audit_logger=audit_logger)
    report_flow = ExpenseReportFlow(
        repository,
        exporter=ReportExporter(),
        audit_logger=audit_logger,
    )

    return entry_flow, list_flow, report_flow, repository
