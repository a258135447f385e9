"""
Report Export

Formats an already-fetched snapshot into export payloads:
- a plain-text report (daily, category and detailed sections)
- a CSV listing of every expense

Both formatters are total: they never fail on a valid snapshot.
Refusing to export an empty snapshot is done by `ensure_exportable`,
which callers run first.
"""

import csv
import io
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from flowbook.config import get_settings
from flowbook.models.expense import (
    CategoryExpenseSummary,
    DailyExpenseSummary,
    Expense,
)


CSV_HEADER = "Title,Category,Amount,Notes,Date"
EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M"
GENERATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExportError(Exception):
    """Export requested but there is nothing to export."""
    pass


def _csv_amount(amount: Decimal) -> Union[int, float]:
    """Numeric cell value without trailing zeros: 20.00 -> 20, 20.50 -> 20.5."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _newest_first(expenses: list[Expense]) -> list[Expense]:
    return sorted(expenses, key=lambda expense: expense.created_at, reverse=True)


class ReportExporter:
    """Builds text and CSV exports from expense snapshots."""

    def __init__(self, currency_symbol: Optional[str] = None):
        self._currency_symbol = (
            currency_symbol if currency_symbol is not None
            else get_settings().export.currency_symbol
        )

    def _money(self, amount: Decimal) -> str:
        return f"{self._currency_symbol}{amount:.2f}"

    @staticmethod
    def ensure_exportable(expenses: list[Expense]) -> None:
        """
        Raises:
            ExportError: If the snapshot has no expenses
        """
        if not expenses:
            raise ExportError("No data to export")

    def to_plain_text_report(
        self,
        expenses: list[Expense],
        daily_summaries: list[DailyExpenseSummary],
        category_summaries: list[CategoryExpenseSummary],
        generated_at: Optional[datetime] = None,
    ) -> str:
        """
        Render the fixed-layout text report.

        Section order is always DAILY SUMMARY, CATEGORY SUMMARY,
        DETAILED EXPENSES. Summaries are printed in the order given;
        detailed expenses are sorted newest first. Percentages are
        truncated to whole numbers.
        """
        generated_at = generated_at or datetime.now()
        rule = "-" * 30

        lines = [
            "EXPENSE REPORT",
            f"Generated on: {generated_at.strftime(GENERATED_AT_FORMAT)}",
            "=" * 50,
        ]

        lines.append("")
        lines.append("DAILY SUMMARY (Recent Days with Expenses)")
        lines.append(rule)
        for summary in daily_summaries:
            lines.append(
                f"{summary.date}: {self._money(summary.total_amount)} "
                f"({summary.expense_count} expenses)"
            )

        lines.append("")
        lines.append("CATEGORY SUMMARY")
        lines.append(rule)
        for summary in category_summaries:
            lines.append(
                f"{summary.category.display_name}: {self._money(summary.total_amount)} "
                f"({int(summary.percentage)}%)"
            )

        lines.append("")
        lines.append("DETAILED EXPENSES")
        lines.append(rule)
        for expense in _newest_first(expenses):
            lines.append(" | ".join([
                expense.title,
                expense.category.display_name,
                self._money(expense.amount),
                expense.created_at.strftime(EXPORT_DATE_FORMAT),
            ]))

        return "\n".join(lines) + "\n"

    def to_csv(self, expenses: list[Expense]) -> str:
        """
        Render expenses as CSV, newest first.

        Text fields are always quoted (embedded quotes doubled); the
        amount is written bare. Missing notes become an empty string.
        """
        buffer = io.StringIO()
        buffer.write(CSV_HEADER + "\n")
        writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
        for expense in _newest_first(expenses):
            writer.writerow([
                expense.title,
                expense.category.display_name,
                _csv_amount(expense.amount),
                expense.notes or "",
                expense.created_at.strftime(EXPORT_DATE_FORMAT),
            ])
        return buffer.getvalue()
