"""Tests for the expense repository and its aggregates."""

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from flowbook.models.expense import Expense, ExpenseCategory
from flowbook.repository import (
    group_expenses,
    summarize_by_category,
    summarize_last_7_days,
)


def make_expense(title, amount, category, created_at, expense_id=None) -> Expense:
    return Expense(
        id=expense_id,
        title=title,
        amount=Decimal(amount),
        category=category,
        created_at=created_at,
    )


class TestRepositoryScenario:
    """End-to-end aggregation over a real store."""

    @pytest.mark.asyncio
    async def test_lunch_and_taxi(self, repository):
        """Test totals, counts and category shares for two expenses today."""
        await repository.insert_expense(
            make_expense("Lunch", "250", ExpenseCategory.FOOD, datetime(2024, 1, 5, 13, 0))
        )
        await repository.insert_expense(
            make_expense("Taxi", "150", ExpenseCategory.TRAVEL, datetime(2024, 1, 5, 18, 0))
        )

        assert await repository.today_total() == Decimal("400.00")
        assert await repository.today_count() == 2

        categories = await repository.category_summary().snapshot()
        assert [(c.category, c.percentage) for c in categories] == [
            (ExpenseCategory.TRAVEL, 37.5),
            (ExpenseCategory.FOOD, 62.5),
        ]

        daily = await repository.last_7_days_summaries().snapshot()
        assert len(daily) == 1
        assert daily[0].date == "2024-01-05"
        assert daily[0].total_amount == Decimal("400.00")
        assert daily[0].expense_count == 2

    @pytest.mark.asyncio
    async def test_empty_store(self, repository):
        """Test that scalars are zero and summaries empty without data."""
        assert await repository.today_total() == Decimal("0")
        assert await repository.today_count() == 0
        assert await repository.total_by_date("2024-01-01") == Decimal("0")
        assert await repository.count_by_date("2024-01-01") == 0
        assert await repository.last_7_days_summaries().snapshot() == []
        assert await repository.category_summary().snapshot() == []

    @pytest.mark.asyncio
    async def test_summaries_follow_changes(self, repository):
        """Test that derived summaries are recomputed after every write."""
        received = []
        await repository.category_summary().subscribe(received.append)

        expense_id = await repository.insert_expense(
            make_expense("Lunch", "100", ExpenseCategory.FOOD, datetime(2024, 1, 5, 13, 0))
        )
        assert [c.category for c in received[-1]] == [ExpenseCategory.FOOD]

        await repository.delete_expense_by_id(expense_id)
        assert received[-1] == []

    @pytest.mark.asyncio
    async def test_pass_through_queries(self, repository):
        """Test that listings come straight from the store."""
        first = await repository.insert_expense(
            make_expense("Lunch", "100", ExpenseCategory.FOOD, datetime(2024, 1, 5, 13, 0))
        )
        await repository.insert_expense(
            make_expense("Bus", "20", ExpenseCategory.TRAVEL, datetime(2024, 1, 3, 8, 0))
        )

        assert len(await repository.all_expenses().snapshot()) == 2
        assert [e.title for e in await repository.today_expenses().snapshot()] == ["Lunch"]
        assert [e.title for e in await repository.expenses_by_date("2024-01-03").snapshot()] == ["Bus"]
        assert [e.title for e in await repository.expenses_by_category(ExpenseCategory.FOOD).snapshot()] == ["Lunch"]
        in_range = await repository.expenses_by_date_range(
            datetime(2024, 1, 1), datetime(2024, 1, 4)
        ).snapshot()
        assert [e.title for e in in_range] == ["Bus"]
        assert (await repository.get_expense(first)).title == "Lunch"

    @pytest.mark.asyncio
    async def test_update_and_delete_by_record(self, repository):
        """Test update and delete through the repository."""
        expense_id = await repository.insert_expense(
            make_expense("Lunch", "100", ExpenseCategory.FOOD, datetime(2024, 1, 5, 13, 0))
        )
        stored = await repository.get_expense(expense_id)

        await repository.update_expense(stored.model_copy(update={"amount": Decimal("120.00")}))
        assert await repository.total_by_date("2024-01-05") == Decimal("120.00")

        await repository.delete_expense(stored)
        assert await repository.get_expense(expense_id) is None


class TestLast7Days:
    """Tests for the daily summary window."""

    TODAY = date(2024, 1, 10)

    def test_window_and_order(self):
        """Test oldest-first order and that days outside the window are ignored."""
        expenses = [
            make_expense("A", "10", ExpenseCategory.FOOD, datetime(2024, 1, 10, 9, 0)),
            make_expense("B", "20", ExpenseCategory.FOOD, datetime(2024, 1, 4, 9, 0)),
            make_expense("C", "30", ExpenseCategory.FOOD, datetime(2024, 1, 3, 23, 59)),
            make_expense("D", "5", ExpenseCategory.STAFF, datetime(2024, 1, 4, 10, 0)),
        ]
        summaries = summarize_last_7_days(expenses, self.TODAY)

        assert [s.date for s in summaries] == ["2024-01-04", "2024-01-10"]
        assert summaries[0].total_amount == Decimal("25.00")
        assert summaries[0].expense_count == 2

    def test_never_more_than_seven_days(self):
        """Test the upper bound with an expense on every one of 10 days."""
        expenses = [
            make_expense(f"E{i}", "1", ExpenseCategory.FOOD,
                         datetime(2024, 1, 10, 12, 0) - timedelta(days=i))
            for i in range(10)
        ]
        summaries = summarize_last_7_days(expenses, self.TODAY)

        assert len(summaries) == 7
        assert all(s.expense_count > 0 for s in summaries)
        assert [s.date for s in summaries] == sorted(s.date for s in summaries)
        assert summaries[0].date == "2024-01-04"

    def test_future_expenses_ignored(self):
        """Test that expenses after today fall outside the window."""
        expenses = [make_expense("F", "1", ExpenseCategory.FOOD, datetime(2024, 1, 11, 0, 0))]
        assert summarize_last_7_days(expenses, self.TODAY) == []


class TestCategorySummary:
    """Tests for per-category totals."""

    def test_enum_order_and_zero_categories_dropped(self):
        """Test that only spent categories appear, in enumeration order."""
        moment = datetime(2024, 1, 5, 9, 0)
        expenses = [
            make_expense("Power", "30", ExpenseCategory.UTILITY, moment),
            make_expense("Driver", "70", ExpenseCategory.STAFF, moment),
        ]
        summaries = summarize_by_category(expenses)

        assert [s.category for s in summaries] == [ExpenseCategory.STAFF, ExpenseCategory.UTILITY]
        assert [s.percentage for s in summaries] == [70.0, 30.0]
        assert [s.expense_count for s in summaries] == [1, 1]

    def test_percentages_sum_to_hundred(self):
        """Test that shares add up to 100 within float tolerance."""
        moment = datetime(2024, 1, 5, 9, 0)
        expenses = [
            make_expense("A", "10", ExpenseCategory.STAFF, moment),
            make_expense("B", "10", ExpenseCategory.TRAVEL, moment),
            make_expense("C", "10", ExpenseCategory.FOOD, moment),
        ]
        total = sum(s.percentage for s in summarize_by_category(expenses))
        assert total == pytest.approx(100.0)

    def test_totals_cover_every_category(self):
        """Test that category totals add up to the sum of all amounts."""
        moment = datetime(2024, 1, 5, 9, 0)
        expenses = [
            make_expense("Driver", "700", ExpenseCategory.STAFF, moment),
            make_expense("Taxi", "150.75", ExpenseCategory.TRAVEL, moment),
            make_expense("Lunch", "250", ExpenseCategory.FOOD, moment),
            make_expense("Tea", "20.5", ExpenseCategory.FOOD, moment),
            make_expense("Power", "1200.10", ExpenseCategory.UTILITY, moment),
        ]
        summaries = summarize_by_category(expenses)

        assert len(summaries) == 4
        assert sum(s.total_amount for s in summaries) == sum(e.amount for e in expenses)
        assert sum(s.expense_count for s in summaries) == len(expenses)

    def test_totals_with_unused_category(self):
        """Test that dropping an unspent category loses no money."""
        moment = datetime(2024, 1, 5, 9, 0)
        expenses = [
            make_expense("Driver", "0.004", ExpenseCategory.STAFF, moment),
            make_expense("Lunch", "12.345", ExpenseCategory.FOOD, moment),
            make_expense("Power", "99.99", ExpenseCategory.UTILITY, moment),
        ]
        summaries = summarize_by_category(expenses)

        assert ExpenseCategory.TRAVEL not in [s.category for s in summaries]
        assert sum(s.total_amount for s in summaries) == Decimal("112.339")
        assert sum(s.total_amount for s in summaries) == sum(e.amount for e in expenses)

    @pytest.mark.asyncio
    async def test_live_totals_match_store(self, repository):
        """Test that the live category summary accounts for every stored amount."""
        moment = datetime(2024, 1, 5, 9, 0)
        for title, amount, category in [
            ("Driver", "700", ExpenseCategory.STAFF),
            ("Taxi", "150.75", ExpenseCategory.TRAVEL),
            ("Lunch", "250", ExpenseCategory.FOOD),
            ("Power", "1200.10", ExpenseCategory.UTILITY),
        ]:
            await repository.insert_expense(make_expense(title, amount, category, moment))

        summaries = await repository.category_summary().snapshot()
        stored = await repository.all_expenses().snapshot()
        assert sum(s.total_amount for s in summaries) == sum(e.amount for e in stored)
        assert sum(s.total_amount for s in summaries) == Decimal("2300.85")

    def test_empty(self):
        """Test that no expenses give no summaries."""
        assert summarize_by_category([]) == []


class TestGrouping:
    """Tests for listing groups."""

    def test_group_by_category(self):
        """Test grouping under display names."""
        moment = datetime(2024, 1, 5, 9, 30)
        expenses = [
            make_expense("Lunch", "10", ExpenseCategory.FOOD, moment),
            make_expense("Taxi", "10", ExpenseCategory.TRAVEL, moment),
            make_expense("Tea", "5", ExpenseCategory.FOOD, moment),
        ]
        groups = group_expenses(expenses, by_category=True)

        assert list(groups) == ["Food", "Travel"]
        assert [e.title for e in groups["Food"]] == ["Lunch", "Tea"]

    def test_group_by_time(self):
        """Test grouping under the formatted creation time."""
        expenses = [make_expense("Lunch", "10", ExpenseCategory.FOOD, datetime(2024, 1, 5, 9, 30))]
        assert list(group_expenses(expenses)) == ["05 Jan 2024 09:30 AM"]
