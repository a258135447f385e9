"""Shared fixtures: an in-memory store on a fixed clock."""

from datetime import datetime

import pytest

from flowbook.repository import ExpenseRepository
from flowbook.services.storage import SQLiteExpenseStore


NOW = datetime(2024, 1, 5, 12, 0)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store(clock):
    store = SQLiteExpenseStore(":memory:", clock=clock)
    yield store
    store.close()


@pytest.fixture
def repository(store):
    return ExpenseRepository(store)
