"""
Storage Services Package

Provides the abstract expense store interface, live query handles and
the SQLite implementation. Designed so the backend can be swapped.
"""

from flowbook.services.storage.interface import (
    ExpenseStoreInterface,
    NotFoundError,
    StorageError,
    StoreConnectionError,
)
from flowbook.services.storage.live import ChangeNotifier, LiveQuery, Subscription
from flowbook.services.storage.sqlite_store import SQLiteExpenseStore

__all__ = [
    # Interfaces
    "ExpenseStoreInterface",
    # Live queries
    "ChangeNotifier",
    "LiveQuery",
    "Subscription",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
    # SQLite implementation
    "SQLiteExpenseStore",
]
