"""Services package."""

from flowbook.services.storage import (
    ChangeNotifier,
    ExpenseStoreInterface,
    LiveQuery,
    NotFoundError,
    SQLiteExpenseStore,
    StorageError,
    StoreConnectionError,
    Subscription,
)

__all__ = [
    # Storage services
    "ChangeNotifier",
    "ExpenseStoreInterface",
    "LiveQuery",
    "NotFoundError",
    "SQLiteExpenseStore",
    "StorageError",
    "StoreConnectionError",
    "Subscription",
]
