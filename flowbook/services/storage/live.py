"""
Live Queries

DESIGN DECISION: Read queries are handles, not lists.
A caller either materialises a handle once (`snapshot()`) or subscribes
to it. The store pushes a fresh snapshot to every active subscription
after each successful insert, update or delete, before that mutation
call returns. A caller that awaited a write therefore never sees a
snapshot taken before it.

Derived queries (`map`) share the parent's change notifications and
recompute their transform in full on every emission.
"""

import asyncio
import inspect
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

import structlog


T = TypeVar("T")
U = TypeVar("U")

Listener = Callable[[], Awaitable[None]]

logger = structlog.get_logger(__name__)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class ChangeNotifier:
    """Fans out "record set changed" signals to live query subscriptions."""

    def __init__(self):
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def notify(self) -> None:
        """Run every listener in subscription order."""
        # Copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                await listener()
            except Exception as e:
                # Listeners are isolated from each other
                logger.error("change_listener_failed", error=str(e), error_type=type(e).__name__)


class Subscription(Generic[T]):
    """
    An active registration on a live query.

    Created by `LiveQuery.subscribe`; call `cancel()` to stop receiving
    snapshots.
    """

    def __init__(
        self,
        query: "LiveQuery[T]",
        callback: Callable[[T], Any],
        notifier: ChangeNotifier,
        on_error: Optional[Callable[[Exception], Any]] = None,
    ):
        self._query = query
        self._callback = callback
        self._notifier = notifier
        self._on_error = on_error
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def _start(self) -> None:
        # Errors from the first read or the first callback propagate to the
        # subscriber, and nothing stays registered
        snapshot = await self._query.snapshot()
        await _maybe_await(self._callback(snapshot))
        self._notifier.add_listener(self.refresh)
        self._active = True

    async def refresh(self) -> None:
        """Re-materialise the query and deliver the new snapshot."""
        if not self._active:
            return
        try:
            snapshot = await self._query.snapshot()
            await _maybe_await(self._callback(snapshot))
        except Exception as e:
            await self._report(e)

    async def _report(self, error: Exception) -> None:
        if self._on_error is not None:
            try:
                await _maybe_await(self._on_error(error))
                return
            except Exception as handler_error:
                logger.error(
                    "live_query_error_handler_failed",
                    query=self._query.description,
                    error=str(handler_error),
                )
        logger.error(
            "live_query_refresh_failed",
            query=self._query.description,
            error=str(error),
            error_type=type(error).__name__,
        )

    def cancel(self) -> None:
        if self._active:
            self._notifier.remove_listener(self.refresh)
            self._active = False


class LiveQuery(Generic[T]):
    """
    A continuously updated query result.

    Args:
        fetch: Coroutine function producing one snapshot
        notifier: Change notifier of the store the query reads from
        description: Name used in logs
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        notifier: ChangeNotifier,
        description: str = "query",
    ):
        self._fetch = fetch
        self._notifier = notifier
        self.description = description

    async def snapshot(self) -> T:
        """Materialise the query once."""
        return await self._fetch()

    async def subscribe(
        self,
        callback: Callable[[T], Any],
        on_error: Optional[Callable[[Exception], Any]] = None,
    ) -> Subscription[T]:
        """
        Deliver the current snapshot now and a fresh one after every change.

        `callback` and `on_error` may be plain or coroutine functions.
        Raises StorageError if the initial snapshot cannot be read, and
        re-raises whatever the first callback raises; the subscription is
        not registered in either case. Later failures, from the read, a
        `map` transform or the callback, go to `on_error` (or the log) and
        do not stop the subscription or the write that triggered it.
        """
        subscription = Subscription(self, callback, self._notifier, on_error)
        await subscription._start()
        return subscription

    def map(self, transform: Callable[[T], U], description: Optional[str] = None) -> "LiveQuery[U]":
        """Derive a query whose snapshots are `transform(parent snapshot)`."""
        async def fetch() -> U:
            return transform(await self._fetch())

        return LiveQuery(fetch, self._notifier, description or f"{self.description}.map")

    async def stream(self) -> AsyncIterator[T]:
        """
        Iterate over snapshots as they are produced.

        Usage:
            async for expenses in store.all().stream():
                ...
        Leaving the loop cancels the underlying subscription.
        """
        queue: asyncio.Queue = asyncio.Queue()
        subscription = await self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            subscription.cancel()
