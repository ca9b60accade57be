"""
Reactive query layer.

Holds per-key query state (data, error, loading, invalidated), shares one
in-flight fetch between concurrent callers of the same key, and notifies
subscribers whenever a query's state changes. The cache-aside fetcher is
plugged in as the default fetcher.
"""

import asyncio
import dataclasses
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..logging_config import get_logger


Fetcher = Callable[[str], Awaitable[Any]]


@dataclass
class QueryState:
    """Observable state of one query."""
    key: str
    data: Any = None
    error: Optional[BaseException] = None
    is_loading: bool = False
    is_invalidated: bool = False
    updated_at: Optional[float] = None
    fetch_count: int = 0

    def is_stale(self, now: float, stale_time: float) -> bool:
        if self.is_invalidated or self.updated_at is None or self.error is not None:
            return True
        return now - self.updated_at > stale_time


Subscriber = Callable[[QueryState], None]


class QueryClient:
    """Subscription-based data fetching with request de-duplication."""

    def __init__(
        self,
        default_fetcher: Optional[Fetcher] = None,
        stale_time: float = 5 * 60,
        gc_time: float = 10 * 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.default_fetcher = default_fetcher
        self.stale_time = stale_time
        self.gc_time = gc_time
        self.clock = clock or time.time
        self.logger = get_logger(__name__, 'query_client')

        self._queries: Dict[str, QueryState] = {}
        self._fetchers: Dict[str, Fetcher] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._subscribers: Dict[str, List[Subscriber]] = {}

    # Fetching

    async def fetch_query(
        self,
        key: str,
        fetcher: Optional[Fetcher] = None,
        stale_time: Optional[float] = None,
    ) -> Any:
        """Return fresh query data, fetching when the query is missing or stale."""
        stale_time = self.stale_time if stale_time is None else stale_time
        state = self._queries.get(key)

        if state is not None and not state.is_stale(self.clock(), stale_time):
            return state.data

        return await self._fetch(key, fetcher)

    async def prefetch_query(
        self,
        key: str,
        fetcher: Optional[Fetcher] = None,
        stale_time: Optional[float] = None,
    ) -> None:
        """Populate a query ahead of need; errors stay on the query state."""
        try:
            await self.fetch_query(key, fetcher, stale_time)
        except Exception as e:
            self.logger.debug(f"Prefetch failed for {key}: {e}", operation="prefetch")

    async def refetch_queries(self, key: str) -> Optional[Any]:
        """Re-fetch an existing query regardless of staleness."""
        if key not in self._queries:
            return None

        try:
            return await self._fetch(key, self._fetchers.get(key))
        except Exception as e:
            self.logger.warning(f"Refetch failed for {key}: {e}", operation="refetch")
            return None

    async def _fetch(self, key: str, fetcher: Optional[Fetcher]) -> Any:
        task = self._in_flight.get(key)

        if task is None:
            fetcher = fetcher or self._fetchers.get(key) or self.default_fetcher
            if fetcher is None:
                raise ValueError(f"No fetcher available for query {key}")

            state = self._queries.get(key)
            if state is None:
                state = QueryState(key=key)
                self._queries[key] = state
            self._fetchers[key] = fetcher

            state.is_loading = True
            self._notify(state)

            task = asyncio.ensure_future(self._run(key, state, fetcher))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._on_fetch_done(key, done))

        # Callers that give up do not cancel the shared fetch
        return await asyncio.shield(task)

    async def _run(self, key: str, state: QueryState, fetcher: Fetcher) -> Any:
        try:
            data = await fetcher(key)
        except Exception as e:
            if self._queries.get(key) is state:
                state.error = e
                state.is_loading = False
                state.fetch_count += 1
                self._notify(state)
            raise

        # A query removed or cleared mid-flight is not recreated
        if self._queries.get(key) is state:
            state.data = data
            state.error = None
            state.is_loading = False
            state.is_invalidated = False
            state.updated_at = self.clock()
            state.fetch_count += 1
            self._notify(state)

        return data

    def _on_fetch_done(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Retrieve so abandoned failures are not reported as unhandled
            task.exception()

    # State access

    def get_query_state(self, key: str) -> Optional[QueryState]:
        state = self._queries.get(key)
        return dataclasses.replace(state) if state is not None else None

    def get_query_data(self, key: str) -> Optional[Any]:
        state = self._queries.get(key)
        return state.data if state is not None else None

    def set_query_data(self, key: str, value: Any) -> None:
        state = self._queries.get(key)
        if state is None:
            state = QueryState(key=key)
            self._queries[key] = state

        state.data = value
        state.error = None
        state.is_invalidated = False
        state.updated_at = self.clock()
        self._notify(state)

    def invalidate_queries(self, key: str) -> int:
        """Mark a query stale so its next read refetches."""
        state = self._queries.get(key)
        if state is None:
            return 0

        state.is_invalidated = True
        self._notify(state)
        self.logger.debug(f"Invalidated query: {key}", operation="invalidate")
        return 1

    def remove_queries(self, key: str) -> bool:
        self._in_flight.pop(key, None)
        self._fetchers.pop(key, None)
        return self._queries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all query state. In-flight fetches finish but are not recorded."""
        count = len(self._queries)
        self._queries.clear()
        self._fetchers.clear()
        self._in_flight.clear()
        self.logger.info(f"Cleared {count} queries", operation="clear")

    def query_count(self) -> int:
        return len(self._queries)

    def query_keys(self) -> List[str]:
        return list(self._queries)

    def garbage_collect(self) -> int:
        """Drop unobserved queries whose data is older than ``gc_time``."""
        now = self.clock()
        expired = [
            key for key, state in self._queries.items()
            if not self._subscribers.get(key)
            and not state.is_loading
            and state.updated_at is not None
            and now - state.updated_at > self.gc_time
        ]
        for key in expired:
            self.remove_queries(key)
        return len(expired)

    # Subscriptions

    def subscribe(self, key: str, callback: Subscriber) -> Callable[[], None]:
        """Observe a query's state; returns an unsubscribe function."""
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(key, None)

        return unsubscribe

    def _notify(self, state: QueryState) -> None:
        for callback in list(self._subscribers.get(state.key, [])):
            try:
                callback(dataclasses.replace(state))
            except Exception as e:
                self.logger.error(f"Error in query subscriber for {state.key}: {e}", operation="notify")
