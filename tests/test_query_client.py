"""
Tests for the reactive query client.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from src.shared.caching import QueryClient


@pytest.fixture
def query_client(clock):
    return QueryClient(stale_time=300, gc_time=600, clock=clock)


class TestFetching:
    """Fetch, staleness and de-duplication."""

    @pytest.mark.asyncio
    async def test_fresh_data_served_without_refetch(self, query_client):
        fetcher = AsyncMock(return_value={"id": "u1"})

        assert await query_client.fetch_query("/auth/me", fetcher) == {"id": "u1"}
        assert await query_client.fetch_query("/auth/me", fetcher) == {"id": "u1"}

        fetcher.assert_awaited_once_with("/auth/me")

    @pytest.mark.asyncio
    async def test_stale_data_refetched(self, query_client, clock):
        fetcher = AsyncMock(side_effect=[["a"], ["b"]])

        await query_client.fetch_query("/api/clubs", fetcher)
        clock.advance(301)

        assert await query_client.fetch_query("/api/clubs", fetcher) == ["b"]
        assert fetcher.await_count == 2

    @pytest.mark.asyncio
    async def test_default_fetcher_used(self, clock):
        fetcher = AsyncMock(return_value=[])
        client = QueryClient(default_fetcher=fetcher, clock=clock)

        await client.fetch_query("/api/clubs")

        fetcher.assert_awaited_once_with("/api/clubs")

    @pytest.mark.asyncio
    async def test_no_fetcher_raises(self, query_client):
        with pytest.raises(ValueError):
            await query_client.fetch_query("/auth/me")

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, query_client):
        gate = asyncio.Event()
        calls = []

        async def fetcher(key):
            calls.append(key)
            await gate.wait()
            return {"id": "u1"}

        first = asyncio.ensure_future(query_client.fetch_query("/auth/me", fetcher))
        second = asyncio.ensure_future(query_client.fetch_query("/auth/me", fetcher))
        await asyncio.sleep(0)

        assert query_client.get_query_state("/auth/me").is_loading is True
        gate.set()

        assert await asyncio.gather(first, second) == [{"id": "u1"}, {"id": "u1"}]
        assert calls == ["/auth/me"]

    @pytest.mark.asyncio
    async def test_error_recorded_and_raised(self, query_client):
        fetcher = AsyncMock(side_effect=RuntimeError("offline"))

        with pytest.raises(RuntimeError):
            await query_client.fetch_query("/auth/me", fetcher)

        state = query_client.get_query_state("/auth/me")
        assert isinstance(state.error, RuntimeError)
        assert state.is_loading is False
        assert state.data is None

    @pytest.mark.asyncio
    async def test_errored_query_retried_on_next_read(self, query_client):
        fetcher = AsyncMock(side_effect=[RuntimeError("offline"), {"id": "u1"}])

        with pytest.raises(RuntimeError):
            await query_client.fetch_query("/auth/me", fetcher)

        assert await query_client.fetch_query("/auth/me", fetcher) == {"id": "u1"}
        assert query_client.get_query_state("/auth/me").error is None

    @pytest.mark.asyncio
    async def test_prefetch_swallows_errors(self, query_client):
        await query_client.prefetch_query("/auth/me", AsyncMock(side_effect=RuntimeError("offline")))
        assert query_client.get_query_state("/auth/me").error is not None


class TestInvalidation:
    """Invalidate, refetch and removal."""

    @pytest.mark.asyncio
    async def test_invalidated_query_refetches_on_next_read(self, query_client):
        fetcher = AsyncMock(side_effect=[["old"], ["new"]])
        await query_client.fetch_query("/api/clubs", fetcher)

        assert query_client.invalidate_queries("/api/clubs") == 1
        assert query_client.get_query_state("/api/clubs").is_invalidated is True

        assert await query_client.fetch_query("/api/clubs", fetcher) == ["new"]
        assert query_client.get_query_state("/api/clubs").is_invalidated is False

    def test_invalidate_matches_exact_key_only(self, query_client):
        query_client.set_query_data("/api/clubs", [])
        query_client.set_query_data("/api/clubs/1/messages", [])

        query_client.invalidate_queries("/api/clubs")

        assert query_client.get_query_state("/api/clubs").is_invalidated is True
        assert query_client.get_query_state("/api/clubs/1/messages").is_invalidated is False

    def test_invalidate_unknown_key(self, query_client):
        assert query_client.invalidate_queries("/nothing") == 0

    @pytest.mark.asyncio
    async def test_refetch_uses_remembered_fetcher(self, query_client):
        fetcher = AsyncMock(side_effect=[["old"], ["new"]])
        await query_client.fetch_query("/api/clubs", fetcher)

        assert await query_client.refetch_queries("/api/clubs") == ["new"]
        assert query_client.get_query_data("/api/clubs") == ["new"]

    @pytest.mark.asyncio
    async def test_refetch_unknown_query_is_noop(self, query_client):
        assert await query_client.refetch_queries("/auth/me") is None
        assert query_client.query_count() == 0

    @pytest.mark.asyncio
    async def test_refetch_failure_is_swallowed(self, query_client):
        fetcher = AsyncMock(side_effect=[["old"], RuntimeError("offline")])
        await query_client.fetch_query("/api/clubs", fetcher)

        assert await query_client.refetch_queries("/api/clubs") is None
        assert query_client.get_query_data("/api/clubs") == ["old"]

    @pytest.mark.asyncio
    async def test_clear_mid_flight_does_not_recreate_query(self, query_client):
        gate = asyncio.Event()

        async def fetcher(key):
            await gate.wait()
            return {"id": "u1"}

        pending = asyncio.ensure_future(query_client.fetch_query("/auth/me", fetcher))
        await asyncio.sleep(0)

        query_client.clear()
        gate.set()

        assert await pending == {"id": "u1"}
        assert query_client.query_count() == 0

    def test_set_and_remove(self, query_client):
        query_client.set_query_data("/auth/me", {"id": "u1"})
        assert query_client.query_keys() == ["/auth/me"]
        assert query_client.get_query_data("/auth/me") == {"id": "u1"}

        assert query_client.remove_queries("/auth/me") is True
        assert query_client.remove_queries("/auth/me") is False
        assert query_client.get_query_state("/auth/me") is None


class TestSubscriptions:
    """State change notifications."""

    @pytest.mark.asyncio
    async def test_subscriber_sees_loading_then_data(self, query_client):
        seen = []
        query_client.subscribe("/auth/me", lambda state: seen.append((state.is_loading, state.data)))

        await query_client.fetch_query("/auth/me", AsyncMock(return_value={"id": "u1"}))

        assert seen == [(True, None), (False, {"id": "u1"})]

    def test_unsubscribe_stops_notifications(self, query_client):
        callback = Mock()
        unsubscribe = query_client.subscribe("/auth/me", callback)

        query_client.set_query_data("/auth/me", 1)
        unsubscribe()
        query_client.set_query_data("/auth/me", 2)

        assert callback.call_count == 1

    def test_failing_subscriber_does_not_break_others(self, query_client):
        good = Mock()
        query_client.subscribe("/auth/me", Mock(side_effect=RuntimeError("bad callback")))
        query_client.subscribe("/auth/me", good)

        query_client.set_query_data("/auth/me", 1)

        good.assert_called_once()

    def test_subscribers_receive_copies(self, query_client):
        received = []
        query_client.subscribe("/auth/me", received.append)

        query_client.set_query_data("/auth/me", 1)
        received[0].data = "tampered"

        assert query_client.get_query_data("/auth/me") == 1


class TestGarbageCollection:
    """Dropping unobserved old queries."""

    def test_collects_only_old_unobserved_queries(self, query_client, clock):
        query_client.set_query_data("/old", 1)
        query_client.set_query_data("/watched", 2)
        query_client.subscribe("/watched", Mock())
        clock.advance(601)
        query_client.set_query_data("/new", 3)

        assert query_client.garbage_collect() == 1
        assert sorted(query_client.query_keys()) == ["/new", "/watched"]
