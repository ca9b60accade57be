"""
Tests for the session cache context and the background sweeper.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, patch

from src.shared.config import CacheSettings
from src.shared.caching import CacheContext, CacheSweeper, MemoryStorage, TTLStore


class TestWiring:
    """Components built from settings."""

    def test_components_share_one_store(self, context):
        assert context.user_cache.store is context.store
        assert context.clubs_cache.store is context.store
        assert context.chat_cache.store is context.store
        assert context.coordinator.query_client is context.query_client
        assert context.query_client.default_fetcher is context.fetcher

    def test_ttls_come_from_settings(self, network, backend, clock):
        settings = CacheSettings(user_ttl=60, clubs_ttl=120, chat_ttl=180, prefix="test_")
        context = CacheContext(settings, fetch=network, backend=backend, clock=clock)

        assert context.user_cache.ttl == 60
        assert context.clubs_cache.ttl == 120
        assert context.chat_cache.ttl == 180
        assert context.store.prefix == "test_"

    def test_no_sweeper_by_default(self, context):
        assert context.sweeper is None

    def test_own_api_client_created_without_fetch(self, cache_settings, backend):
        context = CacheContext(cache_settings, backend=backend)

        assert context.api_client is not None
        assert context.fetcher.fetch == context.api_client.fetch


class TestSession:
    """Login to logout."""

    @pytest.mark.asyncio
    async def test_read_through_via_query_client(self, context, network):
        network.return_value = {"id": "u1"}

        assert await context.query_client.fetch_query("/auth/me") == {"id": "u1"}
        assert context.user_cache.get_user() == {"id": "u1"}

        context.query_client.invalidate_queries("/auth/me")
        assert await context.query_client.fetch_query("/auth/me") == {"id": "u1"}

        # The invalidated query was served from the TTL cache
        network.assert_awaited_once()
        assert context.monitor.get_stats()["cache_hit_ratio"] == "50.0%"

    @pytest.mark.asyncio
    async def test_logout_clears_every_namespaced_entry(self, context, backend):
        context.user_cache.set_user({"id": "u1"})
        context.clubs_cache.set_clubs([{"id": "1", "name": "A"}, {"id": "2", "name": "B"}])
        context.chat_cache.set_chat_history("1", [{"id": "m1"}])
        context.chat_cache.set_chat_history("2", [{"id": "m2"}])
        backend.set_item("theme", "dark")

        context.coordinator.handle("logout")

        assert context.user_cache.get_user() is None
        assert context.clubs_cache.get_clubs() is None
        assert context.chat_cache.get_chat_history("1") is None
        assert context.chat_cache.get_chat_history("2") is None
        assert [key for key in backend.keys() if key.startswith("sports_app_")] == []
        assert backend.get_item("theme") == "dark"

    @pytest.mark.asyncio
    async def test_context_manager_tears_down(self, context, network):
        network.return_value = {"id": "u1"}

        async with context as ctx:
            assert ctx.initialized is True
            await ctx.query_client.fetch_query("/auth/me")

        assert context.initialized is False
        assert context.store.keys() == []
        assert context.query_client.query_count() == 0
        assert len(context.monitor) == 0

    @pytest.mark.asyncio
    async def test_teardown_without_clear_keeps_data(self, context):
        await context.init()
        context.user_cache.set_user({"id": "u1"})

        await context.teardown(clear=False)

        assert context.user_cache.get_user() == {"id": "u1"}

    @pytest.mark.asyncio
    async def test_warm_on_init(self, network, backend, clock):
        settings = CacheSettings(warm_on_init=True)
        network.side_effect = lambda path: {"/auth/me": {"id": "u1"}, "/api/clubs": [{"id": "1"}]}[path]
        context = CacheContext(settings, fetch=network, backend=backend, clock=clock)

        await context.init()

        assert context.user_cache.get_user() == {"id": "u1"}
        assert context.clubs_cache.get_clubs() == [{"id": "1"}]
        await context.teardown()

    @pytest.mark.asyncio
    async def test_teardown_closes_owned_api_client(self, cache_settings, backend):
        context = CacheContext(cache_settings, backend=backend)
        context.api_client.close = AsyncMock()

        await context.teardown()

        context.api_client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_teardown_leaves_injected_api_client_open(self, cache_settings, backend):
        api_client = Mock()
        api_client.fetch = AsyncMock()
        api_client.close = AsyncMock()
        context = CacheContext(cache_settings, backend=backend, api_client=api_client)

        await context.teardown()

        api_client.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_logging_configured_only_on_request(self, network, backend, clock, cache_settings):
        with patch("src.shared.caching.context.initialize_logging") as init_logging:
            plain = CacheContext(cache_settings, fetch=network, backend=backend, clock=clock)
            await plain.init()
            init_logging.assert_not_called()

            configured = CacheContext(
                cache_settings, fetch=network, backend=backend, clock=clock, configure_logging=True
            )
            await configured.init()
            await configured.init()
            init_logging.assert_called_once()

        await plain.teardown()
        await configured.teardown()

    def test_get_stats(self, context):
        stats = context.get_stats()

        assert set(stats) == {'store', 'monitor', 'coordinator', 'sweeper', 'status'}
        assert stats['sweeper'] is None
        assert stats['monitor']['cache_hit_ratio'] == "N/A"


class TestSweeper:
    """Background eviction."""

    def test_sweep_once(self, store, backend, clock):
        store.set("short", 1, ttl=5)
        store.set("long", 2, ttl=500)
        clock.advance(10)
        sweeper = CacheSweeper(store, interval=60)

        assert sweeper.sweep_once() == 1
        assert backend.keys() == ["sports_app_long"]
        assert sweeper.get_stats()['entries_evicted'] == 1

    def test_interval_must_be_positive(self, store):
        with pytest.raises(ValueError):
            CacheSweeper(store, interval=0)

    @pytest.mark.asyncio
    async def test_worker_sweeps_on_interval(self):
        store = Mock(spec=TTLStore)
        store.sweep.return_value = 0
        sweeper = CacheSweeper(store, interval=0.01)

        await sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert store.sweep.call_count >= 1
        assert sweeper.get_stats()['running'] is False

    @pytest.mark.asyncio
    async def test_worker_survives_sweep_errors(self):
        store = Mock(spec=TTLStore)
        store.sweep.side_effect = RuntimeError("backend down")
        sweeper = CacheSweeper(store, interval=0.01)

        await sweeper.start()
        await asyncio.sleep(0.05)
        assert sweeper.running is True
        await sweeper.stop()

        assert sweeper.stats['errors'] >= 1

    @pytest.mark.asyncio
    async def test_context_starts_and_stops_sweeper(self, network, clock):
        settings = CacheSettings(sweep_interval=30)
        context = CacheContext(settings, fetch=network, backend=MemoryStorage(), clock=clock)

        await context.init()
        assert context.sweeper.running is True

        await context.teardown()
        assert context.sweeper.running is False
