"""
Session-scoped cache context.

Builds the store, domain caches, monitor, query client, cache-aside fetcher
and coordinator once per signed-in session and hands them out by reference.
``init`` runs at login, ``teardown`` at logout.
"""

from typing import Any, Callable, Dict, Optional

from ..config import CacheSettings, get_api_settings, get_cache_settings
from ..logging_config import get_logger, initialize_logging
from .cache_aside import CachedQueryFn, NetworkFetch, UnauthorizedBehavior
from .coordinator import CacheCoordinator
from .domain_caches import ChatCache, ClubsCache, UserCache
from .monitor import CacheMonitor
from .network import ApiClient
from .query_client import QueryClient
from .storage import StorageBackend, create_storage
from .sweeper import CacheSweeper
from .ttl_store import TTLStore


class CacheContext:
    """Owns every cache component for one session."""

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        fetch: Optional[NetworkFetch] = None,
        backend: Optional[StorageBackend] = None,
        api_client: Optional[ApiClient] = None,
        clock: Optional[Callable[[], float]] = None,
        on_401: UnauthorizedBehavior = UnauthorizedBehavior.THROW,
        configure_logging: bool = False,
    ):
        self.settings = settings or get_cache_settings()
        self.configure_logging = configure_logging
        self.logger = get_logger(__name__, 'cache_context')

        self._owns_api_client = fetch is None and api_client is None
        if fetch is None:
            api_client = api_client or ApiClient.from_settings(get_api_settings())
            fetch = api_client.fetch
        self.api_client = api_client

        self.backend = backend if backend is not None else create_storage(self.settings)
        self.store = TTLStore(
            self.backend,
            prefix=self.settings.prefix,
            default_ttl=self.settings.default_ttl,
            schema_version=self.settings.schema_version,
            clock=clock,
        )

        self.user_cache = UserCache(self.store, self.settings.user_ttl)
        self.clubs_cache = ClubsCache(self.store, self.settings.clubs_ttl)
        self.chat_cache = ChatCache(self.store, self.settings.chat_ttl)

        self.monitor = CacheMonitor(
            capacity=self.settings.monitor_capacity,
            enabled=self.settings.monitor_enabled,
            clock=clock,
        )

        self.fetcher = CachedQueryFn.from_settings(
            self.settings,
            self.user_cache,
            self.clubs_cache,
            self.chat_cache,
            fetch,
            monitor=self.monitor,
            on_401=on_401,
        )

        self.query_client = QueryClient(
            default_fetcher=self.fetcher,
            stale_time=self.settings.stale_time,
            gc_time=self.settings.gc_time,
            clock=clock,
        )

        self.coordinator = CacheCoordinator(
            self.store,
            self.user_cache,
            self.clubs_cache,
            self.chat_cache,
            self.query_client,
            monitor=self.monitor,
            user_path=self.settings.user_path,
            clubs_path=self.settings.clubs_path,
        )

        self.sweeper: Optional[CacheSweeper] = None
        if self.settings.sweep_interval:
            self.sweeper = CacheSweeper(self.store, self.settings.sweep_interval)

        self.initialized = False

    async def init(self) -> None:
        """Start background work for a new session."""
        if self.initialized:
            return

        if self.configure_logging:
            initialize_logging()
        if self.sweeper is not None:
            await self.sweeper.start()
        if self.settings.warm_on_init:
            await self.coordinator.warm_cache()

        self.initialized = True
        self.logger.info("Cache context initialized", operation="init", prefix=self.settings.prefix)

    async def teardown(self, clear: bool = True) -> None:
        """
        End the session.

        Args:
            clear: Wipe namespaced storage, query state and monitor logs
        """
        if self.sweeper is not None:
            await self.sweeper.stop()

        if clear:
            self.coordinator.handle("logout")
            self.monitor.clear()

        if self._owns_api_client and self.api_client is not None:
            await self.api_client.close()

        self.initialized = False
        self.logger.info("Cache context torn down", operation="teardown", cleared=clear)

    async def __aenter__(self) -> 'CacheContext':
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.teardown()

    def get_stats(self) -> Dict[str, Any]:
        """Combined diagnostics for all components."""
        return {
            'store': self.store.get_stats(),
            'monitor': self.monitor.get_stats(self.settings.monitor_window),
            'coordinator': dict(self.coordinator.stats),
            'sweeper': self.sweeper.get_stats() if self.sweeper is not None else None,
            'status': self.coordinator.get_cache_status(),
        }
