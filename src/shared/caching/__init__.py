"""
Client-side caching system for Fanzone.

This module provides the layered cache that sits in front of API reads:
- Namespaced TTL store over a pluggable storage backend
- Typed domain caches for the user, club list and chat history
- Cache-aside fetcher plugged into a reactive query client
- Event-driven invalidation through the cache coordinator
- Activity monitor and optional background sweeper
"""

from .exceptions import (
    CacheError,
    StorageError,
    NetworkError,
    UnknownActionError
)

from .storage import (
    StorageBackend,
    MemoryStorage,
    FileStorage,
    RedisStorage,
    create_storage
)

from .ttl_store import (
    CacheEntry,
    EntryState,
    TTLStore
)

from .domain_caches import (
    UserCache,
    ClubsCache,
    ChatCache
)

from .monitor import (
    NOT_APPLICABLE,
    MonitorEvent,
    CacheMonitor
)

from .query_client import (
    QueryState,
    QueryClient
)

from .cache_aside import (
    ResourceKind,
    ResourceRoute,
    UnauthorizedBehavior,
    CachedQueryFn
)

from .coordinator import (
    CacheAction,
    CacheCoordinator
)

from .network import ApiClient
from .sweeper import CacheSweeper
from .context import CacheContext

__all__ = [
    # Errors
    'CacheError',
    'StorageError',
    'NetworkError',
    'UnknownActionError',

    # Storage
    'StorageBackend',
    'MemoryStorage',
    'FileStorage',
    'RedisStorage',
    'create_storage',
    'CacheEntry',
    'EntryState',
    'TTLStore',

    # Domain caches
    'UserCache',
    'ClubsCache',
    'ChatCache',

    # Monitoring
    'NOT_APPLICABLE',
    'MonitorEvent',
    'CacheMonitor',

    # Query layer
    'QueryState',
    'QueryClient',
    'ResourceKind',
    'ResourceRoute',
    'UnauthorizedBehavior',
    'CachedQueryFn',
    'ApiClient',

    # Coordination and lifecycle
    'CacheAction',
    'CacheCoordinator',
    'CacheSweeper',
    'CacheContext'
]
