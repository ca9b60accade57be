"""
Cache-aside fetcher for the query layer.

Resolves a resource path against the domain caches first and falls back to
the network on a miss, writing successful responses back into the matching
cache. Paths without a cache mapping go straight to the network.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from ..config import CacheSettings
from ..logging_config import get_logger
from .domain_caches import ChatCache, ClubsCache, UserCache
from .exceptions import NetworkError
from .monitor import CacheMonitor


NetworkFetch = Callable[[str], Awaitable[Any]]


class ResourceKind(str, Enum):
    """Resources backed by a domain cache."""
    USER = "user"
    CLUBS = "clubs"
    CHAT = "chat"


class UnauthorizedBehavior(str, Enum):
    """What a 401 from the network turns into."""
    THROW = "throw"
    RETURN_NULL = "return_null"


RESOURCE_LABELS = {
    ResourceKind.USER: "user data",
    ResourceKind.CLUBS: "clubs data",
    ResourceKind.CHAT: "chat history",
}


@dataclass(frozen=True)
class ResourceRoute:
    """A path resolved to the cache that backs it."""
    kind: ResourceKind
    room_id: Optional[str] = None

    @property
    def label(self) -> str:
        return RESOURCE_LABELS[self.kind]

    def event_data(self) -> Optional[dict]:
        return {'room_id': self.room_id} if self.room_id is not None else None


class CachedQueryFn:
    """Cache-first, network-fallback fetcher with write-through."""

    def __init__(
        self,
        user_cache: UserCache,
        clubs_cache: ClubsCache,
        chat_cache: ChatCache,
        fetch: NetworkFetch,
        monitor: Optional[CacheMonitor] = None,
        user_path: str = "/auth/me",
        clubs_path: str = "/api/clubs",
        chat_path_pattern: str = r"^/api/clubs/(?P<room_id>[^/]+)/messages$",
        clubs_response_key: Optional[str] = None,
        on_401: UnauthorizedBehavior = UnauthorizedBehavior.THROW,
    ):
        self.user_cache = user_cache
        self.clubs_cache = clubs_cache
        self.chat_cache = chat_cache
        self.fetch = fetch
        self.monitor = monitor
        self.user_path = user_path
        self.clubs_path = clubs_path
        self.chat_path_re = re.compile(chat_path_pattern)
        self.clubs_response_key = clubs_response_key
        self.on_401 = UnauthorizedBehavior(on_401)
        self.logger = get_logger(__name__, 'cache_aside')

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        user_cache: UserCache,
        clubs_cache: ClubsCache,
        chat_cache: ChatCache,
        fetch: NetworkFetch,
        monitor: Optional[CacheMonitor] = None,
        on_401: UnauthorizedBehavior = UnauthorizedBehavior.THROW,
    ) -> 'CachedQueryFn':
        return cls(
            user_cache,
            clubs_cache,
            chat_cache,
            fetch,
            monitor=monitor,
            user_path=settings.user_path,
            clubs_path=settings.clubs_path,
            chat_path_pattern=settings.chat_path_pattern,
            clubs_response_key=settings.clubs_response_key,
            on_401=on_401,
        )

    def resolve(self, path: str) -> Optional[ResourceRoute]:
        """Map a resource path to its backing cache, if any."""
        if path == self.user_path:
            return ResourceRoute(ResourceKind.USER)
        if path == self.clubs_path:
            return ResourceRoute(ResourceKind.CLUBS)

        match = self.chat_path_re.match(path)
        if match:
            return ResourceRoute(ResourceKind.CHAT, room_id=match.group('room_id'))

        return None

    async def __call__(self, path: str) -> Any:
        route = self.resolve(path)

        if route is not None:
            cached = self._read_cache(route)
            if cached is not None:
                self._record(f"Cache hit: {route.label}", route.event_data())
                return self._present(route, cached)

        self._record("Network request", {'path': path})
        data = await self._fetch(path)

        if route is not None and data is not None:
            self._write_cache(route, data)

        return data

    async def _fetch(self, path: str) -> Any:
        try:
            return await self.fetch(path)
        except NetworkError as e:
            if e.status == 401 and self.on_401 == UnauthorizedBehavior.RETURN_NULL:
                return None
            raise

    def _read_cache(self, route: ResourceRoute) -> Optional[Any]:
        if route.kind == ResourceKind.USER:
            return self.user_cache.get_user()
        if route.kind == ResourceKind.CLUBS:
            return self.clubs_cache.get_clubs()
        return self.chat_cache.get_chat_history(route.room_id)

    def _present(self, route: ResourceRoute, cached: Any) -> Any:
        """Give a cache hit the same shape as the network response."""
        if route.kind == ResourceKind.CLUBS and self.clubs_response_key:
            return {self.clubs_response_key: cached}
        return cached

    def _write_cache(self, route: ResourceRoute, data: Any) -> None:
        if route.kind == ResourceKind.USER:
            stored = isinstance(data, Mapping) and self.user_cache.set_user(data)
        elif route.kind == ResourceKind.CLUBS:
            clubs = self._extract_clubs(data)
            stored = clubs is not None and self.clubs_cache.set_clubs(clubs)
        else:
            stored = isinstance(data, list) and self.chat_cache.set_chat_history(route.room_id, data)

        if stored:
            self._record(f"Cache stored: {route.label}", route.event_data())
        else:
            # The fetched data is still returned to the caller
            self.logger.warning(f"Could not cache {route.label}", operation="write_through")
            self._record(f"Cache store failed: {route.label}", route.event_data())

    def _extract_clubs(self, data: Any) -> Optional[list]:
        if self.clubs_response_key:
            if isinstance(data, Mapping) and isinstance(data.get(self.clubs_response_key), list):
                return data[self.clubs_response_key]
            return None
        return data if isinstance(data, list) else None

    def _record(self, action: str, data: Optional[dict] = None) -> None:
        if self.monitor is not None:
            self.monitor.log(action, data)
