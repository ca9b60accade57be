"""
Event-driven cache invalidation for the client cache.

Domain action emitters (club CRUD handlers, chat send, logout) report what
happened through ``CacheCoordinator.handle``; the coordinator applies the
matching domain cache writes and query invalidations so callers never have
to know the invalidation graph.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel

from ..logging_config import get_logger
from ..schemas import to_record_dict
from .domain_caches import ChatCache, ClubsCache, UserCache
from .exceptions import UnknownActionError
from .monitor import CacheMonitor
from .query_client import QueryClient
from .ttl_store import TTLStore


class CacheAction(str, Enum):
    """Domain actions with a cache effect."""
    CLUB_CREATED = "club_created"
    CLUB_UPDATED = "club_updated"
    CLUB_DELETED = "club_deleted"
    MESSAGE_SENT = "message_sent"
    LOGOUT = "logout"


def _payload_value(payload: Optional[Mapping[str, Any]], *names: str) -> Any:
    if not isinstance(payload, Mapping):
        return None
    for name in names:
        if payload.get(name) is not None:
            return payload[name]
    return None


class CacheCoordinator:
    """Maps domain actions to cache writes and query invalidations."""

    def __init__(
        self,
        store: TTLStore,
        user_cache: UserCache,
        clubs_cache: ClubsCache,
        chat_cache: ChatCache,
        query_client: QueryClient,
        monitor: Optional[CacheMonitor] = None,
        user_path: str = "/auth/me",
        clubs_path: str = "/api/clubs",
    ):
        self.store = store
        self.user_cache = user_cache
        self.clubs_cache = clubs_cache
        self.chat_cache = chat_cache
        self.query_client = query_client
        self.monitor = monitor
        self.user_path = user_path
        self.clubs_path = clubs_path
        self.logger = get_logger(__name__, 'cache_coordinator')

        self.stats = {
            'actions_handled': 0,
            'unknown_actions': 0,
            'invalidations': 0,
        }

    def handle(self, action: str, payload: Optional[Any] = None, strict: bool = False) -> bool:
        """
        Apply the cache effects of a domain action.

        Args:
            action: One of ``CacheAction`` values
            payload: Action data (club record, ``{club_id}``, ``{room_id, message}``)
            strict: Raise ``UnknownActionError`` instead of logging unknown actions

        Returns:
            True if the action was recognized
        """
        try:
            cache_action = CacheAction(action)
        except ValueError:
            self.stats['unknown_actions'] += 1
            self.logger.warning(f"Unknown cache action: {action}", operation="handle", action=str(action))
            if strict:
                raise UnknownActionError(str(action))
            return False

        if isinstance(payload, BaseModel):
            payload = to_record_dict(payload)

        if cache_action == CacheAction.CLUB_CREATED:
            self._require(payload, cache_action)
            self._applied(cache_action, self.clubs_cache.add_club(payload))
            self._invalidate(self.clubs_path)

        elif cache_action == CacheAction.CLUB_UPDATED:
            self._require(payload, cache_action)
            if not self.clubs_cache.update_club(payload):
                self.logger.debug("Updated club is not cached", operation="handle")
            self._invalidate(self.clubs_path)

        elif cache_action == CacheAction.CLUB_DELETED:
            club_id = _payload_value(payload, 'club_id', 'clubId')
            if club_id is None:
                raise ValueError("club_deleted requires a club_id")
            self.clubs_cache.remove_club(club_id)
            self.chat_cache.clear_chat_history(club_id)
            self._invalidate(self.clubs_path)

        elif cache_action == CacheAction.MESSAGE_SENT:
            # Rooms are keyed by club id in the chat transport
            room_id = _payload_value(payload, 'room_id', 'roomId', 'club_id', 'clubId')
            message = _payload_value(payload, 'message')
            if room_id is None or not isinstance(message, (Mapping, BaseModel)):
                raise ValueError("message_sent requires a room_id and a message")
            self._applied(cache_action, self.chat_cache.add_message(room_id, message))

        elif cache_action == CacheAction.LOGOUT:
            self.clear_all()

        self.stats['actions_handled'] += 1
        self.logger.debug(f"Handled cache action: {cache_action.value}", operation="handle")
        return True

    @staticmethod
    def _require(payload: Any, action: CacheAction) -> None:
        if not isinstance(payload, Mapping):
            raise ValueError(f"{action.value} requires a club record")

    def _applied(self, action: CacheAction, written: bool) -> None:
        if not written:
            self.logger.warning(
                f"Cache write for {action.value} was not applied; cached data may be stale",
                operation="handle"
            )

    def _invalidate(self, key: str) -> None:
        self.query_client.invalidate_queries(key)
        self.stats['invalidations'] += 1

    def clear_all(self) -> None:
        """Clear every namespaced entry and all query state."""
        cleared = self.store.clear()
        self.query_client.clear()
        self.logger.info(f"All cache data cleared ({cleared} entries)", operation="clear_all")

    def clear_user_data(self) -> None:
        self.user_cache.clear_user()
        self.clubs_cache.clear_clubs()
        self.logger.info("User data cache cleared", operation="clear_user_data")

    def clear_club_chat(self, club_id: Any) -> None:
        self.chat_cache.clear_chat_history(club_id)
        self.logger.info(f"Chat cache cleared for club {club_id}", operation="clear_club_chat")

    async def refresh_user_data(self) -> None:
        """Force the user resource to refetch, whatever its TTL."""
        self.user_cache.clear_user()
        self._invalidate(self.user_path)
        await self.query_client.refetch_queries(self.user_path)
        self.logger.info("User data cache refreshed", operation="refresh_user_data")

    async def refresh_clubs_data(self) -> None:
        """Force the club list to refetch, whatever its TTL."""
        self.clubs_cache.clear_clubs()
        self._invalidate(self.clubs_path)
        await self.query_client.refetch_queries(self.clubs_path)
        self.logger.info("Clubs data cache refreshed", operation="refresh_clubs_data")

    def get_cache_status(self) -> Dict[str, Any]:
        """Read-only snapshot of what the caches hold."""
        return {
            'user': 'cached' if self.user_cache.has_user() else 'empty',
            'clubs': 'cached' if self.clubs_cache.has_clubs() else 'empty',
            'storage_keys': [f"{self.store.prefix}{key}" for key in self.store.keys()],
            'query_cache': f"{self.query_client.query_count()} queries cached",
            'query_count': self.query_client.query_count(),
        }

    async def warm_cache(self) -> bool:
        """Preload the user and club list; failures are logged, never raised."""
        warmed = True
        for path in (self.user_path, self.clubs_path):
            try:
                await self.query_client.fetch_query(path)
            except Exception as e:
                warmed = False
                self.logger.warning(f"Cache warming failed for {path}: {e}", operation="warm_cache")

        if warmed:
            self.logger.info("Cache warmed successfully", operation="warm_cache")
        if self.monitor is not None:
            self.monitor.log("Cache warm complete" if warmed else "Cache warm incomplete")
        return warmed
