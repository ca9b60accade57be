"""
Typed domain caches over the TTL store.

Each cache owns one logical collection: the signed-in user, the user's
club list, and per-room chat history. Read-modify-write mutators treat a
miss as an empty collection and hold a per-cache lock for the whole
sequence, since the store has no partial-update primitive.
"""

import threading
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from ..logging_config import get_logger
from ..schemas import CachedRecord, ChatMessage, Club, RecordId, User, same_id, to_record_dict
from .exceptions import StorageError
from .ttl_store import TTLStore


Record = Union[Mapping[str, Any], BaseModel]


class DomainCache:
    """Shared plumbing for the typed caches."""

    record_model: Type[CachedRecord] = CachedRecord

    def __init__(self, store: TTLStore, ttl: float, component: str):
        self.store = store
        self.ttl = ttl
        self.logger = get_logger(__name__, component)
        self._lock = threading.RLock()

    def _write(self, key: str, data: Any) -> bool:
        """Write through to the store; a failed write is reported, not raised."""
        records = data if isinstance(data, list) else [data]
        if not all(self._is_valid(record) for record in records):
            self.logger.warning(
                f"Refusing to cache {key}: does not match {self.record_model.__name__} schema",
                operation="write"
            )
            return False

        try:
            self.store.set(key, data, self.ttl)
            return True
        except StorageError as e:
            self.logger.warning(f"Failed to cache {key}: {e.message}", operation="write", **e.details)
            return False

    def _is_valid(self, item: Any) -> bool:
        if not isinstance(item, Mapping):
            return False
        try:
            self.record_model.model_validate(item)
            return True
        except ValidationError:
            return False

    def _read_record(self, key: str) -> Optional[Dict[str, Any]]:
        data = self.store.get(key)
        if data is None:
            return None
        if not self._is_valid(data):
            self._discard(key)
            return None
        return data

    def _read_list(self, key: str) -> Optional[List[Dict[str, Any]]]:
        data = self.store.get(key)
        if data is None:
            return None
        if not isinstance(data, list) or not all(self._is_valid(item) for item in data):
            self._discard(key)
            return None
        return data

    def _discard(self, key: str) -> None:
        self.logger.warning(
            f"Discarding cached {key}: does not match {self.record_model.__name__} schema",
            operation="validate"
        )
        self.store.remove(key)


class UserCache(DomainCache):
    """The signed-in user."""

    KEY = "current_user"
    record_model = User

    def __init__(self, store: TTLStore, ttl: float = 15 * 60):
        super().__init__(store, ttl, 'user_cache')

    def set_user(self, user: Record) -> bool:
        return self._write(self.KEY, to_record_dict(user))

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._read_record(self.KEY)

    def clear_user(self) -> None:
        self.store.remove(self.KEY)

    def has_user(self) -> bool:
        return self.store.peek(self.KEY) is not None


class ClubsCache(DomainCache):
    """The user's club list; club ids are unique within the list."""

    KEY = "user_clubs"
    record_model = Club

    def __init__(self, store: TTLStore, ttl: float = 10 * 60):
        super().__init__(store, ttl, 'clubs_cache')

    def set_clubs(self, clubs: List[Record]) -> bool:
        return self._write(self.KEY, [to_record_dict(club) for club in clubs])

    def get_clubs(self) -> Optional[List[Dict[str, Any]]]:
        return self._read_list(self.KEY)

    def update_club(self, updated_club: Record) -> bool:
        """Replace the club with the same id in place; no-op when it is not cached."""
        updated = to_record_dict(updated_club)
        with self._lock:
            clubs = self.get_clubs()
            if clubs is None:
                return False

            for index, club in enumerate(clubs):
                if same_id(club.get('id'), updated.get('id')):
                    clubs[index] = updated
                    return self.set_clubs(clubs)

            return False

    def add_club(self, new_club: Record) -> bool:
        """Append a club, starting from an empty list on a miss."""
        club = to_record_dict(new_club)
        with self._lock:
            clubs = self.get_clubs() or []

            for index, existing in enumerate(clubs):
                if same_id(existing.get('id'), club.get('id')):
                    clubs[index] = club
                    break
            else:
                clubs.append(club)

            return self.set_clubs(clubs)

    def remove_club(self, club_id: RecordId) -> bool:
        with self._lock:
            clubs = self.get_clubs()
            if clubs is None:
                return False

            filtered = [club for club in clubs if not same_id(club.get('id'), club_id)]
            return self.set_clubs(filtered)

    def clear_clubs(self) -> None:
        self.store.remove(self.KEY)

    def has_clubs(self) -> bool:
        return self.store.peek(self.KEY) is not None


class ChatCache(DomainCache):
    """Per-room chat history."""

    KEY_PREFIX = "chat_"
    record_model = ChatMessage

    def __init__(self, store: TTLStore, ttl: float = 30 * 60):
        super().__init__(store, ttl, 'chat_cache')

    def _key(self, room_id: RecordId) -> str:
        return f"{self.KEY_PREFIX}{room_id}"

    def set_chat_history(self, room_id: RecordId, messages: List[Record]) -> bool:
        return self._write(self._key(room_id), [to_record_dict(message) for message in messages])

    def get_chat_history(self, room_id: RecordId) -> Optional[List[Dict[str, Any]]]:
        return self._read_list(self._key(room_id))

    def add_message(self, room_id: RecordId, message: Record) -> bool:
        """Append one message; a message id already in the history is not added twice."""
        entry = to_record_dict(message)
        with self._lock:
            history = self.get_chat_history(room_id) or []

            message_id = entry.get('id')
            if message_id is not None and any(same_id(m.get('id'), message_id) for m in history):
                return True

            history.append(entry)
            return self.set_chat_history(room_id, history)

    def clear_chat_history(self, room_id: RecordId) -> None:
        self.store.remove(self._key(room_id))

    def has_chat_history(self, room_id: RecordId) -> bool:
        return self.store.peek(self._key(room_id)) is not None
