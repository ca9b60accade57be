"""
Namespaced key/value store with per-entry time-to-live.

Entries are JSON documents ``{data, timestamp, ttl, version}`` written under
``prefix + key`` in a storage backend. Expiry is evaluated lazily when an
entry is read; nothing is reclaimed in the background unless a sweep is
requested.
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..logging_config import get_logger
from .exceptions import StorageError
from .storage import StorageBackend


Clock = Callable[[], float]


class EntryState(str, Enum):
    """Outcome of reading a raw entry."""
    ABSENT = "absent"
    LIVE = "live"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    STALE_VERSION = "stale_version"
    UNREADABLE = "unreadable"


@dataclass
class CacheEntry:
    """Cache entry with write metadata."""
    data: Any
    timestamp: float
    ttl: float
    version: int = 1

    def is_live(self, now: float) -> bool:
        """An entry is live while its age does not exceed its TTL."""
        return now - self.timestamp <= self.ttl

    @property
    def expires_at(self) -> float:
        return self.timestamp + self.ttl

    def to_json(self) -> str:
        return json.dumps({
            'data': self.data,
            'timestamp': self.timestamp,
            'ttl': self.ttl,
            'version': self.version,
        })

    @classmethod
    def from_json(cls, raw: str) -> 'CacheEntry':
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError("cache entry is not an object")
        timestamp = parsed['timestamp']
        ttl = parsed['ttl']
        if not isinstance(timestamp, (int, float)) or not isinstance(ttl, (int, float)):
            raise ValueError("cache entry timestamp and ttl must be numbers")
        return cls(
            data=parsed.get('data'),
            timestamp=float(timestamp),
            ttl=float(ttl),
            # Entries written before versioning carry no version field
            version=parsed.get('version', 0),
        )


class TTLStore:
    """Durable, namespaced, expiring key/value storage."""

    def __init__(
        self,
        backend: StorageBackend,
        prefix: str = "sports_app_",
        default_ttl: float = 5 * 60,
        schema_version: int = 1,
        clock: Optional[Clock] = None,
    ):
        if not prefix:
            raise ValueError("prefix must not be empty")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self.backend = backend
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.schema_version = schema_version
        self.clock = clock or time.time
        self.logger = get_logger(__name__, 'ttl_store')

        self.stats = {
            'hits': 0,
            'misses': 0,
            'sets': 0,
            'deletes': 0,
            'evictions': 0,
            'errors': 0
        }

    def _namespaced(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _read(self, storage_key: str) -> Tuple[EntryState, Optional[CacheEntry]]:
        """Read and classify the raw entry under a full storage key."""
        try:
            raw = self.backend.get_item(storage_key)
        except Exception as e:
            self.stats['errors'] += 1
            self.logger.warning(f"Cache read failed for {storage_key}: {e}", operation="get")
            return EntryState.UNREADABLE, None

        if raw is None:
            return EntryState.ABSENT, None

        try:
            entry = CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"Malformed cache entry {storage_key}: {e}", operation="get")
            return EntryState.MALFORMED, None

        if entry.version != self.schema_version:
            return EntryState.STALE_VERSION, entry

        if not entry.is_live(self.clock()):
            return EntryState.EXPIRED, entry

        return EntryState.LIVE, entry

    def _evict(self, storage_key: str, reason: EntryState) -> bool:
        try:
            self.backend.remove_item(storage_key)
        except Exception as e:
            self.stats['errors'] += 1
            self.logger.warning(f"Cache eviction failed for {storage_key}: {e}", operation="evict")
            return False

        self.stats['evictions'] += 1
        self.logger.debug(f"Evicted {reason.value} cache entry: {storage_key}", operation="evict")
        return True

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """
        Write ``data`` under ``key`` for ``ttl`` seconds.

        Raises:
            ValueError: if ``data`` is None, which reads back as a miss.
            StorageError: if the entry cannot be serialized or written.
        """
        if data is None:
            raise ValueError("None cannot be cached")
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        storage_key = self._namespaced(key)
        entry = CacheEntry(data=data, timestamp=self.clock(), ttl=ttl, version=self.schema_version)

        try:
            raw = entry.to_json()
        except (TypeError, ValueError) as e:
            self.stats['errors'] += 1
            raise StorageError("Cache entry is not serializable", key=storage_key, original_error=e)

        try:
            self.backend.set_item(storage_key, raw)
        except Exception as e:
            self.stats['errors'] += 1
            raise StorageError("Cache write failed", key=storage_key, original_error=e)

        self.stats['sets'] += 1
        self.logger.debug(f"Cache set: {storage_key}", operation="set", ttl=ttl)

    def get(self, key: str) -> Optional[Any]:
        """Return the live value under ``key`` or ``None``; dead entries are evicted."""
        storage_key = self._namespaced(key)
        state, entry = self._read(storage_key)

        if state == EntryState.LIVE:
            self.stats['hits'] += 1
            return entry.data

        if state in (EntryState.EXPIRED, EntryState.MALFORMED, EntryState.STALE_VERSION):
            self._evict(storage_key, state)

        self.stats['misses'] += 1
        return None

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry under ``key`` without evicting anything."""
        state, entry = self._read(self._namespaced(key))
        return entry if state == EntryState.LIVE else None

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def remove(self, key: str) -> bool:
        """Delete ``key``; removing an absent key is not an error."""
        storage_key = self._namespaced(key)
        try:
            self.backend.remove_item(storage_key)
        except Exception as e:
            self.stats['errors'] += 1
            self.logger.warning(f"Cache remove failed for {storage_key}: {e}", operation="remove")
            return False

        self.stats['deletes'] += 1
        return True

    def _storage_keys(self) -> List[str]:
        try:
            keys = self.backend.keys(self.prefix)
        except Exception as e:
            self.stats['errors'] += 1
            self.logger.warning(f"Cache key enumeration failed: {e}", operation="keys")
            return []
        # Backends may ignore the prefix hint
        return [key for key in keys if key.startswith(self.prefix)]

    def keys(self) -> List[str]:
        """Logical keys currently stored under the prefix, live or not."""
        return [key[len(self.prefix):] for key in self._storage_keys()]

    def clear(self) -> int:
        """Delete every key under the prefix; other keys are left alone."""
        cleared = 0
        for storage_key in self._storage_keys():
            try:
                self.backend.remove_item(storage_key)
                cleared += 1
            except Exception as e:
                self.stats['errors'] += 1
                self.logger.warning(f"Cache clear failed for {storage_key}: {e}", operation="clear")

        self.stats['deletes'] += cleared
        self.logger.info(f"Cleared {cleared} keys with prefix {self.prefix}", operation="clear")
        return cleared

    def sweep(self) -> int:
        """Evict every expired, malformed or stale-version entry under the prefix."""
        evicted = 0
        for storage_key in self._storage_keys():
            state, _ = self._read(storage_key)
            if state in (EntryState.EXPIRED, EntryState.MALFORMED, EntryState.STALE_VERSION):
                if self._evict(storage_key, state):
                    evicted += 1

        if evicted:
            self.logger.info(f"Swept {evicted} dead cache entries", operation="sweep")
        return evicted

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        total_requests = self.stats['hits'] + self.stats['misses']
        hit_rate = self.stats['hits'] / total_requests if total_requests > 0 else 0

        return {
            **self.stats,
            'hit_rate': hit_rate,
            'total_requests': total_requests
        }
