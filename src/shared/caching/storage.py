"""
Storage backends for the TTL store.

A backend is a plain string key/value medium with enumeration, the
equivalent of browser local storage. Backends know nothing about TTLs
or namespaces; the TTL store layers both on top.
"""

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

import redis

from ..config import CacheSettings, StorageBackendType
from ..logging_config import get_logger


@runtime_checkable
class StorageBackend(Protocol):
    """Key/value medium the TTL store persists to."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        ...


class MemoryStorage:
    """Process-local storage; contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            if prefix is None:
                return list(self._items)
            return [key for key in self._items if key.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._items)


class FileStorage:
    """
    JSON-file storage that survives restarts.

    The whole map is rewritten on every mutation through a temporary file
    and an atomic rename, so a crash never leaves a half-written file.
    Other applications may share the file; only keys written through the
    TTL store carry its prefix.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger(__name__, 'file_storage')
        self._lock = threading.RLock()
        self._items: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable storage file {self.path}: {e}", operation="load")
            return {}

        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring storage file {self.path} with non-object root", operation="load")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix='.storage-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(self._items, fh)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._items.get(key)
            self._items[key] = value
            try:
                self._flush()
            except OSError:
                # Keep memory and disk in agreement
                if previous is None:
                    self._items.pop(key, None)
                else:
                    self._items[key] = previous
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key not in self._items:
                return
            previous = self._items.pop(key)
            try:
                self._flush()
            except OSError:
                self._items[key] = previous
                raise

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            if prefix is None:
                return list(self._items)
            return [key for key in self._items if key.startswith(prefix)]


class RedisStorage:
    """Redis-backed storage for deployments that keep client state server side."""

    _GLOB_SPECIAL = re.compile(r'([*?\[\]\\])')

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> 'RedisStorage':
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get_item(self, key: str) -> Optional[str]:
        value = self.client.get(key)
        if isinstance(value, bytes):
            return value.decode('utf-8')
        return value

    def set_item(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def remove_item(self, key: str) -> None:
        self.client.delete(key)

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        pattern = '*' if prefix is None else self._GLOB_SPECIAL.sub(r'\\\1', prefix) + '*'
        result = []
        for key in self.client.scan_iter(match=pattern):
            result.append(key.decode('utf-8') if isinstance(key, bytes) else key)
        return result


def create_storage(settings: CacheSettings) -> StorageBackend:
    """Build the backend selected in settings."""
    backend = StorageBackendType(settings.storage_backend)

    if backend == StorageBackendType.FILE:
        return FileStorage(settings.storage_path)
    if backend == StorageBackendType.REDIS:
        return RedisStorage.from_url(settings.redis_url)
    return MemoryStorage()
