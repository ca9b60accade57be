"""
Shared fixtures for the client cache test suite.
"""

import pytest
from unittest.mock import AsyncMock

from src.shared.config import CacheSettings
from src.shared.caching import (
    CacheContext,
    CacheMonitor,
    ChatCache,
    ClubsCache,
    MemoryStorage,
    TTLStore,
    UserCache,
)


PREFIX = "sports_app_"


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryStorage()


@pytest.fixture
def store(backend, clock):
    return TTLStore(backend, prefix=PREFIX, default_ttl=300, clock=clock)


@pytest.fixture
def user_cache(store):
    return UserCache(store)


@pytest.fixture
def clubs_cache(store):
    return ClubsCache(store)


@pytest.fixture
def chat_cache(store):
    return ChatCache(store)


@pytest.fixture
def monitor(clock):
    return CacheMonitor(capacity=100, clock=clock)


@pytest.fixture
def cache_settings():
    return CacheSettings(storage_backend="memory")


@pytest.fixture
def network():
    """Mock network fetch; tests set return_value or side_effect."""
    return AsyncMock(name="fetch")


@pytest.fixture
def context(cache_settings, network, backend, clock):
    return CacheContext(cache_settings, fetch=network, backend=backend, clock=clock)
