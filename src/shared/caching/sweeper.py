"""
Periodic eviction of dead cache entries.

Expiry is normally lazy, so an entry that is never read again stays in the
backing store. The sweeper bounds that growth by scanning the namespace on
an interval. It is optional and never needed for correctness.
"""

import asyncio
from typing import Any, Dict, Optional

from ..logging_config import get_logger
from .ttl_store import TTLStore


class CacheSweeper:
    """Background task calling ``TTLStore.sweep`` every ``interval`` seconds."""

    def __init__(self, store: TTLStore, interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.store = store
        self.interval = interval
        self.logger = get_logger(__name__, 'cache_sweeper')

        self.running = False
        self.worker_task: Optional[asyncio.Task] = None

        self.stats = {
            'sweeps': 0,
            'entries_evicted': 0,
            'errors': 0,
        }

    def sweep_once(self) -> int:
        evicted = self.store.sweep()
        self.stats['sweeps'] += 1
        self.stats['entries_evicted'] += evicted
        return evicted

    async def start(self) -> None:
        """Start the sweeper."""
        if self.running:
            self.logger.warning("Cache sweeper is already running")
            return

        self.running = True
        self.worker_task = asyncio.create_task(self._sweeper_worker())
        self.logger.info(f"Cache sweeper started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the sweeper."""
        if not self.running:
            return

        self.running = False

        if self.worker_task:
            self.worker_task.cancel()
            try:
                await self.worker_task
            except asyncio.CancelledError:
                pass
            self.worker_task = None

        self.logger.info("Cache sweeper stopped")

    async def _sweeper_worker(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.stats['errors'] += 1
                self.logger.error(f"Error in cache sweeper: {e}", operation="sweep")

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'running': self.running,
            'interval': self.interval,
        }
