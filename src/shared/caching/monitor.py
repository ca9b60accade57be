"""
Cache activity monitor.

A bounded log of cache events with derived hit/miss statistics. Purely an
observer: nothing it records feeds back into caching decisions.
"""

import copy
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Deque, Dict, List, Optional

from ..logging_config import get_logger


NOT_APPLICABLE = "N/A"

HIT_MARKER = "cache hit"
FETCH_MARKER = "network request"


@dataclass
class MonitorEvent:
    """A single recorded cache action."""
    action: str
    timestamp: float
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CacheMonitor:
    """Ring buffer of cache events plus windowed statistics."""

    def __init__(
        self,
        capacity: int = 100,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.capacity = capacity
        self.enabled = enabled
        self.clock = clock or time.time
        self.logger = get_logger(__name__, 'cache_monitor')
        self._events: Deque[MonitorEvent] = deque(maxlen=capacity)

    def log(self, action: str, data: Optional[Any] = None) -> None:
        """Record an action; the oldest events fall off past capacity."""
        if not self.enabled:
            return

        self._events.append(MonitorEvent(action=action, timestamp=self.clock(), data=data))
        self.logger.debug(f"[Cache] {action}", operation="monitor", event_data=data)

    def get_logs(self) -> List[MonitorEvent]:
        """Snapshot of the buffer, oldest first."""
        return copy.deepcopy(list(self._events))

    def get_stats(self, window_seconds: float = 60) -> Dict[str, Any]:
        now = self.clock()
        recent = [event for event in self._events if now - event.timestamp < window_seconds]

        cache_hits = sum(1 for event in recent if HIT_MARKER in event.action.lower())
        network_requests = sum(1 for event in recent if FETCH_MARKER in event.action.lower())
        lookups = cache_hits + network_requests

        if lookups:
            hit_ratio = f"{cache_hits / lookups * 100:.1f}%"
        else:
            hit_ratio = NOT_APPLICABLE

        return {
            'total_actions': len(recent),
            'cache_hits': cache_hits,
            'network_requests': network_requests,
            'cache_hit_ratio': hit_ratio,
            'recent_actions': [event.action for event in recent[-10:]],
        }

    def clear(self) -> None:
        self._events.clear()
        self.logger.debug("[Cache] Monitor logs cleared", operation="clear")

    def __len__(self) -> int:
        return len(self._events)
