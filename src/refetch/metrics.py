"""Performance monitor for the cache and the network layer.

:class:`RequestMetrics` counts cache hits and misses by subscribing to a
:class:`~refetch.cache.CacheStore`'s observers, and keeps a rolling window
of network response times recorded by :class:`~refetch.client.AsyncClient`.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Optional

from refetch.cache import CacheStore

RESPONSE_TIME_WINDOW = 100
"""Number of most recent response times kept for the rolling average."""


class RequestMetrics:
    """Cache hit/miss counters and rolling response-time average.

    Args:
        window: Number of response times kept for the average.
    """

    def __init__(self, window: int = RESPONSE_TIME_WINDOW) -> None:
        self.cache_hits = 0
        self.cache_misses = 0
        self.requests = 0
        self._response_times: deque[float] = deque(maxlen=window)
        self._store: Optional[CacheStore] = None
        self._unsubscribe: list[Callable[[], None]] = []

    def attach(self, store: CacheStore) -> None:
        """Start counting hits and misses reported by *store*."""
        self.detach()
        self._store = store
        self._unsubscribe = [
            store.on_hit(self._record_hit),
            store.on_miss(self._record_miss),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._store = None

    def record_response_time(self, seconds: float) -> None:
        self.requests += 1
        self._response_times.append(seconds)

    @property
    def average_response_ms(self) -> float:
        if not self._response_times:
            return 0.0
        return 1000 * sum(self._response_times) / len(self._response_times)

    def snapshot(self) -> dict[str, Any]:
        """Return the current figures as a JSON-serialisable ``dict``."""
        return {
            "cache_size": self._store.size() if self._store is not None else 0,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "requests": self.requests,
            "avg_response_ms": round(self.average_response_ms),
        }

    def _record_hit(self, key: str) -> None:
        self.cache_hits += 1

    def _record_miss(self, key: str) -> None:
        self.cache_misses += 1
