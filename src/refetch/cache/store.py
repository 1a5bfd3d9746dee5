"""In-memory response cache with time-to-live eviction.

:class:`CacheStore` maps a request fingerprint to the last successfully
decoded response body and the monotonic time it was stored.  An entry is
*fresh* while ``now - stored_at < ttl``; an expired entry is treated as
absent by :meth:`CacheStore.get` but is kept (and still readable through
:meth:`CacheStore.get_entry`) until the periodic sweep removes it.

The sweep runs as an :mod:`asyncio` task started by :meth:`CacheStore.start`
and stopped by :meth:`CacheStore.shutdown`.  Every other mutation is
synchronous, so reads and writes are atomic with respect to the event loop.

Hit and miss signals are delivered to observers registered with
:meth:`CacheStore.on_hit` and :meth:`CacheStore.on_miss`.

See Also:
    :class:`~refetch.models.CacheConfig` -- ``ttl_seconds`` and
    ``sweep_interval_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from refetch.models import CacheConfig

logger = logging.getLogger(__name__)

CacheObserver = Callable[[str], None]
"""Callback receiving the fingerprint of a cache hit or miss."""


@dataclass
class CacheEntry:
    """A cached response body and the time it was stored.

    Attributes:
        key: Request fingerprint.
        value: Decoded response body, opaque to the cache.
        stored_at: Clock reading at the last successful population.
    """

    key: str
    value: Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


class CacheStore:
    """TTL-bounded key/value store for decoded responses.

    Args:
        ttl: Seconds an entry stays fresh.  Shared by every key.
        sweep_interval: Seconds between sweeps of expired entries.
        clock: Monotonic clock returning seconds.  Injectable for tests.

    Example::

        store = CacheStore(ttl=300)
        store.set("/articles#anonymous", [{"id": 1}])
        store.get("/articles#anonymous")   # -> [{"id": 1}]
    """

    def __init__(
        self,
        ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hit_observers: list[CacheObserver] = []
        self._miss_observers: list[CacheObserver] = []
        self._hits = 0
        self._misses = 0
        self._sweep_task: Optional[asyncio.Task[None]] = None

    @classmethod
    def create(
        cls,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> CacheStore:
        """Build a store from a :class:`~refetch.models.CacheConfig`."""
        return cls(
            ttl=config.ttl_seconds,
            sweep_interval=config.sweep_interval_seconds,
            clock=clock,
        )

    @property
    def ttl(self) -> float:
        return self._ttl

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the periodic sweep on the running event loop.

        Calling ``start`` on a store whose sweep is already running is a
        no-op.

        Raises:
            RuntimeError: If no event loop is running.
        """
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def shutdown(self) -> None:
        """Stop the periodic sweep and wait for it to finish."""
        task = self._sweep_task
        self._sweep_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def __aenter__(self) -> CacheStore:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value for *key* if it is still fresh.

        Expired entries behave as absent but are not deleted.

        Args:
            key: Request fingerprint.

        Returns:
            The cached value, or ``None`` on a miss or an expired entry.
        """
        entry = self._entries.get(key)
        if entry is None or entry.age(self._clock()) >= self._ttl:
            return None
        return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry for *key* regardless of its age."""
        return self._entries.get(key)

    def lookup(self, key: str) -> Optional[Any]:
        """Like :meth:`get`, but also emits a hit or miss signal."""
        value = self.get(key)
        if value is None:
            self._misses += 1
            self._notify(self._miss_observers, key)
        else:
            self._hits += 1
            self._notify(self._hit_observers, key)
        return value

    def keys(self) -> list[str]:
        """Return every stored fingerprint, including expired ones."""
        return list(self._entries)

    def size(self) -> int:
        """Return the number of stored entries, including expired ones."""
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* and reset its timestamp."""
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if an entry was removed."""
        return self._entries.pop(key, None) is not None

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        """Remove every entry whose key satisfies *predicate*.

        Returns:
            The number of removed entries.
        """
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries.  Hit and miss counters are kept."""
        self._entries.clear()

    def sweep(self) -> int:
        """Remove entries older than the TTL.

        Returns:
            The number of removed entries.
        """
        now = self._clock()
        removed = self.delete_matching(lambda key: self._entries[key].age(now) > self._ttl)
        if removed:
            logger.debug("Swept %d expired cache entries", removed)
        return removed

    # ------------------------------------------------------------------ #
    # Observers
    # ------------------------------------------------------------------ #

    def on_hit(self, observer: CacheObserver) -> Callable[[], None]:
        """Register *observer* for cache hits.  Returns an unsubscribe callable."""
        return self._subscribe(self._hit_observers, observer)

    def on_miss(self, observer: CacheObserver) -> Callable[[], None]:
        """Register *observer* for cache misses.  Returns an unsubscribe callable."""
        return self._subscribe(self._miss_observers, observer)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``size``, ``hits``, ``misses`` and
            ``ttl_seconds``.
        """
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self._ttl,
        }

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    @staticmethod
    def _subscribe(
        observers: list[CacheObserver],
        observer: CacheObserver,
    ) -> Callable[[], None]:
        observers.append(observer)

        def unsubscribe() -> None:
            if observer in observers:
                observers.remove(observer)

        return unsubscribe

    @staticmethod
    def _notify(observers: list[CacheObserver], key: str) -> None:
        for observer in list(observers):
            try:
                observer(key)
            except Exception:
                logger.exception("Cache observer %r failed for key %s", observer, key)
