"""In-flight request deduplication for idempotent reads.

:class:`PendingRequestRegistry` keeps at most one in-flight operation per
fingerprint.  The first caller's producer is wrapped in an
:class:`asyncio.Task`; every caller that asks for the same key before the
task settles receives the *same* task, so N concurrent readers share one
network call and observe one outcome.

Registration and lookup are synchronous, so the one-operation-per-key
invariant holds even when many callers join within the same event-loop
tick.  The entry is removed from a done-callback when the task settles,
whether it succeeded, failed, or was cancelled.

Callers should await the handle through :func:`asyncio.shield` so that
cancelling one joiner does not cancel the operation for the others.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable


class PendingRequestRegistry:
    """Registry of shared in-flight read operations keyed by fingerprint.

    Example::

        registry = PendingRequestRegistry()
        handle = registry.begin_or_join("/articles#anonymous", fetch_articles)
        articles = await asyncio.shield(handle)
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._joins = 0

    def begin_or_join(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
    ) -> asyncio.Future[Any]:
        """Return the in-flight handle for *key*, starting one if needed.

        Args:
            key: Request fingerprint.
            producer: Zero-argument callable returning the awaitable that
                performs the operation.  Only invoked when no operation for
                *key* is in flight.

        Returns:
            The shared future resolving to the operation's result.
        """
        existing = self._pending.get(key)
        if existing is not None:
            self._joins += 1
            return existing

        handle = asyncio.ensure_future(producer())
        self._pending[key] = handle
        handle.add_done_callback(functools.partial(self._settle, key))
        return handle

    @property
    def joins(self) -> int:
        """Number of callers that joined an existing operation."""
        return self._joins

    def keys(self) -> list[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def _settle(self, key: str, handle: asyncio.Future[Any]) -> None:
        # Only drop the entry if it still points at this handle.
        if self._pending.get(key) is handle:
            del self._pending[key]
        # Mark the exception retrieved; joiners still see it when awaiting.
        if not handle.cancelled():
            handle.exception()
