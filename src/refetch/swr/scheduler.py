"""Periodic background-refresh scheduler.

One :class:`BackgroundScheduler` drives many fetch-controller bindings.
Bindings register themselves when they attach and deregister when they
detach, so the scheduler (not each consumer) owns the timer and nothing
leaks when consumers churn.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from refetch.models import FetchConfig

if TYPE_CHECKING:
    from refetch.swr.controller import FetchController

logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Calls :meth:`~refetch.swr.FetchController.background_tick` on a fixed interval.

    Args:
        interval: Seconds between ticks.

    Example::

        async with BackgroundScheduler(interval=30) as scheduler:
            controller = FetchController(load_digest, scheduler=scheduler)
            controller.attach()
    """

    def __init__(self, interval: float = 30.0) -> None:
        self._interval = interval
        self._bindings: list[FetchController] = []
        self._task: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_config(cls, config: FetchConfig) -> BackgroundScheduler:
        return cls(interval=config.background_interval_seconds)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def bindings(self) -> list[FetchController]:
        return list(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def register(self, binding: FetchController) -> None:
        if binding not in self._bindings:
            self._bindings.append(binding)

    def deregister(self, binding: FetchController) -> None:
        if binding in self._bindings:
            self._bindings.remove(binding)

    def tick(self) -> list[asyncio.Task[None]]:
        """Give every registered binding a chance to revalidate.

        Returns:
            The background tasks started by this tick.
        """
        started: list[asyncio.Task[None]] = []
        for binding in list(self._bindings):
            try:
                task = binding.background_tick()
            except Exception:
                logger.exception("Background tick failed for %r", binding)
                continue
            if task is not None:
                started.append(task)
        return started

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def shutdown(self) -> None:
        """Stop ticking.  Registered bindings are left attached."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> BackgroundScheduler:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.shutdown()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()
