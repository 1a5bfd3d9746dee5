"""Stale-while-revalidate fetch controller.

A :class:`FetchController` is one consumer's binding to a data-producing
coroutine.  It tracks ``data``, ``loading``, ``error`` and ``last_fetched``,
derives ``is_stale`` from the clock, and exposes all of them as an
immutable :class:`FetchSnapshot`.

State machine::

    Idle --refresh()--> Loading --ok--> Ready
                                \\-err-> Failed
    Ready/Failed --refresh()--> Loading
    Ready/Failed --tick, stale--> BackgroundRefreshing (loading unchanged)
    any --detach()--> Detached (terminal)

Every operation carries its own :class:`~refetch.swr.CancellationToken`.
:meth:`FetchController.refresh` cancels the tokens of all older operations,
so a late response from a superseded request is discarded instead of
overwriting newer state.  :meth:`FetchController.detach` cancels every
token and task, so nothing settles against a torn-down binding.  With
``pass_token=True`` the fetcher receives its token and can cancel the
operation itself by raising :class:`~refetch.exceptions.CancelledOperation`.

Foreground failures populate ``error`` and clear ``data`` unless the
binding was created with ``keep_previous_data=True``.  Background failures
are logged and never touch ``data`` or ``error``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from refetch.cache import CacheStore
from refetch.exceptions import CancelledOperation, InvalidUsageError
from refetch.models import FetchConfig
from refetch.swr.cancellation import CancellationToken
from refetch.swr.scheduler import BackgroundScheduler

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Awaitable[Any]]
"""Coroutine function called as ``fetcher(*dependencies)``."""


@dataclass(frozen=True)
class FetchSnapshot:
    """Read-only view of a binding's state at one instant.

    Attributes:
        data: Last known value, or ``None``.
        loading: ``True`` only while a foreground operation is outstanding.
        error: Message of the last foreground failure, or ``None``.
        last_fetched: Clock reading of the last successful population.
        is_stale: ``True`` when never fetched or older than ``stale_time``.
    """

    data: Any
    loading: bool
    error: Optional[str]
    last_fetched: Optional[float]
    is_stale: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "loading": self.loading,
            "error": self.error,
            "last_fetched": self.last_fetched,
            "is_stale": self.is_stale,
        }


@dataclass(eq=False)
class _Operation:
    token: CancellationToken
    background: bool
    task: Optional[asyncio.Task[None]] = None


class FetchController:
    """Binding between one consumer and a data-producing coroutine.

    Args:
        fetcher: Coroutine function producing the data.  Called with the
            current dependencies as positional arguments.
        dependencies: Values the fetcher depends on (query parameters and
            the like).  Changing them through :meth:`set_dependencies`
            triggers a refresh.
        stale_time: Seconds after a successful fetch before data is stale.
        background_refresh: Revalidate stale data on scheduler ticks.
        immediate: Start a foreground fetch on :meth:`attach`.
        keep_previous_data: Keep the last data after a foreground failure
            instead of clearing it.
        pass_token: Also call the fetcher with ``cancel_token=<token>``, the
            operation's :class:`~refetch.swr.CancellationToken`.  The fetcher
            may cancel it (e.g. on its own timeout) and raise
            :class:`~refetch.exceptions.CancelledOperation`; the operation is
            then dropped without touching ``data`` or ``error``.
        scheduler: Scheduler delivering background ticks.
        cache_store: Store seeded from on attach and written on success.
        cache_key: Key used in *cache_store*.
        clock: Monotonic clock; must match *cache_store*'s clock when both
            are used.
        name: Label used in diagnostics.

    Example::

        controller = FetchController(
            lambda page: client.get(f"/articles?page={page}", token=token),
            dependencies=(1,),
            stale_time=300,
        )
        async with controller:
            await controller.refresh()
            print(controller.snapshot().data)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        dependencies: Iterable[Any] = (),
        stale_time: float = 60.0,
        background_refresh: bool = True,
        immediate: bool = True,
        keep_previous_data: bool = False,
        pass_token: bool = False,
        scheduler: Optional[BackgroundScheduler] = None,
        cache_store: Optional[CacheStore] = None,
        cache_key: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        name: Optional[str] = None,
    ) -> None:
        self._fetcher = fetcher
        self._dependencies = tuple(dependencies)
        self._stale_time = stale_time
        self._background_refresh = background_refresh
        self._immediate = immediate
        self._keep_previous_data = keep_previous_data
        self._pass_token = pass_token
        self._scheduler = scheduler
        self._cache_store = cache_store
        self._cache_key = cache_key
        self._clock = clock
        self._name = name or getattr(fetcher, "__name__", "fetch")

        self._data: Any = None
        self._loading = False
        self._error: Optional[str] = None
        self._exception: Optional[BaseException] = None
        self._last_fetched: Optional[float] = None

        self._attached = False
        self._detached = False
        self._foreground: Optional[_Operation] = None
        self._background: Optional[_Operation] = None
        self._operations: set[_Operation] = set()
        self._generation = 0
        self._listeners: list[Callable[[FetchSnapshot], None]] = []

    @classmethod
    def from_config(cls, fetcher: Fetcher, config: FetchConfig, **kwargs: Any) -> FetchController:
        """Build a controller from :class:`~refetch.models.FetchConfig` defaults."""
        options: dict[str, Any] = {
            "stale_time": config.stale_time_seconds,
            "background_refresh": config.background_refresh,
            "immediate": config.immediate,
            "keep_previous_data": config.keep_previous_data,
        }
        options.update(kwargs)
        return cls(fetcher, **options)

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def data(self) -> Any:
        return self._data

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def exception(self) -> Optional[BaseException]:
        """The exception behind :attr:`error`, for programmatic inspection."""
        return self._exception

    @property
    def last_fetched(self) -> Optional[float]:
        return self._last_fetched

    @property
    def is_stale(self) -> bool:
        if self._last_fetched is None:
            return True
        return self._clock() - self._last_fetched > self._stale_time

    @property
    def dependencies(self) -> tuple[Any, ...]:
        return self._dependencies

    @property
    def scheduler(self) -> Optional[BackgroundScheduler]:
        return self._scheduler

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def detached(self) -> bool:
        return self._detached

    def snapshot(self) -> FetchSnapshot:
        return FetchSnapshot(
            data=self._data,
            loading=self._loading,
            error=self._error,
            last_fetched=self._last_fetched,
            is_stale=self.is_stale,
        )

    def subscribe(self, listener: Callable[[FetchSnapshot], None]) -> Callable[[], None]:
        """Call *listener* with a fresh snapshot after every state change.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def attach(self) -> Optional[asyncio.Task[None]]:
        """Establish the binding.

        Seeds ``data`` from the cache store when one is configured (stale
        data included), registers with the scheduler, and starts a
        foreground fetch when ``immediate`` is set.

        Returns:
            The foreground task, if one was started.

        Raises:
            InvalidUsageError: If the binding was already detached.
        """
        self._ensure_live()
        if self._attached:
            return None
        self._attached = True

        if self._cache_store is not None and self._cache_key is not None:
            entry = self._cache_store.get_entry(self._cache_key)
            if entry is not None:
                self._data = entry.value
                self._last_fetched = entry.stored_at
                self._notify()

        if self._scheduler is not None:
            self._scheduler.register(self)
        if self._immediate:
            return self.refresh()
        return None

    def detach(self) -> None:
        """Tear the binding down.

        Cancels every outstanding operation and deregisters from the
        scheduler.  Idempotent.
        """
        if self._detached:
            return
        self._detached = True
        self._attached = False
        for op in list(self._operations):
            op.token.cancel()
            if op.task is not None:
                op.task.cancel()
        self._foreground = None
        self._background = None
        self._loading = False
        if self._scheduler is not None:
            self._scheduler.deregister(self)
        self._listeners.clear()

    async def aclose(self) -> None:
        """Detach and wait for the cancelled operations to unwind."""
        tasks = [op.task for op in self._operations if op.task is not None]
        self.detach()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> FetchController:
        self.attach()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def refresh(self) -> asyncio.Task[None]:
        """Start a foreground fetch, superseding every older operation.

        Sets ``loading`` and clears ``error`` immediately.  Results of the
        superseded operations are discarded when they arrive.

        Returns:
            The task of the new operation.  It never raises for fetch
            failures; those land in :attr:`error`.

        Raises:
            InvalidUsageError: If the binding was detached.
        """
        self._ensure_live()
        for op in (self._foreground, self._background):
            if op is not None:
                op.token.cancel()
        self._background = None

        op = self._start(background=False)
        self._foreground = op
        self._loading = True
        self._error = None
        self._exception = None
        self._notify()
        assert op.task is not None
        return op.task

    def background_tick(self) -> Optional[asyncio.Task[None]]:
        """Revalidate silently if the data is stale.

        Does nothing unless the binding is attached with background refresh
        enabled, has populated data at least once, is stale, and has no
        operation in flight.

        Returns:
            The background task, if one was started.
        """
        if not self._attached or not self._background_refresh:
            return None
        if self._last_fetched is None or not self.is_stale:
            return None
        if self._foreground is not None or self._background is not None:
            return None
        op = self._start(background=True)
        self._background = op
        return op.task

    def set_dependencies(self, dependencies: Iterable[Any]) -> Optional[asyncio.Task[None]]:
        """Replace the dependencies, refreshing when they changed.

        Returns:
            The foreground task, if a refresh was started.
        """
        dependencies = tuple(dependencies)
        if dependencies == self._dependencies:
            return None
        self._dependencies = dependencies
        return self.refresh()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ensure_live(self) -> None:
        if self._detached:
            raise InvalidUsageError(f"Binding {self._name!r} is detached")

    def _start(self, background: bool) -> _Operation:
        self._generation += 1
        kind = "background" if background else "foreground"
        token = CancellationToken(f"{self._name} #{self._generation} ({kind})")
        op = _Operation(token=token, background=background)
        op.task = asyncio.get_running_loop().create_task(self._run(op, self._dependencies))
        self._operations.add(op)
        return op

    async def _run(self, op: _Operation, dependencies: tuple[Any, ...]) -> None:
        kwargs: dict[str, Any] = {"cancel_token": op.token} if self._pass_token else {}
        try:
            result = await self._fetcher(*dependencies, **kwargs)
        except asyncio.CancelledError:
            if op.token.cancelled:
                logger.debug("%s stopped after cancellation", op.token.label)
                return
            raise
        except CancelledOperation as exc:
            logger.debug("Dropping %s: %s", op.token.label, exc)
            self._abandon(op)
        except Exception as exc:
            self._settle_failure(op, exc)
        else:
            self._settle_success(op, result)
        finally:
            self._operations.discard(op)

    def _accepts(self, op: _Operation) -> bool:
        try:
            op.token.raise_if_cancelled()
        except CancelledOperation as exc:
            logger.debug("Discarding result: %s", exc)
            return False
        return not self._detached

    def _settle_success(self, op: _Operation, result: Any) -> None:
        if not self._accepts(op):
            return
        self._data = result
        self._error = None
        self._exception = None
        self._last_fetched = self._clock()
        if self._cache_store is not None and self._cache_key is not None:
            self._cache_store.set(self._cache_key, result)
        self._finish(op)

    def _settle_failure(self, op: _Operation, exc: Exception) -> None:
        if not self._accepts(op):
            return
        if op.background:
            logger.warning("Background refresh of %s failed: %s", self._name, exc)
        else:
            self._error = str(exc)
            self._exception = exc
            if not self._keep_previous_data:
                self._data = None
        self._finish(op)

    def _abandon(self, op: _Operation) -> None:
        if self._detached:
            return
        if op is self._foreground or op is self._background:
            self._finish(op)

    def _finish(self, op: _Operation) -> None:
        if op is self._foreground:
            self._foreground = None
            self._loading = False
        if op is self._background:
            self._background = None
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed for %s", self._name)

    def __repr__(self) -> str:
        state = "detached" if self._detached else "attached" if self._attached else "idle"
        return f"FetchController({self._name!r}, {state})"
