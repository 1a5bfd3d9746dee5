"""Cancellation tokens for fetch-controller operations.

Each operation issued by a :class:`~refetch.swr.FetchController` receives
its own :class:`CancellationToken`.  Supersession and detachment mark the
token; the controller checks it at the single point where a result would
be applied to state, so a cancelled operation can never mutate it.
"""

from __future__ import annotations

import logging
from typing import Callable

from refetch.exceptions import CancelledOperation

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot flag shared between an operation and whoever may cancel it.

    Args:
        label: Short description used in diagnostics.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Mark the token cancelled and run its callbacks once."""
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed for %s", self.label or "operation")

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run *callback* when the token is cancelled (immediately if it already is)."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        """Raise :class:`~refetch.exceptions.CancelledOperation` if cancelled."""
        if self._cancelled:
            raise CancelledOperation(f"{self.label or 'Operation'} was cancelled")

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationToken({self.label!r}, {state})"
