"""Stale-while-revalidate orchestration for refetch.

Classes:
    :class:`FetchController` -- per-consumer binding with loading, error and
    staleness state, supersession and dependency-triggered refresh.
    :class:`FetchSnapshot` -- immutable view of a binding's state.
    :class:`BackgroundScheduler` -- periodic tick driving background
    revalidation for every registered binding.
    :class:`CancellationToken` -- per-operation cancellation flag.
"""

from refetch.swr.cancellation import CancellationToken
from refetch.swr.controller import FetchController, FetchSnapshot
from refetch.swr.scheduler import BackgroundScheduler

__all__ = [
    "BackgroundScheduler",
    "CancellationToken",
    "FetchController",
    "FetchSnapshot",
]
