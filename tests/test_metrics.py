"""Tests for RequestMetrics."""

from __future__ import annotations

from refetch.cache import CacheStore
from refetch.metrics import RequestMetrics


def test_counts_hits_and_misses_from_store() -> None:
    store = CacheStore()
    metrics = RequestMetrics()
    metrics.attach(store)
    store.lookup("a")
    store.set("a", 1)
    store.lookup("a")
    store.lookup("a")
    snap = metrics.snapshot()
    assert snap["cache_hits"] == 2
    assert snap["cache_misses"] == 1
    assert snap["cache_size"] == 1


def test_detach_stops_counting() -> None:
    store = CacheStore()
    metrics = RequestMetrics()
    metrics.attach(store)
    metrics.detach()
    store.lookup("a")
    assert metrics.cache_misses == 0
    assert metrics.snapshot()["cache_size"] == 0


def test_reattach_does_not_double_count() -> None:
    store = CacheStore()
    metrics = RequestMetrics()
    metrics.attach(store)
    metrics.attach(store)
    store.lookup("a")
    assert metrics.cache_misses == 1


def test_rolling_average() -> None:
    metrics = RequestMetrics(window=2)
    assert metrics.average_response_ms == 0.0
    metrics.record_response_time(0.010)
    metrics.record_response_time(0.020)
    metrics.record_response_time(0.030)
    assert metrics.requests == 3
    assert metrics.snapshot()["avg_response_ms"] == 25
