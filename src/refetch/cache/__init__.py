"""In-memory response caching and request deduplication for refetch.

This package provides the two shared resources consulted by
:class:`~refetch.client.AsyncClient` on every read:

* :class:`CacheStore` -- TTL-bounded store of decoded responses with a
  periodic sweep and hit/miss observers.
* :class:`PendingRequestRegistry` -- one shared in-flight operation per
  request fingerprint.

Both are constructed explicitly and injected into the client, so several
independent clients (or tests) never share state by accident.
"""

from refetch.cache.pending import PendingRequestRegistry
from refetch.cache.store import CacheEntry, CacheStore

__all__ = ["CacheEntry", "CacheStore", "PendingRequestRegistry"]
