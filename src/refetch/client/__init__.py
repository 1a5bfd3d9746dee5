"""HTTP client module for refetch.

Provides :class:`AsyncClient`, a non-blocking client that wraps
:class:`httpx.AsyncClient` with bearer auth, response caching, in-flight
deduplication of reads, write invalidation and error normalisation, plus
the :func:`fingerprint` helper that derives cache keys.

Example::

    from refetch.client import AsyncClient

    async with AsyncClient(base_url, cache=store, pending=registry) as client:
        articles = await client.get("/articles", token=token)
"""

from refetch.client.async_client import AsyncClient, fingerprint, principal

__all__ = ["AsyncClient", "fingerprint", "principal"]
