"""Asynchronous HTTP client with response caching and request deduplication.

This module provides :class:`AsyncClient`, the only component that talks to
the network.  It wraps :class:`httpx.AsyncClient` and layers on:

- **Bearer auth** -- an opaque token per call, sent as
  ``Authorization: Bearer <token>``.
- **Response caching** -- successful GET bodies are stored in an injected
  :class:`~refetch.cache.CacheStore` under a fingerprint of the path and
  the calling principal.
- **Deduplication** -- concurrent GETs for the same fingerprint share one
  network call through a
  :class:`~refetch.cache.PendingRequestRegistry`.
- **Write invalidation** -- writes may name path prefixes whose cached
  reads are dropped once the write succeeds.
- **Error normalisation** -- every failure surfaces as
  :class:`~refetch.exceptions.HttpStatusError` or
  :class:`~refetch.exceptions.TransportError`.  There is no retry.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import Any, Iterable, Optional

import httpx

from refetch.cache import CacheStore, PendingRequestRegistry
from refetch.client.response import decode_response, raise_for_status
from refetch.exceptions import TransportError
from refetch.metrics import RequestMetrics
from refetch.models import RequestConfig
from refetch.output import get_output

ANONYMOUS = "anonymous"
"""Principal used in fingerprints of requests sent without a token."""

_READ_METHODS = frozenset({"GET"})


def principal(token: Optional[str]) -> str:
    """Return a stable, non-reversible identity for *token*."""
    if not token:
        return ANONYMOUS
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def fingerprint(path: str, token: Optional[str] = None) -> str:
    """Build the cache key for *path* requested by the holder of *token*.

    Requests made with different tokens never share a fingerprint, and the
    raw token never appears in the key.
    """
    return f"{path}#{principal(token)}"


def fingerprint_path(key: str) -> str:
    """Return the request path part of a fingerprint."""
    return key.rpartition("#")[0]


def under_prefix(path: str, prefix: str) -> bool:
    """Return True if *path* is *prefix* or lies below it.

    Matching stops at path-segment boundaries: ``/notes`` covers
    ``/notes``, ``/notes/7`` and ``/notes?page=2`` but not ``/notesarchive``.
    """
    if not path.startswith(prefix):
        return False
    rest = path[len(prefix):]
    return not rest or prefix.endswith(("/", "?")) or rest[0] in "/?"


class AsyncClient:
    """Asynchronous HTTP client for a JSON API.

    Must be used as an async context manager so that the underlying
    :class:`httpx.AsyncClient` is opened and closed.

    Args:
        base_url: API base URL.  Read once; there is no hot reload.
        cache: Shared response cache.  When ``None``, nothing is cached.
        pending: Shared in-flight registry.  When ``None``, reads are not
            deduplicated.
        request_config: Timeout and SSL settings.
        transport: Optional :mod:`httpx` transport, mostly for tests.
        metrics: Optional monitor receiving response times.

    Example::

        async with AsyncClient(base_url, cache=store, pending=registry) as client:
            articles = await client.get("/articles?page=1", token=token)
            await client.post("/journals", body=entry, token=token,
                              invalidate=["/journals"])
    """

    def __init__(
        self,
        base_url: str,
        cache: Optional[CacheStore] = None,
        pending: Optional[PendingRequestRegistry] = None,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self._base_url = base_url
        self._cache = cache
        self._pending = pending
        self._config = request_config or RequestConfig()
        self._transport = transport
        self._metrics = metrics
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def cache(self) -> Optional[CacheStore]:
        return self._cache

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Any] = None,
        token: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        cache: Optional[bool] = None,
        dedupe: Optional[bool] = None,
        invalidate: Optional[Iterable[str]] = None,
    ) -> Any:
        """Issue one logical request and return its decoded JSON body.

        Reads (GET) consult the cache first, then join or start a shared
        in-flight operation.  Writes always hit the network and are never
        cached or deduplicated.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            path: URL path appended to the base URL, including any query.
            body: JSON-serialisable request body.
            token: Opaque bearer token identifying the principal.
            headers: Extra request headers.
            cache: Use the response cache.  Defaults to ``True`` for reads;
                ignored for writes.
            dedupe: Share in-flight reads.  Defaults to ``True`` for reads;
                ignored for writes.
            invalidate: Path prefixes whose cached reads are dropped, for
                every principal, after a successful write.

        Returns:
            The decoded JSON body, or ``None`` for an empty body.

        Raises:
            HttpStatusError: On a non-2xx response.
            TransportError: On network failure or an undecodable body.
        """
        method = method.upper()
        if method not in _READ_METHODS:
            data = await self._send(method, path, body, token, headers)
            if invalidate:
                self.invalidate(invalidate)
            return data

        use_cache = self._cache is not None and (cache is None or cache)
        use_dedupe = self._pending is not None and (dedupe is None or dedupe)
        key = fingerprint(path, token)

        if use_cache:
            assert self._cache is not None
            cached = self._cache.lookup(key)
            if cached is not None:
                get_output().debug(f"Cache hit: {method} {path}")
                return cached
            get_output().debug(f"Cache miss: {method} {path}")

        if use_dedupe:
            assert self._pending is not None
            handle = self._pending.begin_or_join(
                f"{method}:{key}", lambda: self._send(method, path, body, token, headers)
            )
            data = await asyncio.shield(handle)
        else:
            data = await self._send(method, path, body, token, headers)

        # A joined read may have been started with cache=False.
        if use_cache and data is not None:
            assert self._cache is not None
            self._cache.set(key, data)
        return data

    async def get(self, path: str, **kwargs: Any) -> Any:
        """Send a GET request.  See :meth:`request`."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        """Send a POST request.  See :meth:`request`."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        """Send a PUT request.  See :meth:`request`."""
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        """Send a PATCH request.  See :meth:`request`."""
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        """Send a DELETE request.  See :meth:`request`."""
        return await self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------ #
    # Cache introspection
    # ------------------------------------------------------------------ #

    def cache_size(self) -> int:
        return self._cache.size() if self._cache is not None else 0

    def cache_keys(self) -> list[str]:
        return self._cache.keys() if self._cache is not None else []

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def delete_cached(self, path: str, token: Optional[str] = None) -> bool:
        """Drop the cached response for *path* as seen by *token*'s principal."""
        if self._cache is None:
            return False
        return self._cache.delete(fingerprint(path, token))

    def invalidate(self, prefixes: Iterable[str]) -> int:
        """Drop cached reads whose path lies under any of *prefixes*.

        Returns:
            The number of removed entries.
        """
        if self._cache is None:
            return 0
        prefixes = tuple(prefixes)
        removed = self._cache.delete_matching(
            lambda key: any(under_prefix(fingerprint_path(key), p) for p in prefixes)
        )
        if removed:
            get_output().debug(f"Invalidated {removed} cached entries under {', '.join(prefixes)}")
        return removed

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_headers(
        self,
        token: Optional[str],
        headers: Optional[dict[str, str]],
    ) -> dict[str, str]:
        merged = {"Content-Type": "application/json"}
        if token:
            merged["Authorization"] = f"Bearer {token}"
        merged.update(headers or {})
        return merged

    async def _send(
        self,
        method: str,
        path: str,
        body: Optional[Any],
        token: Optional[str],
        headers: Optional[dict[str, str]],
    ) -> Any:
        """Perform the network call and normalise its outcome."""
        assert self._client is not None, "Client not initialised -- use as async context manager"

        kwargs: dict[str, Any] = {
            "method": method,
            "url": path,
            "headers": self._build_headers(token, headers),
        }
        if body is not None:
            kwargs["json"] = body

        started = time.perf_counter()
        try:
            response = await self._client.request(**kwargs)
        except httpx.TransportError as exc:
            get_output().debug(f"Transport error: {method} {path}: {exc}")
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        finally:
            if self._metrics is not None:
                self._metrics.record_response_time(time.perf_counter() - started)

        get_output().debug(f"HTTP {response.status_code}: {method} {path}")
        raise_for_status(response)
        return decode_response(response)
