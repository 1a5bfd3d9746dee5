"""Tests for the caching, deduplicating AsyncClient."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from refetch.cache import CacheStore, PendingRequestRegistry
from refetch.client import AsyncClient, fingerprint, principal
from refetch.client.async_client import under_prefix
from refetch.exceptions import HttpStatusError, TransportError
from refetch.metrics import RequestMetrics

BASE_URL = "https://api.example.com/api"


class Recorder:
    """MockTransport handler that records requests and serves canned bodies."""

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        key = (request.method, request.url.raw_path.decode())
        route = self.routes.get(key, {"path": request.url.path, "n": len(self.requests)})
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, Exception):
            raise route
        return httpx.Response(200, json=route)

    def count(self, method: str = "GET") -> int:
        return sum(1 for r in self.requests if r.method == method)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def store(clock) -> CacheStore:
    return CacheStore(ttl=300, clock=clock)


def _client(recorder: Recorder, store: CacheStore | None = None, **kwargs: Any) -> AsyncClient:
    return AsyncClient(
        BASE_URL,
        cache=store,
        pending=PendingRequestRegistry(),
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


# ------------------------------------------------------------------ #
# Fingerprints
# ------------------------------------------------------------------ #


class TestFingerprint:
    def test_anonymous(self) -> None:
        assert fingerprint("/articles?page=1") == "/articles?page=1#anonymous"

    def test_token_is_not_embedded(self) -> None:
        key = fingerprint("/notes", "secret-token")
        assert "secret-token" not in key
        assert key == f"/notes#{principal('secret-token')}"

    def test_distinct_tokens_distinct_keys(self) -> None:
        assert fingerprint("/notes", "a") != fingerprint("/notes", "b")

    def test_empty_token_is_anonymous(self) -> None:
        assert principal("") == "anonymous"
        assert principal(None) == "anonymous"

    @pytest.mark.parametrize(
        "path, prefix, expected",
        [
            ("/notes", "/notes", True),
            ("/notes/7", "/notes", True),
            ("/notes?page=2", "/notes", True),
            ("/notesarchive", "/notes", False),
            ("/notes/7", "/notes/", True),
            ("/journals/public", "/journals", True),
            ("/journal", "/journals", False),
        ],
    )
    def test_under_prefix_stops_at_segment_boundaries(
        self, path: str, prefix: str, expected: bool
    ) -> None:
        assert under_prefix(path, prefix) is expected


# ------------------------------------------------------------------ #
# Reads
# ------------------------------------------------------------------ #


class TestReads:
    @pytest.mark.asyncio
    async def test_get_sends_bearer_and_json_headers(self, recorder: Recorder) -> None:
        async with _client(recorder) as client:
            await client.get("/me", token="tok")
        sent = recorder.requests[0]
        assert sent.headers["Authorization"] == "Bearer tok"
        assert sent.headers["Content-Type"] == "application/json"
        assert str(sent.url) == "https://api.example.com/api/me"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self, recorder: Recorder) -> None:
        async with _client(recorder) as client:
            await client.get("/public/journals")
        assert "Authorization" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_concurrent_reads_share_one_call(self, recorder: Recorder, store: CacheStore) -> None:
        recorder.gate = asyncio.Event()
        async with _client(recorder, store) as client:
            tasks = [asyncio.ensure_future(client.get("/articles?page=1")) for _ in range(3)]
            await asyncio.sleep(0.01)
            recorder.gate.set()
            results = await asyncio.gather(*tasks)
        assert recorder.count() == 1
        assert results[0] == results[1] == results[2]

    @pytest.mark.asyncio
    async def test_cached_read_skips_network(self, recorder: Recorder, store: CacheStore) -> None:
        async with _client(recorder, store) as client:
            first = await client.get("/articles?page=1")
            second = await client.get("/articles?page=1")
        assert first == second
        assert recorder.count() == 1
        assert client.cache_keys() == ["/articles?page=1#anonymous"]

    @pytest.mark.asyncio
    async def test_ttl_expiry_refetches(self, recorder: Recorder, store: CacheStore, clock) -> None:
        async with _client(recorder, store) as client:
            await client.get("/articles?page=1")
            clock.advance(299)
            await client.get("/articles?page=1")
            assert recorder.count() == 1
            clock.advance(2)
            await client.get("/articles?page=1")
        assert recorder.count() == 2

    @pytest.mark.asyncio
    async def test_short_ttl_scenario(self, recorder: Recorder, clock) -> None:
        store = CacheStore(ttl=5, clock=clock)
        async with _client(recorder, store) as client:
            await client.get("/digests/today")
            clock.advance(1)
            await client.get("/digests/today")
            assert recorder.count() == 1
            clock.advance(5)
            third = await client.get("/digests/today")
            assert recorder.count() == 2
            assert store.get(fingerprint("/digests/today")) == third

    @pytest.mark.asyncio
    async def test_principals_are_isolated(self, recorder: Recorder, store: CacheStore) -> None:
        async with _client(recorder, store) as client:
            await client.get("/notes", token="alice")
            await client.get("/notes", token="bob")
            await client.get("/notes", token="alice")
        assert recorder.count() == 2
        assert client.cache_size() == 2

    @pytest.mark.asyncio
    async def test_cache_false_bypasses_lookup_and_write(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        async with _client(recorder, store) as client:
            await client.get("/articles", cache=False)
            await client.get("/articles", cache=False)
        assert recorder.count() == 2
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_cached_read_joining_uncached_read_populates_cache(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        recorder.gate = asyncio.Event()
        async with _client(recorder, store) as client:
            uncached = asyncio.ensure_future(client.get("/a", cache=False))
            cached = asyncio.ensure_future(client.get("/a"))
            await asyncio.sleep(0.01)
            recorder.gate.set()
            first, second = await asyncio.gather(uncached, cached)
            assert first == second
            assert client.cache_keys() == ["/a#anonymous"]
            await client.get("/a")
        assert recorder.count() == 1

    @pytest.mark.asyncio
    async def test_empty_body_is_not_cached(self, store: CacheStore) -> None:
        recorder = Recorder({("GET", "/api/empty"): httpx.Response(204)})
        async with _client(recorder, store) as client:
            assert await client.get("/empty") is None
            assert await client.get("/empty") is None
        assert recorder.count() == 2
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_failed_read_is_not_cached(self, store: CacheStore) -> None:
        recorder = Recorder(
            {("GET", "/api/digests/2024-01-01"): httpx.Response(404, json={"error": "No digest"})}
        )
        async with _client(recorder, store) as client:
            with pytest.raises(HttpStatusError):
                await client.get("/digests/2024-01-01")
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_concurrent_failure_reaches_every_caller(self) -> None:
        recorder = Recorder({("GET", "/api/boom"): httpx.Response(500)})
        recorder.gate = asyncio.Event()
        async with _client(recorder) as client:
            tasks = [asyncio.ensure_future(client.get("/boom")) for _ in range(2)]
            await asyncio.sleep(0.01)
            recorder.gate.set()
            results = await asyncio.gather(*tasks, return_exceptions=True)
        assert recorder.count() == 1
        assert all(isinstance(r, HttpStatusError) and r.status == 500 for r in results)

    @pytest.mark.asyncio
    async def test_works_without_cache_or_registry(self, recorder: Recorder) -> None:
        async with AsyncClient(BASE_URL, transport=httpx.MockTransport(recorder)) as client:
            await client.get("/a")
            await client.get("/a")
            assert client.cache_size() == 0
            assert client.cache_keys() == []
        assert recorder.count() == 2


# ------------------------------------------------------------------ #
# Writes
# ------------------------------------------------------------------ #


class TestWrites:
    @pytest.mark.asyncio
    async def test_post_sends_json_body_and_is_never_cached(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        async with _client(recorder, store) as client:
            await client.post("/journals", body={"title": "t"}, token="tok")
            await client.post("/journals", body={"title": "t"}, token="tok")
        assert recorder.count("POST") == 2
        assert json.loads(recorder.requests[0].content) == {"title": "t"}
        assert client.cache_keys() == []

    @pytest.mark.asyncio
    async def test_concurrent_writes_are_not_deduplicated(self, recorder: Recorder) -> None:
        async with _client(recorder) as client:
            await asyncio.gather(client.put("/notes/1", body={}), client.put("/notes/1", body={}))
        assert recorder.count("PUT") == 2

    @pytest.mark.asyncio
    async def test_write_invalidates_prefixes_for_all_principals(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        async with _client(recorder, store) as client:
            await client.get("/journals?page=1", token="alice")
            await client.get("/journals/7", token="bob")
            await client.get("/notes", token="alice")
            await client.post("/journals", body={}, token="alice", invalidate=["/journals"])
            assert client.cache_keys() == [fingerprint("/notes", "alice")]
            await client.get("/journals?page=1", token="alice")
        assert recorder.count() == 4

    @pytest.mark.asyncio
    async def test_invalidation_spares_sibling_paths(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        async with _client(recorder, store) as client:
            for path in ("/notes", "/notesarchive", "/notes/7", "/notes?page=2"):
                await client.get(path)
            assert client.invalidate(["/notes"]) == 3
            assert client.cache_keys() == ["/notesarchive#anonymous"]

    @pytest.mark.asyncio
    async def test_failed_post_is_never_cached(self, store: CacheStore) -> None:
        recorder = Recorder(
            {("POST", "/api/journals"): httpx.Response(500, json={"error": "Database unavailable"})}
        )
        async with _client(recorder, store) as client:
            with pytest.raises(HttpStatusError) as exc_info:
                await client.post("/journals", body={"title": "t"}, token="tok")
            assert exc_info.value.status == 500
            assert client.cache_keys() == []
            assert fingerprint("/journals", "tok") not in store

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, store: CacheStore) -> None:
        recorder = Recorder({("DELETE", "/api/journals/1"): httpx.Response(403)})
        async with _client(recorder, store) as client:
            await client.get("/journals")
            with pytest.raises(HttpStatusError):
                await client.delete("/journals/1", invalidate=["/journals"])
        assert client.cache_size() == 1

    @pytest.mark.asyncio
    async def test_manual_invalidation(self, recorder: Recorder, store: CacheStore) -> None:
        async with _client(recorder, store) as client:
            await client.get("/calendar")
            await client.get("/calendar/daily/2024-05-01")
            assert client.delete_cached("/calendar") is True
            assert client.invalidate(["/calendar/daily"]) == 1
            assert client.cache_size() == 0


# ------------------------------------------------------------------ #
# Errors and metrics
# ------------------------------------------------------------------ #


class TestErrors:
    @pytest.mark.asyncio
    async def test_status_error_carries_body_message(self) -> None:
        recorder = Recorder({("GET", "/api/me"): httpx.Response(401, json={"error": "Bad token"})})
        async with _client(recorder) as client:
            with pytest.raises(HttpStatusError) as excinfo:
                await client.get("/me", token="x")
        assert excinfo.value.status == 401
        assert excinfo.value.message == "Bad token"
        assert excinfo.value.exit_code == 3

    @pytest.mark.asyncio
    async def test_transport_failure(self) -> None:
        recorder = Recorder({("GET", "/api/me"): httpx.ConnectError("refused")})
        async with _client(recorder) as client:
            with pytest.raises(TransportError, match="refused"):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_malformed_body(self) -> None:
        recorder = Recorder({("GET", "/api/me"): httpx.Response(200, content=b"<html>")})
        async with _client(recorder) as client:
            with pytest.raises(TransportError, match="Malformed JSON"):
                await client.get("/me")

    @pytest.mark.asyncio
    async def test_metrics_record_network_calls_only(
        self, recorder: Recorder, store: CacheStore
    ) -> None:
        metrics = RequestMetrics()
        metrics.attach(store)
        async with _client(recorder, store, metrics=metrics) as client:
            await client.get("/a")
            await client.get("/a")
        snap = metrics.snapshot()
        assert snap["requests"] == 1
        assert snap["cache_hits"] == 1
        assert snap["cache_misses"] == 1
        assert snap["cache_size"] == 1
