"""Tests for the endpoint wrappers and preconfigured bindings."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
import pytest_asyncio

from refetch.api import ai, articles, auth, calendar, digest, journals, notes
from refetch.api._query import segment, with_query
from refetch.api.bindings import articles_list_controller, daily_digest_controller
from refetch.cache import CacheStore, PendingRequestRegistry
from refetch.client import AsyncClient, fingerprint
from refetch.exceptions import InvalidUsageError
from refetch.swr import BackgroundScheduler

BASE_URL = "https://api.example.com/api"


class Recorder:
    def __init__(self, body: Any = None) -> None:
        self.body = body if body is not None else {"ok": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(200, json=self.body)

    @property
    def last(self) -> tuple[str, str]:
        request = self.requests[-1]
        return request.method, request.url.raw_path.decode().removeprefix("/api")

    @property
    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest_asyncio.fixture()
async def client(recorder: Recorder):
    async with AsyncClient(
        BASE_URL,
        cache=CacheStore(ttl=300),
        pending=PendingRequestRegistry(),
        transport=httpx.MockTransport(recorder),
    ) as c:
        yield c


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------


class TestQuery:
    def test_with_query_keeps_order_and_lowercases_bools(self) -> None:
        assert with_query("/x", page=1, force=True, q="a b") == "/x?page=1&force=true&q=a+b"

    def test_with_query_without_params(self) -> None:
        assert with_query("/x") == "/x"

    def test_segment_escapes_slashes(self) -> None:
        assert segment("a/b c") == "a%2Fb%20c"


# ---------------------------------------------------------------------------
# Resource endpoints
# ---------------------------------------------------------------------------


class TestArticles:
    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient, recorder: Recorder) -> None:
        await articles.list_articles(client, "tok", page=2, q="rust")
        assert recorder.last == ("GET", "/articles?page=2&limit=30&q=rust&tag=")

    @pytest.mark.asyncio
    async def test_import_invalidates_listing(self, client: AsyncClient, recorder: Recorder) -> None:
        await articles.list_articles(client, "tok")
        await articles.get_article(client, "tok", 7)
        await articles.import_by_url(client, "tok", "https://example.org/post", tags=["tech"])
        assert recorder.last == ("POST", "/articles/import")
        assert recorder.last_json == {"url": "https://example.org/post", "tags": ["tech"]}
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_refresh_query(self, client: AsyncClient, recorder: Recorder) -> None:
        await articles.refresh_articles(client, "tok", limit=10, topics=None)
        assert recorder.last == ("POST", "/articles/refresh?limit=10&force=true")


class TestJournals:
    @pytest.mark.asyncio
    async def test_publish_invalidates_public_listing(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        await journals.list_public(client)
        await journals.get_public(client, "my-trip")
        assert client.cache_size() == 2
        await journals.publish_journal(client, "tok", 3)
        assert recorder.last == ("POST", "/journals/3/publish")
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_crud_paths(self, client: AsyncClient, recorder: Recorder) -> None:
        await journals.create_journal(client, "tok", {"title": "t"})
        assert recorder.last == ("POST", "/journals")
        await journals.update_journal(client, "tok", 3, {"title": "u"})
        assert recorder.last == ("PUT", "/journals/3")
        await journals.unpublish_journal(client, "tok", 3)
        assert recorder.last == ("POST", "/journals/3/unpublish")
        await journals.remove_journal(client, "tok", 3)
        assert recorder.last == ("DELETE", "/journals/3")

    @pytest.mark.asyncio
    async def test_public_reads_are_anonymous(self, client: AsyncClient, recorder: Recorder) -> None:
        await journals.list_public(client, tag="travel")
        assert "Authorization" not in recorder.requests[-1].headers
        assert client.cache_keys() == [
            fingerprint("/journals/public?page=1&limit=20&q=&tag=travel")
        ]


class TestDailyResources:
    @pytest.mark.asyncio
    async def test_generate_daily_note_invalidates_only_that_day(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        await notes.get_daily(client, "tok", "2024-05-01")
        await notes.get_daily(client, "tok", "2024-05-02")
        await notes.generate_daily(client, "tok", "2024-05-01")
        assert recorder.last == ("POST", "/notes/daily/2024-05-01/generate")
        assert client.cache_keys() == [fingerprint("/notes/daily/2024-05-02", "tok")]

    @pytest.mark.asyncio
    async def test_calendar_range(self, client: AsyncClient, recorder: Recorder) -> None:
        await calendar.list_range(client, "tok", start="2024-05-01", end="2024-05-31")
        assert recorder.last == ("GET", "/calendar?start=2024-05-01&end=2024-05-31&q=")
        await calendar.create_event(client, "tok", {"title": "Standup"})
        assert client.cache_size() == 0

    @pytest.mark.asyncio
    async def test_digest_generate(self, client: AsyncClient, recorder: Recorder) -> None:
        await digest.get_by_date(client, "tok", "2024-05-01")
        await digest.generate(client, "tok", "2024-05-01", refresh=True)
        assert recorder.last == (
            "POST",
            "/digests/generate?date=2024-05-01&limit=12&refresh=true&length=detailed",
        )
        assert client.cache_size() == 0


class TestAuth:
    @pytest.mark.asyncio
    async def test_login_sends_credentials_without_token(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        await auth.login(client, "a@example.com", "pw")
        assert recorder.last == ("POST", "/auth/login")
        assert recorder.last_json == {"email": "a@example.com", "password": "pw"}
        assert "Authorization" not in recorder.requests[-1].headers

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, recorder: Recorder) -> None:
        await auth.me(client, "tok")
        assert recorder.requests[-1].headers["Authorization"] == "Bearer tok"


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class TestSummaries:
    def test_clean_text(self) -> None:
        assert ai.clean_text("<p>Hello\n\n <b>world</b></p>") == "Hello world"

    def test_clean_text_caps_length(self) -> None:
        assert len(ai.clean_text("x" * 9000)) == ai.MAX_INPUT_CHARS

    def test_unknown_mode_falls_back(self) -> None:
        assert ai.pick_mode("poem") == "detailed"
        assert ai.pick_mode("tldr") == "tldr"

    @pytest.mark.asyncio
    async def test_summarize_text(self, client: AsyncClient, recorder: Recorder) -> None:
        recorder.body = {"summary": "  Short\n summary "}
        result = await ai.summarize(client, "tok", text="<p>Body</p>", mode="tldr")
        assert result == {"summary": "Short summary"}
        assert recorder.last_json == {"mode": "tldr", "text": "Body"}

    @pytest.mark.asyncio
    async def test_summarize_by_id(self, client: AsyncClient, recorder: Recorder) -> None:
        result = await ai.summarize_by_id(client, "tok", 42)
        assert recorder.last_json == {"mode": "detailed", "articleId": 42}
        assert result == {"summary": ""}

    @pytest.mark.asyncio
    async def test_summarize_html_falls_back_to_title(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        await ai.summarize_html(client, "tok", html="<div> </div>", title="Title", excerpt="Lead")
        assert recorder.last_json["text"] == "Title. Lead"

    @pytest.mark.asyncio
    async def test_summarize_requires_input(self, client: AsyncClient, recorder: Recorder) -> None:
        with pytest.raises(InvalidUsageError):
            await ai.summarize(client, "tok", text="<br>")
        assert recorder.requests == []


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------


class TestBindings:
    @pytest.mark.asyncio
    async def test_articles_controller_follows_filters(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        controller = articles_list_controller(client, "tok", page=1)
        await controller.attach()
        await controller.set_dependencies((2, 30, "", "tech"))
        assert recorder.last == ("GET", "/articles?page=2&limit=30&q=&tag=tech")
        assert controller.background_tick() is None
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_digest_controller_gets_private_scheduler(
        self, client: AsyncClient, recorder: Recorder
    ) -> None:
        controller = daily_digest_controller(client, "tok", "2024-05-01")
        assert controller.scheduler is not None
        assert controller.scheduler.interval == 60
        await controller.attach()
        assert recorder.last == ("GET", "/digests/2024-05-01")
        assert controller.scheduler.bindings == [controller]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_digest_controller_uses_given_scheduler(self, client: AsyncClient) -> None:
        scheduler = BackgroundScheduler(interval=5)
        controller = daily_digest_controller(client, "tok", "2024-05-01", scheduler=scheduler)
        assert controller.scheduler is scheduler
