"""Article endpoints: listing, import, edits and feed refresh."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from refetch.api._query import segment, with_query
from refetch.client import AsyncClient

PREFIX = "/articles"
DEFAULT_TOPICS = "world,business,tech,science,social,school,student"


async def list_articles(
    client: AsyncClient,
    token: Optional[str],
    *,
    page: int = 1,
    limit: int = 30,
    q: str = "",
    tag: str = "",
) -> Any:
    return await client.get(
        with_query(PREFIX, page=page, limit=limit, q=q, tag=tag), token=token
    )


async def get_article(client: AsyncClient, token: Optional[str], article_id: Any) -> Any:
    return await client.get(f"{PREFIX}/{segment(article_id)}", token=token)


async def import_by_url(
    client: AsyncClient,
    token: Optional[str],
    url: str,
    tags: Sequence[str] = (),
) -> Any:
    return await client.post(
        f"{PREFIX}/import",
        token=token,
        body={"url": url, "tags": list(tags)},
        invalidate=[PREFIX],
    )


async def update_article(
    client: AsyncClient,
    token: Optional[str],
    article_id: Any,
    body: dict[str, Any],
) -> Any:
    return await client.put(
        f"{PREFIX}/{segment(article_id)}", token=token, body=body, invalidate=[PREFIX]
    )


async def refresh_articles(
    client: AsyncClient,
    token: Optional[str],
    *,
    limit: int = 60,
    force: bool = True,
    topics: Optional[str] = DEFAULT_TOPICS,
) -> Any:
    """Ask the server to pull fresh articles from its feeds."""
    params: dict[str, Any] = {"limit": limit, "force": bool(force)}
    if topics:
        params["topics"] = topics
    return await client.post(
        with_query(f"{PREFIX}/refresh", **params), token=token, invalidate=[PREFIX]
    )
