"""Journal endpoints.

Owner calls need a token; the ``public`` listing and pages do not.  Every
write invalidates the whole ``/journals`` prefix because publishing changes
the public listing as well as the owner's.
"""

from __future__ import annotations

from typing import Any, Optional

from refetch.api._query import segment, with_query
from refetch.client import AsyncClient

PREFIX = "/journals"


async def list_journals(
    client: AsyncClient,
    token: Optional[str],
    *,
    page: int = 1,
    limit: int = 30,
    q: str = "",
) -> Any:
    return await client.get(with_query(PREFIX, page=page, limit=limit, q=q), token=token)


async def get_journal(client: AsyncClient, token: Optional[str], journal_id: Any) -> Any:
    return await client.get(f"{PREFIX}/{segment(journal_id)}", token=token)


async def create_journal(client: AsyncClient, token: Optional[str], payload: dict[str, Any]) -> Any:
    return await client.post(PREFIX, token=token, body=payload, invalidate=[PREFIX])


async def update_journal(
    client: AsyncClient,
    token: Optional[str],
    journal_id: Any,
    payload: dict[str, Any],
) -> Any:
    return await client.put(
        f"{PREFIX}/{segment(journal_id)}", token=token, body=payload, invalidate=[PREFIX]
    )


async def remove_journal(client: AsyncClient, token: Optional[str], journal_id: Any) -> Any:
    return await client.delete(
        f"{PREFIX}/{segment(journal_id)}", token=token, invalidate=[PREFIX]
    )


async def publish_journal(client: AsyncClient, token: Optional[str], journal_id: Any) -> Any:
    return await client.post(
        f"{PREFIX}/{segment(journal_id)}/publish", token=token, invalidate=[PREFIX]
    )


async def unpublish_journal(client: AsyncClient, token: Optional[str], journal_id: Any) -> Any:
    return await client.post(
        f"{PREFIX}/{segment(journal_id)}/unpublish", token=token, invalidate=[PREFIX]
    )


async def list_public(
    client: AsyncClient,
    *,
    page: int = 1,
    limit: int = 20,
    q: str = "",
    tag: str = "",
) -> Any:
    return await client.get(with_query(f"{PREFIX}/public", page=page, limit=limit, q=q, tag=tag))


async def get_public(client: AsyncClient, slug: str) -> Any:
    return await client.get(f"{PREFIX}/public/{segment(slug)}")
