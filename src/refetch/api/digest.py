"""Daily digest endpoints."""

from __future__ import annotations

from typing import Any, Optional

from refetch.api._query import segment, with_query
from refetch.client import AsyncClient

PREFIX = "/digests"


async def get_by_date(client: AsyncClient, token: Optional[str], date: str) -> Any:
    return await client.get(f"{PREFIX}/{segment(date)}", token=token)


async def generate(
    client: AsyncClient,
    token: Optional[str],
    date: str,
    *,
    limit: int = 12,
    refresh: bool = False,
    length: str = "detailed",
    topics: str = "",
) -> Any:
    """Generate (or regenerate with ``refresh=True``) the digest for *date*."""
    params: dict[str, Any] = {
        "date": date,
        "limit": limit,
        "refresh": bool(refresh),
        "length": length,
    }
    if topics:
        params["topics"] = topics
    return await client.post(
        with_query(f"{PREFIX}/generate", **params),
        token=token,
        invalidate=[f"{PREFIX}/{segment(date)}"],
    )
