"""Calendar endpoints: event ranges and the generated daily agenda."""

from __future__ import annotations

from typing import Any, Optional

from refetch.api._query import segment, with_query
from refetch.client import AsyncClient

PREFIX = "/calendar"


async def list_range(
    client: AsyncClient,
    token: Optional[str],
    *,
    start: str,
    end: str,
    q: str = "",
) -> Any:
    return await client.get(with_query(PREFIX, start=start, end=end, q=q), token=token)


async def create_event(client: AsyncClient, token: Optional[str], payload: dict[str, Any]) -> Any:
    return await client.post(PREFIX, token=token, body=payload, invalidate=[PREFIX])


async def update_event(
    client: AsyncClient,
    token: Optional[str],
    event_id: Any,
    payload: dict[str, Any],
) -> Any:
    return await client.put(
        f"{PREFIX}/{segment(event_id)}", token=token, body=payload, invalidate=[PREFIX]
    )


async def remove_event(client: AsyncClient, token: Optional[str], event_id: Any) -> Any:
    return await client.delete(f"{PREFIX}/{segment(event_id)}", token=token, invalidate=[PREFIX])


async def get_daily(client: AsyncClient, token: Optional[str], date: str) -> Any:
    return await client.get(f"{PREFIX}/daily/{segment(date)}", token=token)


async def generate_daily(client: AsyncClient, token: Optional[str], date: str) -> Any:
    return await client.post(
        f"{PREFIX}/daily/{segment(date)}/generate",
        token=token,
        invalidate=[f"{PREFIX}/daily/{segment(date)}"],
    )
