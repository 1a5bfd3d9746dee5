"""Note endpoints, including the generated daily note."""

from __future__ import annotations

from typing import Any, Optional

from refetch.api._query import segment, with_query
from refetch.client import AsyncClient

PREFIX = "/notes"


async def list_notes(
    client: AsyncClient,
    token: Optional[str],
    *,
    date: str = "",
    page: int = 1,
    limit: int = 100,
    q: str = "",
) -> Any:
    return await client.get(
        with_query(PREFIX, date=date, page=page, limit=limit, q=q), token=token
    )


async def create_note(client: AsyncClient, token: Optional[str], payload: dict[str, Any]) -> Any:
    return await client.post(PREFIX, token=token, body=payload, invalidate=[PREFIX])


async def update_note(
    client: AsyncClient,
    token: Optional[str],
    note_id: Any,
    payload: dict[str, Any],
) -> Any:
    return await client.put(
        f"{PREFIX}/{segment(note_id)}", token=token, body=payload, invalidate=[PREFIX]
    )


async def remove_note(client: AsyncClient, token: Optional[str], note_id: Any) -> Any:
    return await client.delete(f"{PREFIX}/{segment(note_id)}", token=token, invalidate=[PREFIX])


async def get_daily(client: AsyncClient, token: Optional[str], date: str) -> Any:
    return await client.get(f"{PREFIX}/daily/{segment(date)}", token=token)


async def generate_daily(client: AsyncClient, token: Optional[str], date: str) -> Any:
    return await client.post(
        f"{PREFIX}/daily/{segment(date)}/generate",
        token=token,
        invalidate=[f"{PREFIX}/daily/{segment(date)}"],
    )
