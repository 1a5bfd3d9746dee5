"""Account endpoints.  Sign-up and login never carry a token."""

from __future__ import annotations

from typing import Any, Optional

from refetch.client import AsyncClient


async def signup(client: AsyncClient, email: str, password: str, name: str = "") -> Any:
    return await client.post(
        "/auth/signup", body={"email": email, "password": password, "name": name}
    )


async def login(client: AsyncClient, email: str, password: str) -> Any:
    return await client.post("/auth/login", body={"email": email, "password": password})


async def me(client: AsyncClient, token: Optional[str]) -> Any:
    return await client.get("/auth/me", token=token)
