"""Summarisation endpoint.

Input text is cleaned before it is sent: HTML tags are stripped, runs of
whitespace are collapsed, and the result is capped at
:data:`MAX_INPUT_CHARS` characters to stay within the server's limit.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from refetch.client import AsyncClient
from refetch.exceptions import InvalidUsageError

MODES = frozenset({"tldr", "detailed", "outline"})
DEFAULT_MODE = "detailed"
MAX_INPUT_CHARS = 8000

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def pick_mode(mode: Optional[str]) -> str:
    """Return *mode* if it is supported, else :data:`DEFAULT_MODE`."""
    return mode if mode in MODES else DEFAULT_MODE


def compress(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def clean_text(text: str) -> str:
    return compress(_TAG.sub(" ", text))[:MAX_INPUT_CHARS]


async def summarize(
    client: AsyncClient,
    token: Optional[str],
    *,
    text: Optional[str] = None,
    article_id: Optional[Any] = None,
    mode: str = DEFAULT_MODE,
) -> dict[str, str]:
    """Summarise free text or a stored article.

    Raises:
        InvalidUsageError: If neither non-empty *text* nor *article_id* is given.
    """
    body: dict[str, Any] = {"mode": pick_mode(mode)}
    if text:
        cleaned = clean_text(text)
        if cleaned:
            body["text"] = cleaned
    if article_id:
        body["articleId"] = article_id
    if "text" not in body and "articleId" not in body:
        raise InvalidUsageError("summarize() requires text or article_id")

    result = await client.post("/ai/summarize", token=token, body=body)
    summary = result.get("summary") if isinstance(result, dict) else None
    return {"summary": compress(summary or "")}


async def summarize_by_id(
    client: AsyncClient,
    token: Optional[str],
    article_id: Any,
    mode: str = DEFAULT_MODE,
) -> dict[str, str]:
    return await summarize(client, token, article_id=article_id, mode=mode)


async def summarize_html(
    client: AsyncClient,
    token: Optional[str],
    *,
    html: str = "",
    title: str = "",
    excerpt: str = "",
    mode: str = DEFAULT_MODE,
) -> dict[str, str]:
    """Summarise an HTML page, falling back to its title and excerpt."""
    text = clean_text(html) or compress(f"{title}. {excerpt}")
    return await summarize(client, token, text=text, mode=mode)
