"""Query-string helpers shared by the endpoint modules."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, urlencode


def with_query(path: str, **params: Any) -> str:
    """Append *params* to *path* in the given order.

    Booleans are rendered as ``true`` / ``false``.
    """
    rendered = {
        key: (str(value).lower() if isinstance(value, bool) else value)
        for key, value in params.items()
    }
    return f"{path}?{urlencode(rendered)}" if rendered else path


def segment(value: Any) -> str:
    """Percent-encode a single path segment."""
    return quote(str(value), safe="")
