"""Response decoding and error normalisation for :class:`httpx.Response`.

Every response the client receives passes through :func:`raise_for_status`
and :func:`decode_response`, which together implement the single failure
contract of the HTTP layer:

* non-2xx status -> :class:`~refetch.exceptions.HttpStatusError` carrying the
  status and the JSON body's ``error`` field (or ``"HTTP {status}"``);
* a 2xx body that is not valid JSON ->
  :class:`~refetch.exceptions.TransportError`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from refetch.exceptions import HttpStatusError, TransportError


def error_message(response: httpx.Response) -> Optional[str]:
    """Extract the ``error`` field from a JSON error body, if any."""
    try:
        detail = response.json()
    except ValueError:
        return None
    if isinstance(detail, dict):
        message = detail.get("error")
        if message:
            return str(message)
    return None


def raise_for_status(response: httpx.Response) -> None:
    """Raise :class:`HttpStatusError` unless *response* has a 2xx status."""
    status = response.status_code
    if 200 <= status < 300:
        return
    raise HttpStatusError(status, error_message(response))


def decode_response(response: httpx.Response) -> Any:
    """Decode the JSON body of a successful response.

    Returns:
        The decoded object, or ``None`` when the body is empty.

    Raises:
        TransportError: If the body is not valid JSON.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise TransportError(f"Malformed JSON response body: {exc}") from exc
