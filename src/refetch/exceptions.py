"""Exception hierarchy for refetch.

All exceptions inherit from :class:`RefetchError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`refetch.exit_codes`.
The CLI entry point in :func:`refetch.app.main` catches ``RefetchError`` and
exits with the appropriate code.

Subclass hierarchy::

    RefetchError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- HttpStatusError      (exit 3 / 4 / 5 / 1 depending on status)
    +-- TransportError       (exit 6)
    +-- CancelledOperation   (exit 1, never surfaced to consumers)
    +-- ConfigError          (exit 1)
"""

from __future__ import annotations

from refetch.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_TRANSPORT_ERROR,
)


class RefetchError(Exception):
    """Base exception for all refetch errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`refetch.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(RefetchError):
    """Raised for invalid arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class HttpStatusError(RefetchError):
    """Raised when the API answers with a non-2xx status.

    A single error kind for every status code. The exit code is derived
    from the status so that shell callers can still tell an auth failure
    from a missing resource.

    Args:
        status: The HTTP status code of the response.
        message: Message taken from the JSON body's ``error`` field, or
            ``"HTTP {status}"`` when the body has none.
    """

    def __init__(self, status: int, message: str | None = None):
        super().__init__(message or f"HTTP {status}", exit_code=_exit_code_for_status(status))
        self.status = status


class TransportError(RefetchError):
    """Raised on network-level failures and undecodable response bodies."""

    exit_code = EXIT_TRANSPORT_ERROR


class CancelledOperation(RefetchError):
    """Raised when a superseded or detached operation tries to apply its result.

    Never surfaced to consumers; the fetch controller discards it.
    """


class ConfigError(RefetchError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


def _exit_code_for_status(status: int) -> int:
    if status in (401, 403):
        return EXIT_AUTH_FAILURE
    if status == 404:
        return EXIT_NOT_FOUND
    if status >= 500:
        return EXIT_SERVER_ERROR
    return EXIT_GENERIC_FAILURE
