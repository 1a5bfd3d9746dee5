"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~refetch.exceptions.RefetchError` subclass.
Shell wrappers can inspect the exit code of ``refetch get`` to tell a
rejected token from an unreachable server without parsing stderr.

Example::

    $ refetch get /journals --token-source env:API_TOKEN
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the API answered 401
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the credentials (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_TRANSPORT_ERROR = 6
"""A network-level or decoding error occurred (timeout, DNS failure, malformed body)."""
