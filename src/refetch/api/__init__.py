"""Endpoint wrappers for the resources the API exposes.

Each module groups the calls for one resource.  Functions take an open
:class:`~refetch.client.AsyncClient` and the caller's bearer token, build
the path and query string, and return the decoded body.  Reads go through
the client's cache and deduplication; writes name the path prefixes whose
cached reads they make stale.

Modules:
    articles, journals, notes, calendar, digest, auth, ai: endpoint calls.
    bindings: preconfigured fetch controllers for common views.
"""

from refetch.api import ai, articles, auth, calendar, digest, journals, notes

__all__ = ["ai", "articles", "auth", "calendar", "digest", "journals", "notes"]
