"""Preconfigured fetch controllers for the two live views.

The articles list is paginated and filtered, so its controller depends on
``(page, limit, q, tag)`` and never refreshes in the background.  The daily
digest changes during the day and is revalidated in the background once it
is older than five minutes.
"""

from __future__ import annotations

from typing import Any, Optional

from refetch.api import articles, digest
from refetch.client import AsyncClient
from refetch.swr import BackgroundScheduler, FetchController

ARTICLES_STALE_TIME = 300.0
DIGEST_STALE_TIME = 300.0
DIGEST_REFRESH_INTERVAL = 60.0


def articles_list_controller(
    client: AsyncClient,
    token: Optional[str],
    *,
    page: int = 1,
    limit: int = 30,
    q: str = "",
    tag: str = "",
    **options: Any,
) -> FetchController:
    """Bind to one page of the article list.

    Change the page or filters with
    ``controller.set_dependencies((page, limit, q, tag))``.
    """

    async def fetch(page: int, limit: int, q: str, tag: str) -> Any:
        return await articles.list_articles(client, token, page=page, limit=limit, q=q, tag=tag)

    settings: dict[str, Any] = {
        "background_refresh": False,
        "stale_time": ARTICLES_STALE_TIME,
        "name": "articles",
    }
    settings.update(options)
    return FetchController(fetch, dependencies=(page, limit, q, tag), **settings)


def daily_digest_controller(
    client: AsyncClient,
    token: Optional[str],
    date: str,
    *,
    scheduler: Optional[BackgroundScheduler] = None,
    **options: Any,
) -> FetchController:
    """Bind to the digest for *date*, revalidating it in the background.

    Without an explicit *scheduler* a private one ticking every
    :data:`DIGEST_REFRESH_INTERVAL` seconds is created; the caller starts it.
    """

    async def fetch(date: str) -> Any:
        return await digest.get_by_date(client, token, date)

    if scheduler is None:
        scheduler = BackgroundScheduler(interval=DIGEST_REFRESH_INTERVAL)

    settings: dict[str, Any] = {
        "background_refresh": True,
        "stale_time": DIGEST_STALE_TIME,
        "scheduler": scheduler,
        "name": f"digest {date}",
    }
    settings.update(options)
    return FetchController(fetch, dependencies=(date,), **settings)
