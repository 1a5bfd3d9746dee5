"""refetch -- client-side data-access core for JSON HTTP APIs.

This package layers an in-memory response cache, in-flight request
deduplication, and a stale-while-revalidate fetch controller on top of
:mod:`httpx`. Consumers bind a :class:`~refetch.swr.FetchController` to a
data-producing coroutine and read a snapshot of ``data``, ``loading``,
``error``, ``last_fetched`` and ``is_stale`` from it.

Typical usage::

    async with CacheStore.create(CacheConfig()) as store:
        async with AsyncClient("https://api.example.com", cache=store) as client:
            articles = await client.get("/articles", token=token)

Modules:
    cache: TTL response cache and in-flight request registry.
    client: Caching, deduplicating HTTP client.
    swr: Stale-while-revalidate fetch controller and background scheduler.
    api: Endpoint wrappers and preconfigured bindings.
    app: Typer application and CLI entry point.
    commands: CLI sub-command groups.
    models: Pydantic configuration models.
    config: XDG-aware settings and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    metrics: Cache hit/miss and response-time monitor.
"""

__version__ = "0.3.0"
