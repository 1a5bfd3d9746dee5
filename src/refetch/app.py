"""Typer application and CLI entry point for refetch.

The CLI exercises the data-access core against a live API:

* ``refetch get PATH`` -- cached, deduplicated read (``--repeat`` issues
  concurrent reads that share one network call, ``--stats`` prints the
  performance monitor).
* ``refetch send METHOD PATH`` -- write with optional cache invalidation.
* ``refetch watch PATH`` -- stale-while-revalidate binding that prints a
  snapshot on every state change.
* ``refetch config ...`` -- view and modify user settings.

Settings are resolved once per invocation via
:func:`~refetch.config.resolve_settings`.  The :func:`main` function is the
console-script entry point declared in ``pyproject.toml``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Coroutine, Optional

import httpx
import typer

from refetch import __version__
from refetch.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="refetch",
    help="Cached, deduplicated, stale-while-revalidate reads against a JSON API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from refetch.commands.config import config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"refetch {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", "-b", help="API base URL (overrides config and env)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~refetch.output.OutputManager` and, with
    ``--verbose``, routes library logging through Rich at DEBUG level.
    """
    from refetch.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        from rich.console import Console
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
            force=True,
        )

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _settings(ctx: typer.Context) -> Any:
    """Resolve settings once per invocation and memoise them on the context."""
    from refetch.config import resolve_settings

    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        obj["settings"] = _guard(resolve_settings, obj.get("base_url"))
    return obj["settings"]


def _transport(ctx: typer.Context) -> Optional[httpx.AsyncBaseTransport]:
    """Transport supplied by an embedding caller through ``obj``, if any.

    ``None`` selects httpx's default network transport.
    """
    return ctx.ensure_object(dict).get("transport")


def _resolve_token(token_source: Optional[str]) -> Optional[str]:
    if token_source is None:
        return None
    from refetch.config import resolve_credential

    return _guard(resolve_credential, token_source)


def _parse_body(body: str | None) -> Any:  # noqa: ANN401
    """Parse *body* as JSON if possible, returning the raw string on failure."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body


def _guard(func: Any, *args: Any) -> Any:  # noqa: ANN401
    """Call *func*, turning a refetch error into an error message and exit code."""
    from refetch.exceptions import RefetchError
    from refetch.output import error

    try:
        return func(*args)
    except RefetchError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run *coro* to completion, mapping refetch errors to exit codes."""
    return _guard(asyncio.run, coro)


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("get")
def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Request path, including any query string."),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", "-t", help="Token source: env:VAR, file:/path or prompt."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
    repeat: int = typer.Option(
        1, "--repeat", "-r", min=1, help="Issue the read N times concurrently."
    ),
    stats: bool = typer.Option(False, "--stats", help="Print cache and timing figures."),
) -> None:
    """Read PATH and print the decoded body.

    Example::

        refetch get /articles?page=1 -t env:API_TOKEN --repeat 5 --stats
    """
    from refetch.cache import CacheStore, PendingRequestRegistry
    from refetch.client import AsyncClient
    from refetch.metrics import RequestMetrics
    from refetch.output import format_response, print_table

    settings = _settings(ctx)
    token = _resolve_token(token_source)

    async def _get() -> None:
        metrics = RequestMetrics()
        async with CacheStore.create(settings.cache) as store:
            metrics.attach(store)
            async with AsyncClient(
                settings.base_url,
                cache=store,
                pending=PendingRequestRegistry(),
                request_config=settings.request,
                transport=_transport(ctx),
                metrics=metrics,
            ) as client:
                results = await asyncio.gather(
                    *(client.get(path, token=token, cache=not no_cache) for _ in range(repeat))
                )
        format_response(results[0])
        if stats:
            figures = metrics.snapshot()
            print_table(
                ["metric", "value"],
                [[name, str(value)] for name, value in figures.items()],
                title="Request metrics",
            )

    _run(_get())


@app.command("send")
def send_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method: POST, PUT, PATCH or DELETE."),
    path: str = typer.Argument(help="Request path."),
    body: Optional[str] = typer.Option(None, "--body", "-d", help="JSON request body."),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", "-t", help="Token source: env:VAR, file:/path or prompt."
    ),
    invalidate: list[str] = typer.Option(
        [], "--invalidate", "-i", help="Cached path prefix to drop after success."
    ),
) -> None:
    """Send a write request and print the decoded response."""
    from refetch.client import AsyncClient
    from refetch.exceptions import InvalidUsageError
    from refetch.output import error, format_response

    method = method.upper()
    if method == "GET":
        error("Use 'refetch get' for reads.")
        raise typer.Exit(code=InvalidUsageError.exit_code)

    settings = _settings(ctx)
    token = _resolve_token(token_source)

    async def _send() -> Any:
        async with AsyncClient(
            settings.base_url,
            request_config=settings.request,
            transport=_transport(ctx),
        ) as client:
            return await client.request(
                method, path, body=_parse_body(body), token=token, invalidate=invalidate
            )

    format_response(_run(_send()))


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Request path to keep fresh."),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", "-t", help="Token source: env:VAR, file:/path or prompt."
    ),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between background ticks."
    ),
    stale_time: Optional[float] = typer.Option(
        None, "--stale-time", help="Seconds before data counts as stale."
    ),
    count: int = typer.Option(
        0, "--count", "-c", min=0, help="Stop after N settled fetches (0 = until Ctrl-C)."
    ),
) -> None:
    """Bind to PATH and print a snapshot whenever its state changes."""
    from refetch.cache import CacheStore, PendingRequestRegistry
    from refetch.client import AsyncClient, fingerprint
    from refetch.output import format_response
    from refetch.swr import BackgroundScheduler, FetchController, FetchSnapshot

    settings = _settings(ctx)
    token = _resolve_token(token_source)
    tick = interval if interval is not None else settings.fetch.background_interval_seconds

    async def _watch() -> None:
        done = asyncio.Event()
        settled = 0

        def _print(snapshot: FetchSnapshot) -> None:
            nonlocal settled
            format_response(snapshot.as_dict())
            if not snapshot.loading:
                settled += 1
                if count and settled >= count:
                    done.set()

        async with CacheStore.create(settings.cache) as store, BackgroundScheduler(tick) as scheduler:
            async with AsyncClient(
                settings.base_url,
                cache=store,
                pending=PendingRequestRegistry(),
                request_config=settings.request,
                transport=_transport(ctx),
            ) as client:

                async def fetch() -> Any:
                    # Revalidation must reach the network; the binding writes the cache.
                    return await client.get(path, token=token, cache=False)

                options: dict[str, Any] = {
                    "scheduler": scheduler,
                    "cache_store": store,
                    "cache_key": fingerprint(path, token),
                    "name": path,
                }
                if stale_time is not None:
                    options["stale_time"] = stale_time
                controller = FetchController.from_config(fetch, settings.fetch, **options)
                controller.subscribe(_print)
                async with controller:
                    if not settings.fetch.immediate:
                        controller.refresh()
                    await done.wait()

    _run(_watch())


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from refetch.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``refetch`` console script.

    Unhandled :class:`~refetch.exceptions.RefetchError` instances cause a
    clean exit with the error's ``exit_code``.  All other exceptions produce
    a crash log and a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from refetch.exceptions import RefetchError
        from refetch.output import error

        if isinstance(exc, RefetchError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)

