"""Config commands -- view and modify user settings.

Provides the ``refetch config`` sub-command group for reading, updating,
and resetting the user's settings file (:class:`~refetch.models.Settings`).
Settings control the API base URL and the cache, request, fetch and output
defaults.
"""

from __future__ import annotations

from typing import Any

import typer

from refetch.exceptions import ConfigError
from refetch.exit_codes import EXIT_INVALID_USAGE
from refetch.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", "-e", help="Show settings after env and project overrides."
    ),
) -> None:
    """Show current configuration.

    Example::

        refetch config show
        refetch config show --effective --json
    """
    from refetch.config import get_config_dir, load_settings, resolve_settings

    try:
        settings = resolve_settings() if effective else load_settings()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to match the existing field's type (bool, int,
    float, or str) and the result is validated before saving.

    Example::

        refetch config set base_url https://api.example.com
        refetch config set cache.ttl_seconds 600
        refetch config set fetch.background_refresh false
    """
    from refetch.config import load_settings, save_settings
    from refetch.models import Settings

    try:
        settings = load_settings()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data = settings.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        coerced = _coerce(target[final_key], value)
    except ValueError:
        error(f"Expected {type(target[final_key]).__name__} for {key}, got: {value}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    target[final_key] = coerced

    try:
        new_settings = Settings.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_settings(new_settings)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults.

    Example::

        refetch config reset --force
    """
    from refetch.config import save_settings
    from refetch.models import Settings

    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_settings(Settings())
    success("Configuration reset to defaults.")


def _coerce(current: Any, value: str) -> Any:  # noqa: ANN401
    """Convert *value* to the type of *current*."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value
