"""Pydantic configuration models shared across refetch modules.

These models are serialised as JSON in the user's config directory (see
:mod:`refetch.config`) and passed to the components they configure:

* :class:`CacheConfig` -- :class:`~refetch.cache.CacheStore` TTL and sweep.
* :class:`RequestConfig` -- :class:`~refetch.client.AsyncClient` transport.
* :class:`FetchConfig` -- :class:`~refetch.swr.FetchController` defaults.
* :class:`OutputConfig` -- CLI output format.
* :class:`Settings` -- the top-level document holding all of the above plus
  the API base URL.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class CacheConfig(BaseModel):
    """In-memory response cache settings."""

    ttl_seconds: float = Field(
        default=300.0, gt=0, description="Seconds an entry stays fresh"
    )
    sweep_interval_seconds: float = Field(
        default=60.0, gt=0, description="Seconds between expired-entry sweeps"
    )


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class FetchConfig(BaseModel):
    """Stale-while-revalidate defaults for fetch controllers."""

    stale_time_seconds: float = Field(
        default=60.0, ge=0, description="Age after which bound data is stale"
    )
    background_refresh: bool = Field(
        default=True, description="Revalidate stale data on scheduler ticks"
    )
    background_interval_seconds: float = Field(
        default=30.0, gt=0, description="Seconds between background scheduler ticks"
    )
    immediate: bool = Field(
        default=True, description="Start a foreground fetch when a binding attaches"
    )
    keep_previous_data: bool = Field(
        default=False,
        description="Keep showing the last data after a foreground failure",
    )


class OutputConfig(BaseModel):
    """Default output format preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class Settings(BaseModel):
    """User-wide configuration persisted at ``~/.config/refetch/config.json``.

    Loaded and saved by :func:`~refetch.config.load_settings` and
    :func:`~refetch.config.save_settings`. See
    :func:`~refetch.config.resolve_settings` for the precedence chain.
    """

    base_url: str = Field(default="/api", description="API base URL")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
