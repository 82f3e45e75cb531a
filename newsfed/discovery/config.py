"""Configuration for the discovery engine."""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = "newsfed/1.0 (RSS/Atom aggregator with web scraping)"


class DiscoveryConfig(BaseSettings):
    """Tunables for polling, concurrency, timeouts and source health.

    All fields can be set from ``NEWSFED_*`` environment variables, e.g.
    ``NEWSFED_CONCURRENCY=10`` or ``NEWSFED_DEFAULT_POLLING_INTERVAL=PT30M``.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEWSFED_",
        case_sensitive=False,
        extra="ignore",
    )

    # Scheduling
    poll_tick_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How often enabled sources are re-listed and checked for due-ness",
    )
    default_polling_interval: timedelta = Field(
        default=timedelta(hours=1),
        description="Polling interval for sources that do not set their own",
    )

    # Concurrency and timeouts
    concurrency: int = Field(default=5, ge=1, le=100, description="Max concurrent source fetches")
    fetch_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="End-to-end timeout for one source fetch",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single HTTP request inside a fetch",
    )
    shutdown_timeout_seconds: float = Field(
        default=60.0,
        ge=0,
        description="How long shutdown waits for in-flight fetches",
    )
    domain_min_interval_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum spacing between scraper requests to the same host (0 = off)",
    )
    user_agent: str = DEFAULT_USER_AGENT

    # Source health
    disable_threshold: int = Field(
        default=10,
        ge=1,
        description="Consecutive transient failures before a source is disabled",
    )

    # Volume cap for first or stale fetches
    max_items_per_fetch: int = Field(default=20, ge=1)
    stale_after_days: int = Field(default=15, ge=0)

    # Operational logging
    slow_fetch_seconds: float = Field(default=30.0, gt=0)
    metrics_log_interval_seconds: float = Field(default=900.0, gt=0)
