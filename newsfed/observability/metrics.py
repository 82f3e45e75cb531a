"""
Prometheus metrics for monitoring the discovery engine.

Defines and exposes metrics for:
- Source fetch outcomes and latency
- Items discovered and skipped
- Source auto-disables
- Fetch concurrency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from newsfed.config.settings import get_settings

logger = logging.getLogger(__name__)

# Fetches are bounded by the per-source timeout (60s by default)
FETCH_LATENCY_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the discovery engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_fetch("rss", "success", duration=0.8, new_items=3)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.fetches = Counter(
            "newsfed_fetches_total",
            "Total source fetches by outcome",
            ["source_type", "outcome"],
        )

        self.items_discovered = Counter(
            "newsfed_items_discovered_total",
            "Total new items admitted to the item store",
            ["source_type"],
        )

        self.items_skipped = Counter(
            "newsfed_items_skipped_total",
            "Candidates dropped before admission",
            ["reason"],  # duplicate, invalid, error
        )

        self.sources_disabled = Counter(
            "newsfed_sources_disabled_total",
            "Sources automatically disabled",
            ["reason"],  # permanent, threshold
        )

        self.fetch_latency = Histogram(
            "newsfed_fetch_latency_seconds",
            "Time to fetch and process one source",
            ["source_type"],
            buckets=FETCH_LATENCY_BUCKETS,
        )

        self.fetches_in_flight = Gauge(
            "newsfed_fetches_in_flight",
            "Number of source fetches currently running",
        )

        self.enabled_sources = Gauge(
            "newsfed_enabled_sources",
            "Number of enabled sources at the last listing",
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_fetch(
        self,
        source_type: str,
        outcome: str,
        duration: float | None = None,
        new_items: int = 0,
    ) -> None:
        """
        Record one completed source fetch.

        Args:
            source_type: rss, atom or website
            outcome: Outcome kind value
            duration: Fetch duration in seconds
            new_items: Items admitted during the fetch
        """
        self.fetches.labels(source_type=source_type, outcome=outcome).inc()

        if new_items:
            self.items_discovered.labels(source_type=source_type).inc(new_items)

        if duration is not None:
            self.fetch_latency.labels(source_type=source_type).observe(duration)

    def record_skipped(self, reason: str, count: int = 1) -> None:
        """Record candidates dropped before admission."""
        self.items_skipped.labels(reason=reason).inc(count)

    def record_disabled(self, reason: str) -> None:
        """Record a source being auto-disabled."""
        self.sources_disabled.labels(reason=reason).inc()

    def set_in_flight(self, count: int) -> None:
        self.fetches_in_flight.set(count)

    def set_enabled_sources(self, count: int) -> None:
        self.enabled_sources.set(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
