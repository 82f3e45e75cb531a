"""
Discovery service - the fetch orchestrator.

Runs continuously: re-lists enabled sources on a fixed tick, asks the
scheduler which are due, and fetches them through the feed or scraper
processor under a global concurrency bound and a per-source timeout.
Each fetch's outcome goes through the health tracker and is written back
to the source store before the source can be fetched again.

Features:
- Bounded concurrency with at most one in-flight fetch per source
- Per-source timeout, treated as a transient failure
- Graceful shutdown with a bounded drain
- Immediate re-list on reload
- Manual sync of one or all enabled sources
- Metrics and tracing per fetch
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import structlog

from newsfed.discovery.config import DiscoveryConfig
from newsfed.discovery.dedup import DeduplicationGate
from newsfed.discovery.errors import FetchError
from newsfed.discovery.feed_processor import FeedProcessor
from newsfed.discovery.health import HealthTracker, classify
from newsfed.discovery.http_client import HTTPClient
from newsfed.discovery.policy import VolumeCap
from newsfed.discovery.rate_limit import HostRateLimiter
from newsfed.discovery.scheduler import Scheduler
from newsfed.discovery.schemas import FetchOutcome, OutcomeKind
from newsfed.discovery.scraper_processor import ScraperProcessor
from newsfed.observability.metrics import get_metrics
from newsfed.observability.tracing import fetch_span, get_tracer
from newsfed.sources.schemas import Source, SourceType

logger = structlog.get_logger(__name__)


@dataclass
class DiscoveryStats:
    """Running totals since the service was created."""

    sources_total: int = 0
    sources_fetched: int = 0
    sources_failed: int = 0
    items_discovered: int = 0
    total_fetch_seconds: float = 0.0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def average_fetch_seconds(self) -> float:
        attempts = self.sources_fetched + self.sources_failed
        if attempts == 0:
            return 0.0
        return self.total_fetch_seconds / attempts


@dataclass
class SyncResult:
    """Result of a manual sync."""

    sources_synced: int = 0
    sources_failed: int = 0
    items_discovered: int = 0
    errors: dict[str, str] = field(default_factory=dict)


class DiscoveryService:
    """
    Service that keeps the item store up to date from configured sources.

    Usage:
        service = DiscoveryService(SourcesRepository(db), FileItemStore(path))
        await service.run()  # Runs until stop() is called
    """

    def __init__(
        self,
        source_store,
        item_store,
        config: DiscoveryConfig | None = None,
        http_client: HTTPClient | None = None,
    ):
        """
        Initialize discovery service.

        Args:
            source_store: Store providing list_enabled(), get() and update()
            item_store: Store providing exists(), add() and list()
            config: Engine tunables (or load from environment)
            http_client: Open HTTP client to reuse (or create one per run)
        """
        self._config = config or DiscoveryConfig()
        self._sources = source_store
        self._items = item_store
        self._http_client = http_client

        self._scheduler = Scheduler(self._config.default_polling_interval)
        self._health = HealthTracker(self._config.disable_threshold)
        self._gate = DeduplicationGate(item_store)
        self._cap = VolumeCap(
            max_items=self._config.max_items_per_fetch,
            stale_after=timedelta(days=self._config.stale_after_days),
        )
        self._rate_limiter = HostRateLimiter(self._config.domain_min_interval_seconds)
        self._processors: dict[SourceType, Any] = {}

        self._semaphore = asyncio.Semaphore(self._config.concurrency)
        self._in_flight: dict[UUID, asyncio.Task] = {}
        self._active = 0
        self._running = False
        self._stopping = False
        self._wakeup = asyncio.Event()

        self._stats = DiscoveryStats()
        self._metrics = get_metrics()
        self._tracer = get_tracer(__name__)

        logger.info(
            "Discovery service initialized",
            concurrency=self._config.concurrency,
            poll_tick_seconds=self._config.poll_tick_seconds,
            fetch_timeout_seconds=self._config.fetch_timeout_seconds,
            disable_threshold=self._config.disable_threshold,
        )

    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[HTTPClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        async with HTTPClient(
            timeout=self._config.request_timeout_seconds,
            user_agent=self._config.user_agent,
        ) as client:
            yield client

    def _bind_processors(self, client: HTTPClient) -> None:
        feed = FeedProcessor(client, self._gate, self._cap)
        scraper = ScraperProcessor(client, self._gate, self._cap, self._rate_limiter)
        self._processors = {
            SourceType.RSS: feed,
            SourceType.ATOM: feed,
            SourceType.WEBSITE: scraper,
        }

    async def run(self) -> None:
        """
        Run the discovery loop.

        Fetches every due source immediately, then re-lists on each tick
        until stop() is called. In-flight fetches are drained on exit.
        """
        self._running = True
        self._stopping = False
        logger.info("Starting discovery service")

        async with self._open_client() as client:
            self._bind_processors(client)
            next_metrics_log = time.monotonic() + self._config.metrics_log_interval_seconds

            try:
                while self._running:
                    await self._dispatch_due()

                    if time.monotonic() >= next_metrics_log:
                        self.log_metrics()
                        next_metrics_log = time.monotonic() + self._config.metrics_log_interval_seconds

                    await self._wait_for_tick()
            finally:
                self._running = False
                self._stopping = True
                await self._drain()
                self.log_metrics()
                logger.info("Discovery service stopped")

    async def stop(self) -> None:
        """Stop dispatching new fetches; run() drains in-flight ones and returns."""
        logger.info("Stopping discovery service")
        self._running = False
        self._stopping = True
        self._wakeup.set()

    def request_reload(self) -> None:
        """Re-list enabled sources now instead of at the next tick."""
        logger.info("Reload requested")
        self._wakeup.set()

    async def _wait_for_tick(self) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self._config.poll_tick_seconds)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    async def _dispatch_due(self) -> None:
        try:
            sources = await self._sources.list_enabled()
        except Exception as e:
            logger.error("Failed to list enabled sources", error=str(e))
            return

        self._stats.sources_total = len(sources)
        self._metrics.set_enabled_sources(len(sources))

        due = self._scheduler.due_sources(sources, datetime.now(timezone.utc))
        if due:
            logger.debug("Dispatching due sources", due=len(due), enabled=len(sources))

        for source in due:
            if not self._running:
                break
            self._dispatch(source)

    def _dispatch(self, source: Source) -> asyncio.Task | None:
        """Start a fetch task unless this source already has one running."""
        if source.source_id in self._in_flight:
            logger.debug("Source already in flight, skipping", source_id=str(source.source_id))
            return None

        task = asyncio.create_task(
            self._run_fetch(source),
            name=f"fetch_{source.source_id}",
        )
        self._in_flight[source.source_id] = task
        task.add_done_callback(lambda _t, sid=source.source_id: self._in_flight.pop(sid, None))
        return task

    async def _drain(self) -> None:
        pending = [t for t in self._in_flight.values() if not t.done()]
        if not pending:
            return

        timeout = self._config.shutdown_timeout_seconds
        logger.info("Waiting for in-flight fetches", count=len(pending), timeout_seconds=timeout)
        _, still_running = await asyncio.wait(pending, timeout=timeout)

        if still_running:
            logger.warning("Abandoning fetches still running after shutdown timeout", count=len(still_running))
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)

    async def _process(self, source: Source, now: datetime) -> FetchOutcome:
        processor = self._processors[source.source_type]
        return await processor.process(source, now)

    async def _fetch(self, source: Source, now: datetime) -> FetchOutcome:
        """Run the processor under the per-source timeout, mapping failures to outcomes."""
        timeout = self._config.fetch_timeout_seconds
        try:
            return await asyncio.wait_for(self._process(source, now), timeout=timeout)
        except asyncio.TimeoutError:
            return FetchOutcome.failure(OutcomeKind.TIMEOUT, f"fetch timed out after {timeout:g}s")
        except FetchError as e:
            return FetchOutcome.failure(classify(e) or OutcomeKind.TRANSIENT_FAILURE, str(e))

    async def _run_fetch(self, source: Source) -> FetchOutcome | None:
        """
        Fetch one source and write its metadata back.

        Returns:
            The outcome, or None if the fetch hit an unexpected error or
            was still queued when the service began stopping
        """
        async with self._semaphore:
            # Queued behind the semaphore when stop() was called
            if self._stopping:
                logger.debug("Fetch not started, service stopping", source_id=str(source.source_id))
                return None

            self._active += 1
            self._metrics.set_in_flight(self._active)
            now = datetime.now(timezone.utc)
            start = time.monotonic()

            try:
                with fetch_span(self._tracer, source) as span:
                    outcome = await self._fetch(source, now)
                    outcome.duration_seconds = time.monotonic() - start
                    span.set_attribute("fetch.outcome", outcome.kind.value)
                    span.set_attribute("fetch.new_items", outcome.new_items)
            except Exception as e:
                logger.error(
                    "Unexpected error fetching source",
                    source_id=str(source.source_id),
                    url=source.url,
                    error=str(e),
                    exc_info=True,
                )
                self._metrics.record_fetch(source.source_type.value, "error", time.monotonic() - start)
                return None
            finally:
                self._active -= 1
                self._metrics.set_in_flight(self._active)

        await self._write_back(source, outcome, now)
        self._record(source, outcome)
        return outcome

    async def _write_back(self, source: Source, outcome: FetchOutcome, now: datetime) -> None:
        update = self._health.record(source, outcome, now)
        try:
            await self._sources.update(source.source_id, update)
        except Exception as e:
            logger.error(
                "Failed to write source metadata",
                source_id=str(source.source_id),
                error=str(e),
            )
            return

        if self._health.disables(update):
            reason = "permanent" if outcome.kind == OutcomeKind.PERMANENT_FAILURE else "threshold"
            self._metrics.record_disabled(reason)
            logger.warning(
                "Source disabled",
                source_id=str(source.source_id),
                url=source.url,
                reason=reason,
                error_count=update["fetch_error_count"],
                last_error=update["last_error"],
            )

    def _record(self, source: Source, outcome: FetchOutcome) -> None:
        duration = outcome.duration_seconds
        self._metrics.record_fetch(
            source.source_type.value,
            outcome.kind.value,
            duration=duration,
            new_items=outcome.new_items,
        )
        self._stats.total_fetch_seconds += duration

        if outcome.is_success:
            self._stats.sources_fetched += 1
            self._stats.items_discovered += outcome.new_items
            logger.info(
                f"Fetched {source.url}: {outcome.new_items} new items",
                source_id=str(source.source_id),
                outcome=outcome.kind.value,
                elapsed_seconds=round(duration, 2),
            )
        else:
            self._stats.sources_failed += 1
            logger.warning(
                f"Failed to fetch {source.url}: {outcome.error}",
                source_id=str(source.source_id),
                outcome=outcome.kind.value,
                elapsed_seconds=round(duration, 2),
            )

        if duration > self._config.slow_fetch_seconds:
            logger.warning(
                "Slow fetch",
                source_id=str(source.source_id),
                url=source.url,
                elapsed_seconds=round(duration, 2),
            )

    async def sync_sources(self, source_id: UUID | None = None) -> SyncResult:
        """
        Fetch one source, or every enabled source, right now.

        Due-ness is ignored; concurrency, timeouts and health tracking
        apply as in the main loop.

        Raises:
            LookupError: If source_id does not exist
        """
        if source_id is not None:
            source = await self._sources.get(source_id)
            if source is None:
                raise LookupError(f"Source {source_id} not found")
            sources = [source]
        else:
            sources = await self._sources.list_enabled()

        result = SyncResult()

        async with self._open_client() as client:
            self._bind_processors(client)

            dispatched = []
            for source in sources:
                task = self._dispatch(source)
                if task is not None:
                    dispatched.append((source, task))

            outcomes = await asyncio.gather(*(task for _, task in dispatched))

        for (source, _), outcome in zip(dispatched, outcomes):
            if outcome is not None and outcome.is_success:
                result.sources_synced += 1
                result.items_discovered += outcome.new_items
            else:
                result.sources_failed += 1
                result.errors[source.name or source.url] = (
                    outcome.error if outcome is not None else "unexpected error (see logs)"
                )

        logger.info(
            "Sync completed",
            synced=result.sources_synced,
            failed=result.sources_failed,
            items=result.items_discovered,
        )
        return result

    def log_metrics(self) -> None:
        """Log a summary of fetch activity since startup."""
        logger.info(
            "Discovery metrics",
            sources_total=self._stats.sources_total,
            sources_fetched=self._stats.sources_fetched,
            sources_failed=self._stats.sources_failed,
            items_discovered=self._stats.items_discovered,
            average_fetch_seconds=round(self._stats.average_fetch_seconds, 2),
            uptime_seconds=round(time.monotonic() - self._stats.start_time),
        )

    @property
    def stats(self) -> DiscoveryStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if service is running."""
        return self._running

    @property
    def in_flight(self) -> set[UUID]:
        """IDs of sources with a fetch in progress."""
        return set(self._in_flight)

    async def health_check(self) -> dict[str, Any]:
        """
        Check health of the discovery service.

        Returns:
            Dictionary with health status
        """
        return {
            "running": self._running,
            "in_flight": len(self._in_flight),
            "sources_total": self._stats.sources_total,
            "sources_fetched": self._stats.sources_fetched,
            "sources_failed": self._stats.sources_failed,
            "items_discovered": self._stats.items_discovered,
        }
