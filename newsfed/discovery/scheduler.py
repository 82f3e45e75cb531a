"""Due-ness decisions for polled sources."""

from collections.abc import Iterable
from datetime import datetime, timedelta

from newsfed.sources.schemas import Source

MIN_POLLING_INTERVAL = timedelta(minutes=5)
MAX_POLLING_INTERVAL = timedelta(hours=24)


def clamp_interval(interval: timedelta) -> timedelta:
    """Bound a polling interval to [5 minutes, 24 hours]."""
    return max(MIN_POLLING_INTERVAL, min(interval, MAX_POLLING_INTERVAL))


def is_due(last_fetched_at: datetime | None, interval: timedelta, now: datetime) -> bool:
    """Never-fetched sources are always due; others once the interval has elapsed."""
    if last_fetched_at is None:
        return True
    return now >= last_fetched_at + interval


class Scheduler:
    """
    Decides which sources should be fetched now.

    Sources without their own polling interval use the default. Both are
    clamped to the allowed range.
    """

    def __init__(self, default_interval: timedelta = timedelta(hours=1)) -> None:
        self.default_interval = default_interval

    def effective_interval(self, source: Source) -> timedelta:
        return clamp_interval(source.polling_interval or self.default_interval)

    def is_due(self, source: Source, now: datetime) -> bool:
        return is_due(source.last_fetched_at, self.effective_interval(source), now)

    def due_sources(self, sources: Iterable[Source], now: datetime) -> list[Source]:
        """Enabled sources that are due, in input order."""
        return [s for s in sources if s.is_enabled and self.is_due(s, now)]
