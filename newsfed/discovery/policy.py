"""Volume cap applied to first-time and stale fetches."""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import TypeVar

T = TypeVar("T")

DEFAULT_MAX_ITEMS = 20
DEFAULT_STALE_AFTER = timedelta(days=15)


def should_apply_cap(
    last_fetched_at: datetime | None,
    now: datetime,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> bool:
    """True when the source was never fetched or its last fetch is stale."""
    if last_fetched_at is None:
        return True
    return now - last_fetched_at > stale_after


def most_recent(
    candidates: Sequence[T],
    key: Callable[[T], datetime],
    limit: int | None = DEFAULT_MAX_ITEMS,
) -> list[T]:
    """
    The ``limit`` newest candidates, newest first (all of them if limit is None).

    The sort is stable, so candidates with equal dates keep source order.
    """
    ordered = sorted(candidates, key=key, reverse=True)
    if limit is None:
        return ordered
    return ordered[:limit]


class VolumeCap:
    """Per-fetch cap decision plus its limit."""

    def __init__(
        self,
        max_items: int = DEFAULT_MAX_ITEMS,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self.max_items = max_items
        self.stale_after = stale_after

    def limit_for(self, last_fetched_at: datetime | None, now: datetime) -> int | None:
        """Maximum candidates to process on this fetch, or None for no cap."""
        if should_apply_cap(last_fetched_at, now, self.stale_after):
            return self.max_items
        return None
