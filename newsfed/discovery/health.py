"""
Source health tracking.

State machine per source:

    Healthy --transient--> Degraded(n) --n >= threshold--> Disabled
    Healthy/Degraded --permanent--> Disabled
    any --success--> Healthy

All changes to a source's fetch bookkeeping go through HealthTracker.record,
which returns the partial update to write back to the source store.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any

from newsfed.discovery.errors import PermanentFetchError, TransientFetchError
from newsfed.discovery.schemas import FetchOutcome, OutcomeKind
from newsfed.sources.schemas import Source


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DISABLED = "disabled"


def classify(exc: BaseException) -> OutcomeKind | None:
    """
    Map an exception raised during a fetch onto an outcome kind.

    Returns None for exceptions outside the fetch error taxonomy, which
    are treated as unexpected by the caller.
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return OutcomeKind.TIMEOUT
    if isinstance(exc, TransientFetchError):
        return OutcomeKind.TRANSIENT_FAILURE
    if isinstance(exc, PermanentFetchError):
        return OutcomeKind.PERMANENT_FAILURE
    return None


def state_of(source: Source) -> HealthState:
    """Current health state derived from stored source fields."""
    if not source.is_enabled:
        return HealthState.DISABLED
    if source.fetch_error_count > 0:
        return HealthState.DEGRADED
    return HealthState.HEALTHY


class HealthTracker:
    """Turns fetch outcomes into source metadata updates."""

    def __init__(self, disable_threshold: int = 10) -> None:
        if disable_threshold < 1:
            raise ValueError("disable_threshold must be at least 1")
        self.disable_threshold = disable_threshold

    def record(self, source: Source, outcome: FetchOutcome, now: datetime) -> dict[str, Any]:
        """
        Compute the metadata update for one completed fetch.

        Returns:
            Partial source update restricted to engine-writable fields
        """
        update: dict[str, Any] = {"last_fetched_at": now}

        if outcome.is_success:
            update["fetch_error_count"] = 0
            update["last_error"] = None
            if outcome.kind == OutcomeKind.SUCCESS and source.source_type.is_feed:
                update["last_modified"] = outcome.last_modified
                update["etag"] = outcome.etag
            return update

        error_count = source.fetch_error_count + 1
        update["fetch_error_count"] = error_count
        update["last_error"] = outcome.error or outcome.kind.value

        if outcome.kind == OutcomeKind.PERMANENT_FAILURE or error_count >= self.disable_threshold:
            update["enabled_at"] = None

        return update

    @staticmethod
    def disables(update: dict[str, Any]) -> bool:
        """Whether an update produced by record() disables the source."""
        return "enabled_at" in update and update["enabled_at"] is None
