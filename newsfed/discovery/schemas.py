"""
Item and outcome schemas for the discovery engine.

NewsItem is the record written to the item store. ScrapedArticle is the
intermediate result of extracting an article page, and FetchOutcome is the
result of one source fetch handed to the health tracker.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class NewsItem(BaseModel):
    """A discovered article, as stored in the item store."""

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1)
    summary: str = ""
    url: str = Field(..., min_length=1)
    publisher: str | None = None
    authors: list[str] = Field(default_factory=list)
    published_at: datetime = Field(default_factory=_utc_now)
    discovered_at: datetime = Field(default_factory=_utc_now)
    pinned_at: datetime | None = None

    @field_validator("published_at", "discovered_at", "pinned_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Ensure timestamps are timezone-aware UTC."""
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


@dataclass
class ScrapedArticle:
    """Fields extracted from one article page."""

    url: str
    title: str
    content: str
    authors: list[str] = field(default_factory=list)
    published_at: datetime | None = None


class OutcomeKind(str, Enum):
    """Result classification of one source fetch."""

    SUCCESS = "success"
    NOT_MODIFIED = "not_modified"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"
    TIMEOUT = "timeout"

    @property
    def is_success(self) -> bool:
        return self in (OutcomeKind.SUCCESS, OutcomeKind.NOT_MODIFIED)

    @property
    def is_transient(self) -> bool:
        return self in (OutcomeKind.TRANSIENT_FAILURE, OutcomeKind.TIMEOUT)


@dataclass
class FetchOutcome:
    """What happened when one source was fetched."""

    kind: OutcomeKind
    new_items: int = 0
    error: str | None = None
    last_modified: str | None = None
    etag: str | None = None
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.kind.is_success

    @classmethod
    def success(
        cls,
        new_items: int,
        last_modified: str | None = None,
        etag: str | None = None,
    ) -> "FetchOutcome":
        return cls(
            kind=OutcomeKind.SUCCESS,
            new_items=new_items,
            last_modified=last_modified,
            etag=etag,
        )

    @classmethod
    def not_modified(cls) -> "FetchOutcome":
        return cls(kind=OutcomeKind.NOT_MODIFIED)

    @classmethod
    def failure(cls, kind: OutcomeKind, error: str) -> "FetchOutcome":
        return cls(kind=kind, error=error)
