"""Data models for the sources module."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class SourceType(str, Enum):
    """Kinds of source the discovery engine can poll."""

    RSS = "rss"
    ATOM = "atom"
    WEBSITE = "website"

    @property
    def is_feed(self) -> bool:
        return self in (SourceType.RSS, SourceType.ATOM)


class DiscoveryMode(str, Enum):
    """How a website source yields articles."""

    DIRECT = "direct"  # the source URL is itself one article
    LIST = "list"  # the source URL is an index page linking to articles


class ListConfig(BaseModel):
    """Index page settings for list-mode scraping."""

    article_selector: str = Field(..., min_length=1, description="CSS selector for article links")
    pagination_selector: str | None = Field(
        default=None,
        description="CSS selector for the next-page link",
    )
    max_pages: int = Field(default=1, ge=1, description="Maximum index pages to visit")


class ArticleConfig(BaseModel):
    """Article page extraction settings."""

    title_selector: str = Field(..., min_length=1)
    content_selector: str = Field(..., min_length=1)
    author_selector: str | None = None
    date_selector: str | None = None
    date_format: str | None = Field(
        default=None,
        description="strptime format for the text matched by date_selector",
    )


class ScraperConfig(BaseModel):
    """Scraping configuration attached to website sources."""

    discovery_mode: DiscoveryMode
    list_config: ListConfig | None = None
    article_config: ArticleConfig

    @model_validator(mode="after")
    def _list_mode_needs_list_config(self) -> "ScraperConfig":
        if self.discovery_mode == DiscoveryMode.LIST and self.list_config is None:
            raise ValueError("list discovery mode requires list_config")
        return self


# Fields the discovery engine is allowed to write back to the source store
ENGINE_WRITABLE_FIELDS = frozenset({
    "last_fetched_at",
    "last_modified",
    "etag",
    "fetch_error_count",
    "last_error",
    "enabled_at",
})


@dataclass
class Source:
    """A polled origin of news: an RSS feed, an Atom feed, or a website.

    A source is enabled while ``enabled_at`` is set. The discovery engine
    owns the fetch bookkeeping fields (see ``ENGINE_WRITABLE_FIELDS``);
    everything else is managed by an operator.
    """

    source_id: UUID
    source_type: SourceType
    url: str
    name: str
    enabled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    polling_interval: timedelta | None = None
    last_fetched_at: datetime | None = None
    last_modified: str | None = None
    etag: str | None = None
    fetch_error_count: int = 0
    last_error: str | None = None
    scraper_config: ScraperConfig | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.source_type = SourceType(self.source_type)
        is_website = self.source_type == SourceType.WEBSITE
        if is_website and self.scraper_config is None:
            raise ValueError(f"website source {self.source_id} requires scraper_config")
        if not is_website and self.scraper_config is not None:
            raise ValueError(f"{self.source_type.value} source {self.source_id} cannot have scraper_config")

    @property
    def is_enabled(self) -> bool:
        return self.enabled_at is not None
