"""Sources: database-backed configuration of feeds and websites to poll."""

from newsfed.sources.repository import SourcesRepository
from newsfed.sources.schemas import (
    ArticleConfig,
    DiscoveryMode,
    ListConfig,
    ScraperConfig,
    Source,
    SourceType,
)

__all__ = [
    "ArticleConfig",
    "DiscoveryMode",
    "ListConfig",
    "ScraperConfig",
    "Source",
    "SourceType",
    "SourcesRepository",
]
