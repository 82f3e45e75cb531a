"""
Feed processor for RSS and Atom sources.

Fetches with conditional-request validators, parses with feedparser,
applies the volume cap, normalizes entries and admits non-duplicates.
"""

import logging
from datetime import datetime

import feedparser

from newsfed.discovery.dedup import DeduplicationGate
from newsfed.discovery.errors import FeedParseError
from newsfed.discovery.http_client import HTTPClient, conditional_headers
from newsfed.discovery.normalizer import item_from_feed_entry
from newsfed.discovery.policy import VolumeCap, most_recent
from newsfed.discovery.schemas import FetchOutcome, NewsItem
from newsfed.observability.metrics import get_metrics
from newsfed.sources.schemas import Source
from newsfed.storage.items import ItemStoreError

logger = logging.getLogger(__name__)


def parse_feed(content: bytes | str, url: str) -> feedparser.FeedParserDict:
    """
    Parse an RSS/Atom document.

    feedparser is lenient and flags malformed-but-usable documents as bozo.
    Only a document with no recognisable feed version and no entries is
    rejected.

    Raises:
        FeedParseError: If the body is not a feed
    """
    parsed = feedparser.parse(content)
    if not parsed.get("version") and not parsed.entries:
        reason = parsed.get("bozo_exception") or "not an RSS or Atom document"
        raise FeedParseError(f"Failed to parse feed {url}: {reason}", url=url)
    return parsed


class FeedProcessor:
    """Processes one fetch of an RSS or Atom source."""

    def __init__(
        self,
        http_client: HTTPClient,
        gate: DeduplicationGate,
        volume_cap: VolumeCap | None = None,
    ) -> None:
        self._client = http_client
        self._gate = gate
        self._cap = volume_cap or VolumeCap()
        self._metrics = get_metrics()

    async def process(self, source: Source, now: datetime) -> FetchOutcome:
        """
        Fetch and ingest one feed.

        Raises:
            FetchError: On transport, HTTP status or parse failures
        """
        response = await self._client.get(
            source.url,
            headers=conditional_headers(source.last_modified, source.etag),
            allow_not_modified=True,
        )
        if response.status_code == 304:
            logger.debug(f"Feed not modified: {source.url}")
            return FetchOutcome.not_modified()

        parsed = parse_feed(response.content, source.url)
        feed_title = parsed.feed.get("title")

        items: list[NewsItem] = []
        for entry in parsed.entries:
            if not entry.get("link"):
                logger.debug(f"Skipping entry without link in {source.url}")
                continue
            items.append(item_from_feed_entry(entry, feed_title, now=now))

        limit = self._cap.limit_for(source.last_fetched_at, now)
        candidates = most_recent(items, key=lambda item: item.published_at, limit=limit)
        if limit is not None and len(items) > limit:
            logger.info(f"Volume cap applied to {source.url}: {limit} of {len(items)} entries")

        new_items = await self._admit_all(candidates)

        return FetchOutcome.success(
            new_items,
            last_modified=response.headers.get("Last-Modified"),
            etag=response.headers.get("ETag"),
        )

    async def _admit_all(self, candidates: list[NewsItem]) -> int:
        new_items = 0
        duplicates = 0
        for item in candidates:
            try:
                if await self._gate.admit(item):
                    new_items += 1
                else:
                    duplicates += 1
            except ItemStoreError as e:
                logger.error(f"Failed to store item {item.url}: {e}")
                self._metrics.record_skipped("error")

        if duplicates:
            self._metrics.record_skipped("duplicate", duplicates)
        return new_items
