"""
Scraper processor for website sources.

Direct mode treats the source URL as a single article. List mode reads
article links from an index page, optionally following pagination, and
checks each link against the item store before fetching it.
"""

import logging
from datetime import datetime

from bs4 import BeautifulSoup

from newsfed.discovery.dedup import DeduplicationGate
from newsfed.discovery.errors import ArticleValidationError, FetchError, SourceConfigError
from newsfed.discovery.extractor import (
    extract_article,
    extract_links,
    next_page_url,
    parse_html,
    validate_article,
)
from newsfed.discovery.http_client import HTTPClient
from newsfed.discovery.normalizer import item_from_article
from newsfed.discovery.policy import VolumeCap
from newsfed.discovery.rate_limit import HostRateLimiter
from newsfed.discovery.schemas import FetchOutcome, ScrapedArticle
from newsfed.observability.metrics import get_metrics
from newsfed.sources.schemas import DiscoveryMode, ListConfig, Source
from newsfed.storage.items import ItemStoreError

logger = logging.getLogger(__name__)


class ScraperProcessor:
    """Processes one fetch of a website source."""

    def __init__(
        self,
        http_client: HTTPClient,
        gate: DeduplicationGate,
        volume_cap: VolumeCap | None = None,
        rate_limiter: HostRateLimiter | None = None,
    ) -> None:
        self._client = http_client
        self._gate = gate
        self._cap = volume_cap or VolumeCap()
        self._rate_limiter = rate_limiter or HostRateLimiter()
        self._metrics = get_metrics()

    async def process(self, source: Source, now: datetime) -> FetchOutcome:
        """
        Scrape one website source.

        Raises:
            FetchError: When the source page (or an index page) cannot be
                fetched or parsed, or the configuration is unusable
        """
        config = source.scraper_config
        if config.discovery_mode == DiscoveryMode.DIRECT:
            new_items = await self._scrape_direct(source, now)
        else:
            new_items = await self._scrape_list(source, config.list_config, now)

        return FetchOutcome.success(new_items)

    async def _fetch_page(self, url: str) -> BeautifulSoup:
        await self._rate_limiter.acquire(url)
        response = await self._client.get(url)
        return parse_html(response.text, url)

    async def _scrape_direct(self, source: Source, now: datetime) -> int:
        soup = await self._fetch_page(source.url)
        article = extract_article(soup, source.scraper_config.article_config, source.url)
        return int(await self._admit(article, source, now))

    async def _scrape_list(
        self,
        source: Source,
        list_config: ListConfig,
        now: datetime,
    ) -> int:
        article_config = source.scraper_config.article_config
        limit = self._cap.limit_for(source.last_fetched_at, now)

        page_url: str | None = source.url
        visited: set[str] = set()
        pages = 0
        candidates = 0
        new_items = 0

        while page_url and pages < list_config.max_pages:
            visited.add(page_url)
            pages += 1
            soup = await self._fetch_page(page_url)

            for link in extract_links(soup, list_config.article_selector, page_url):
                if limit is not None and candidates >= limit:
                    break
                candidates += 1

                if await self._gate.exists(link):
                    logger.debug(f"Skipping known article {link}")
                    self._metrics.record_skipped("duplicate")
                    continue

                try:
                    article_soup = await self._fetch_page(link)
                    article = extract_article(article_soup, article_config, link)
                except SourceConfigError:
                    raise
                except FetchError as e:
                    logger.warning(f"Failed to scrape article {link}: {e}")
                    self._metrics.record_skipped("error")
                    continue

                if await self._admit(article, source, now):
                    new_items += 1

            if limit is not None and candidates >= limit:
                logger.info(f"Volume cap reached for {source.url} after {candidates} articles")
                break
            if not list_config.pagination_selector:
                break

            next_url = next_page_url(soup, list_config.pagination_selector, page_url)
            if next_url in visited:
                logger.debug(f"Pagination loop detected at {next_url}")
                break
            page_url = next_url

        logger.debug(
            f"Scraped {source.url}: {pages} pages, {candidates} candidates, {new_items} new"
        )
        return new_items

    async def _admit(self, article: ScrapedArticle, source: Source, now: datetime) -> bool:
        """Validate, normalize and admit one article. Returns True if stored."""
        try:
            validate_article(article, source.url, now=now)
        except ArticleValidationError as e:
            logger.warning(f"Dropping invalid article {article.url}: {e}")
            self._metrics.record_skipped("invalid")
            return False

        item = item_from_article(article, source.name, now=now)
        try:
            admitted = await self._gate.admit(item)
        except ItemStoreError as e:
            logger.error(f"Failed to store item {item.url}: {e}")
            self._metrics.record_skipped("error")
            return False

        if not admitted:
            self._metrics.record_skipped("duplicate")
        return admitted
