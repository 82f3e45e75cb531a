"""
Article extractor: pulls article fields and links out of HTML.

Uses BeautifulSoup with the CSS selectors from a source's scraper
configuration. Extraction never fetches anything; callers hand in the
markup together with the URL it came from.
"""

import logging
from datetime import datetime, timezone
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from newsfed.discovery.errors import ArticleValidationError, MarkupParseError, SourceConfigError
from newsfed.discovery.normalizer import clean_text, split_authors
from newsfed.discovery.schemas import ScrapedArticle
from newsfed.sources.schemas import ArticleConfig

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 500
MIN_PUBLISHED_AT = datetime(1990, 1, 1, tzinfo=timezone.utc)


def parse_html(markup: str | bytes, url: str) -> BeautifulSoup:
    """Parse a page, raising MarkupParseError if it cannot be read as HTML."""
    try:
        return BeautifulSoup(markup, "html.parser")
    except Exception as e:
        raise MarkupParseError(f"Failed to parse HTML from {url}: {e}", url=url) from e


def _select(soup: BeautifulSoup, selector: str) -> list[Tag]:
    try:
        return soup.select(selector)
    except SelectorSyntaxError as e:
        raise SourceConfigError(f"Invalid CSS selector {selector!r}: {e}") from e


def _select_text(soup: BeautifulSoup, selector: str | None) -> str:
    if not selector:
        return ""
    matches = _select(soup, selector)
    if not matches:
        return ""
    return clean_text(matches[0].get_text(separator=" "))


def parse_date(text: str, date_format: str) -> datetime | None:
    """Parse a date string with a strptime format; naive results are taken as UTC."""
    try:
        value = datetime.strptime(text, date_format)
    except ValueError:
        logger.debug(f"Date {text!r} does not match format {date_format!r}")
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def extract_article(soup: BeautifulSoup, config: ArticleConfig, url: str) -> ScrapedArticle:
    """
    Extract title, content, authors and date from an article page.

    The first match of the title, content and date selectors is used. Every
    element matching the author selector contributes names. Missing
    fields come back empty and are left to validation.
    """
    authors: list[str] = []
    if config.author_selector:
        for element in _select(soup, config.author_selector):
            authors.extend(split_authors(clean_text(element.get_text(separator=" "))))

    published_at = None
    if config.date_selector and config.date_format:
        date_text = _select_text(soup, config.date_selector)
        if date_text:
            published_at = parse_date(date_text, config.date_format)

    return ScrapedArticle(
        url=url,
        title=_select_text(soup, config.title_selector),
        content=_select_text(soup, config.content_selector),
        authors=authors,
        published_at=published_at,
    )


def _resolve(base_url: str, href: str) -> str | None:
    """Absolute form of ``href``, or None if it is not a parseable URL."""
    try:
        return urljoin(base_url, href.strip())
    except ValueError as e:
        logger.warning(f"Ignoring malformed link {href!r} on {base_url}: {e}")
        return None


def extract_links(soup: BeautifulSoup, selector: str, base_url: str) -> list[str]:
    """Absolute ``href`` of every element matching the selector, in document order.

    Links that cannot be parsed as URLs are skipped.
    """
    links = []
    for element in _select(soup, selector):
        href = element.get("href")
        if not href:
            continue
        url = _resolve(base_url, href)
        if url is not None:
            links.append(url)
    return links


def next_page_url(soup: BeautifulSoup, selector: str, base_url: str) -> str | None:
    """Absolute ``href`` of the first element matching the pagination selector."""
    matches = _select(soup, selector)
    if not matches:
        return None
    href = matches[0].get("href")
    if not href:
        return None
    return _resolve(base_url, href)


def validate_article(
    article: ScrapedArticle,
    source_url: str,
    now: datetime | None = None,
) -> None:
    """
    Check a scraped article before it is admitted.

    The host comparison is a literal ``netloc`` match, so ``www.`` prefixes
    and explicit ports count as different hosts.

    Raises:
        ArticleValidationError: If the article must be dropped
    """
    now = now or datetime.now(timezone.utc)

    if not article.title:
        raise ArticleValidationError("title is empty")
    if len(article.title) > TITLE_MAX_CHARS:
        raise ArticleValidationError(
            f"title too long ({len(article.title)} characters, max {TITLE_MAX_CHARS})"
        )

    try:
        article_parts = urlparse(article.url)
        source_parts = urlparse(source_url)
    except ValueError as e:
        raise ArticleValidationError(f"invalid article URL: {e}") from e

    if article_parts.scheme not in ("http", "https"):
        raise ArticleValidationError("article URL must use http or https scheme")
    if article_parts.netloc != source_parts.netloc:
        raise ArticleValidationError(
            f"article URL domain ({article_parts.netloc}) does not match "
            f"source domain ({source_parts.netloc})"
        )

    if not article.content:
        logger.warning(f"Article has empty content: {article.url}")

    if article.published_at is not None:
        if article.published_at < MIN_PUBLISHED_AT:
            raise ArticleValidationError(
                f"published date ({article.published_at:%Y-%m-%d}) is before 1990-01-01"
            )
        if article.published_at > now:
            raise ArticleValidationError(
                f"published date ({article.published_at:%Y-%m-%d}) is in the future"
            )
