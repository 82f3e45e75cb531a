"""
Item normalizer: maps feed entries and scraped articles to NewsItems.

Every item gets a fresh UUID; identifiers carried by the feed (guid, id)
are never reused. Field mapping:

    title        entry title, or "(No title)" for untitled feed entries
    summary      description / article text as plain text, max 500 chars
    url          entry link / article URL
    publisher    feed title / source display name
    authors      merged author signals, split and de-duplicated
    published_at updated date, else published date, else now
"""

import calendar
import html
import logging
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from newsfed.discovery.schemas import NewsItem, ScrapedArticle

logger = logging.getLogger(__name__)

UNTITLED_PLACEHOLDER = "(No title)"
SUMMARY_MAX_CHARS = 500


def clean_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    return re.sub(r"\s+", " ", text).strip()


def html_to_text(html_content: str | None) -> str:
    """
    Extract clean text from an HTML fragment.

    Args:
        html_content: Raw HTML string (plain text passes through)

    Returns:
        Clean text content
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    text = html.unescape(text)
    return clean_text(text)


def truncate_summary(text: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def split_authors(value: str) -> list[str]:
    """
    Split a single author field into names.

    ``", "`` takes precedence over ``" and "``; a string with neither
    delimiter is one name.
    """
    value = value.strip()
    if not value:
        return []

    if ", " in value:
        parts = value.split(", ")
    elif " and " in value:
        parts = value.split(" and ")
    else:
        parts = [value]

    return [p.strip() for p in parts if p.strip()]


def merge_authors(values: Iterable[str | None]) -> list[str]:
    """Split every author signal and drop exact duplicates, keeping first-seen order."""
    authors: list[str] = []
    for value in values:
        if not value:
            continue
        for name in split_authors(value):
            if name not in authors:
                authors.append(name)
    return authors


def entry_authors(entry: dict[str, Any]) -> list[str]:
    """
    Collect author names from a feedparser entry.

    feedparser folds ``dc:creator`` into ``author``/``authors``; a separate
    ``dc_creator`` key is still honoured when a caller supplies one.
    """
    signals: list[str | None] = [entry.get("author")]
    for author in entry.get("authors") or []:
        if isinstance(author, dict):
            signals.append(author.get("name"))
        elif isinstance(author, str):
            signals.append(author)
    signals.append(entry.get("dc_creator"))
    return merge_authors(signals)


def entry_timestamp(entry: dict[str, Any]) -> datetime | None:
    """Updated date if present, else published date, else None."""
    for field in ["updated", "published"]:
        parsed = entry.get(f"{field}_parsed")
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                pass

        raw = entry.get(field)
        if raw:
            try:
                value = parsedate_to_datetime(raw)
            except (TypeError, ValueError):
                continue
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value

    return None


def entry_summary(entry: dict[str, Any]) -> str:
    """Plain-text summary from the entry description, falling back to its content."""
    raw = entry.get("summary") or entry.get("description")
    if not raw:
        contents = entry.get("content") or []
        if contents and isinstance(contents[0], dict):
            raw = contents[0].get("value")
    return truncate_summary(html_to_text(raw))


def item_from_feed_entry(
    entry: dict[str, Any],
    feed_title: str | None,
    now: datetime | None = None,
) -> NewsItem:
    """Map a feedparser entry to a NewsItem."""
    now = now or datetime.now(timezone.utc)
    title = clean_text(html.unescape(entry.get("title") or ""))

    return NewsItem(
        title=title or UNTITLED_PLACEHOLDER,
        summary=entry_summary(entry),
        url=(entry.get("link") or "").strip(),
        publisher=feed_title or None,
        authors=entry_authors(entry),
        published_at=entry_timestamp(entry) or now,
        discovered_at=now,
    )


def item_from_article(
    article: ScrapedArticle,
    publisher: str | None,
    now: datetime | None = None,
) -> NewsItem:
    """Map a validated scraped article to a NewsItem."""
    now = now or datetime.now(timezone.utc)

    return NewsItem(
        title=article.title,
        summary=truncate_summary(article.content),
        url=article.url,
        publisher=publisher or None,
        authors=merge_authors(article.authors),
        published_at=article.published_at or now,
        discovered_at=now,
    )
