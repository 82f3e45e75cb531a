"""Tests for HTML article extraction and validation."""

from datetime import datetime, timedelta, timezone

import pytest
from bs4 import BeautifulSoup

from newsfed.discovery.errors import ArticleValidationError, SourceConfigError
from newsfed.discovery.extractor import (
    extract_article,
    extract_links,
    next_page_url,
    parse_date,
    validate_article,
)
from newsfed.discovery.schemas import ScrapedArticle
from newsfed.sources.schemas import ArticleConfig

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

ARTICLE_HTML = """
<html><body>
  <h1 class="headline">  Fab capacity
      doubles </h1>
  <span class="byline">Jane Doe, John Smith</span>
  <span class="byline">Ann Lee</span>
  <time>2025-05-30</time>
  <div class="body"><p>First paragraph.</p>
  <p>Second   paragraph.</p></div>
</body></html>
"""

INDEX_HTML = """
<html><body>
  <a class="story" href="/news/1">One</a>
  <a class="story" href="https://example.com/news/2">Two</a>
  <span class="story">No link</span>
  <a class="next" href="?page=2">Next</a>
</body></html>
"""


@pytest.fixture
def article_config() -> ArticleConfig:
    return ArticleConfig(
        title_selector="h1.headline",
        content_selector="div.body",
        author_selector=".byline",
        date_selector="time",
        date_format="%Y-%m-%d",
    )


class TestExtractArticle:
    """Tests for extract_article()."""

    def test_extracts_all_fields(self, article_config):
        soup = BeautifulSoup(ARTICLE_HTML, "html.parser")

        article = extract_article(soup, article_config, "https://example.com/news/1")

        assert article.title == "Fab capacity doubles"
        assert article.content == "First paragraph. Second paragraph."
        assert article.authors == ["Jane Doe", "John Smith", "Ann Lee"]
        assert article.published_at == datetime(2025, 5, 30, tzinfo=timezone.utc)
        assert article.url == "https://example.com/news/1"

    def test_missing_elements_give_empty_fields(self):
        soup = BeautifulSoup("<html><body></body></html>", "html.parser")
        config = ArticleConfig(title_selector="h1", content_selector="article")

        article = extract_article(soup, config, "https://example.com/x")

        assert article.title == ""
        assert article.content == ""
        assert article.authors == []
        assert article.published_at is None

    def test_unparseable_date_is_ignored(self, article_config):
        soup = BeautifulSoup(ARTICLE_HTML.replace("2025-05-30", "yesterday"), "html.parser")

        article = extract_article(soup, article_config, "https://example.com/news/1")

        assert article.published_at is None

    def test_invalid_selector_is_config_error(self):
        soup = BeautifulSoup(ARTICLE_HTML, "html.parser")
        config = ArticleConfig(title_selector="h1[", content_selector="div")

        with pytest.raises(SourceConfigError):
            extract_article(soup, config, "https://example.com/news/1")

    def test_parse_date_keeps_explicit_offset(self):
        value = parse_date("2025-05-30 10:00 +0200", "%Y-%m-%d %H:%M %z")

        assert value == datetime(2025, 5, 30, 8, 0, tzinfo=timezone.utc)


class TestLinks:
    """Tests for list-page link extraction."""

    def test_extract_links_resolves_relative(self):
        soup = BeautifulSoup(INDEX_HTML, "html.parser")

        links = extract_links(soup, "a.story, span.story", "https://example.com/news")

        assert links == ["https://example.com/news/1", "https://example.com/news/2"]

    def test_next_page(self):
        soup = BeautifulSoup(INDEX_HTML, "html.parser")

        assert next_page_url(soup, "a.next", "https://example.com/news") == "https://example.com/news?page=2"

    def test_no_next_page(self):
        soup = BeautifulSoup(INDEX_HTML, "html.parser")

        assert next_page_url(soup, "a.older", "https://example.com/news") is None

    def test_malformed_href_is_skipped(self):
        soup = BeautifulSoup(
            '<a class="story" href="http://[broken/x">Bad</a>'
            '<a class="story" href="/news/ok">Good</a>',
            "html.parser",
        )

        links = extract_links(soup, "a.story", "https://example.com/news")

        assert links == ["https://example.com/news/ok"]

    def test_malformed_next_page(self):
        soup = BeautifulSoup('<a class="next" href="http://[broken/2">Next</a>', "html.parser")

        assert next_page_url(soup, "a.next", "https://example.com/news") is None


class TestValidateArticle:
    """Tests for validate_article()."""

    SOURCE = "https://example.com/news"

    def _article(self, **kwargs) -> ScrapedArticle:
        fields = {"url": "https://example.com/news/1", "title": "Title", "content": "Body"}
        fields.update(kwargs)
        return ScrapedArticle(**fields)

    def test_valid_article(self):
        validate_article(self._article(published_at=NOW - timedelta(days=1)), self.SOURCE, now=NOW)

    def test_empty_content_only_warns(self):
        validate_article(self._article(content=""), self.SOURCE, now=NOW)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"title": ""},
            {"title": "x" * 501},
            {"url": "ftp://example.com/news/1"},
            {"url": "not a url"},
            {"url": "https://other.com/news/1"},
            {"url": "https://www.example.com/news/1"},
            {"published_at": datetime(1989, 12, 31, tzinfo=timezone.utc)},
            {"published_at": NOW + timedelta(hours=1)},
        ],
    )
    def test_rejections(self, kwargs):
        with pytest.raises(ArticleValidationError):
            validate_article(self._article(**kwargs), self.SOURCE, now=NOW)

    def test_scheme_difference_alone_passes_host_check(self):
        validate_article(self._article(url="http://example.com/news/1"), self.SOURCE, now=NOW)

    def test_title_at_limit_is_accepted(self):
        validate_article(self._article(title="x" * 500), self.SOURCE, now=NOW)
