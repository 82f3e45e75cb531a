"""Shared fixtures for sources tests."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import UUID

import pytest


@pytest.fixture
def mock_database() -> AsyncMock:
    """Mock Database instance matching the Database API."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchval = AsyncMock(return_value=None)
    db.fetchrow = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="UPDATE 1")
    return db


@pytest.fixture
def sample_db_row() -> dict:
    """A dict mimicking an asyncpg Record for an RSS source."""
    return {
        "source_id": UUID("6f1c2d5e-0000-4000-8000-000000000001"),
        "source_type": "rss",
        "url": "https://example.com/feed.xml",
        "name": "Example Feed",
        "enabled_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "polling_interval": timedelta(minutes=30),
        "last_fetched_at": None,
        "last_modified": None,
        "etag": None,
        "fetch_error_count": 0,
        "last_error": None,
        "scraper_config": None,
    }


@pytest.fixture
def sample_website_row(sample_db_row: dict) -> dict:
    """A dict mimicking an asyncpg Record for a list-mode website source."""
    return {
        **sample_db_row,
        "source_id": UUID("6f1c2d5e-0000-4000-8000-000000000002"),
        "source_type": "website",
        "url": "https://example.com/news",
        "name": "Example News",
        "polling_interval": None,
        "scraper_config": json.dumps(
            {
                "discovery_mode": "list",
                "list_config": {"article_selector": "a.story", "max_pages": 2},
                "article_config": {"title_selector": "h1", "content_selector": "article"},
            }
        ),
    }
