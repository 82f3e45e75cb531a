"""Tests for the newsfed CLI."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from click.testing import CliRunner

from newsfed.cli import main
from newsfed.config.settings import get_settings
from newsfed.services.discovery_service import SyncResult
from newsfed.sources.schemas import Source, SourceType


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def feed_dir(tmp_path, monkeypatch):
    """Point the item store at a temporary directory."""
    monkeypatch.setenv("FEED_DIR", str(tmp_path / "items"))
    get_settings.cache_clear()
    yield tmp_path / "items"
    get_settings.cache_clear()


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


def _service_with(result=None, error=None):
    service = MagicMock()
    service.sync_sources = AsyncMock(return_value=result, side_effect=error)
    return service


class TestSync:
    """Tests for `newsfed sync`."""

    def test_success(self, runner, mock_db):
        service = _service_with(SyncResult(sources_synced=2, items_discovered=5))

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.services.discovery_service.DiscoveryService", return_value=service):
            result = runner.invoke(main, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Sources synced: 2" in result.output
        assert "New items:      5" in result.output
        service.sync_sources.assert_awaited_once_with(None)
        mock_db.close.assert_awaited_once()

    def test_single_source(self, runner, mock_db):
        source_id = uuid4()
        service = _service_with(SyncResult(sources_synced=1))

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.services.discovery_service.DiscoveryService", return_value=service):
            result = runner.invoke(main, ["sync", "--source-id", str(source_id)])

        assert result.exit_code == 0, result.output
        service.sync_sources.assert_awaited_once_with(source_id)

    def test_failures_exit_nonzero(self, runner, mock_db):
        service = _service_with(
            SyncResult(sources_synced=1, sources_failed=1, errors={"Broken": "HTTP 404"})
        )

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.services.discovery_service.DiscoveryService", return_value=service):
            result = runner.invoke(main, ["sync"])

        assert result.exit_code == 1
        assert "Broken: HTTP 404" in result.output

    def test_unknown_source(self, runner, mock_db):
        service = _service_with(error=LookupError("Source x not found"))

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.services.discovery_service.DiscoveryService", return_value=service):
            result = runner.invoke(main, ["sync", "--source-id", str(uuid4())])

        assert result.exit_code == 1
        mock_db.close.assert_awaited_once()


class TestSourcesAdd:
    """Tests for `newsfed sources add`."""

    def test_add_feed(self, runner, mock_db):
        repo = MagicMock()
        repo.create = AsyncMock(side_effect=lambda source: source)

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(
                main,
                [
                    "sources", "add",
                    "--type", "rss",
                    "--url", "https://example.com/feed.xml",
                    "--name", "Example",
                    "--interval", "30",
                ],
            )

        assert result.exit_code == 0, result.output
        created = repo.create.await_args[0][0]
        assert created.source_type == SourceType.RSS
        assert created.polling_interval.total_seconds() == 1800
        assert created.is_enabled

    def test_add_website_with_config(self, runner, mock_db, tmp_path):
        config_path = tmp_path / "scraper.json"
        config_path.write_text(
            json.dumps(
                {
                    "discovery_mode": "list",
                    "list_config": {"article_selector": "a.story"},
                    "article_config": {"title_selector": "h1", "content_selector": "article"},
                }
            ),
            encoding="utf-8",
        )
        repo = MagicMock()
        repo.create = AsyncMock(side_effect=lambda source: source)

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(
                main,
                [
                    "sources", "add",
                    "--type", "website",
                    "--url", "https://example.com/news",
                    "--name", "Example News",
                    "--scraper-config", str(config_path),
                    "--disabled",
                ],
            )

        assert result.exit_code == 0, result.output
        created = repo.create.await_args[0][0]
        assert created.scraper_config.list_config.article_selector == "a.story"
        assert not created.is_enabled

    def test_website_without_config_is_rejected(self, runner):
        result = runner.invoke(
            main,
            ["sources", "add", "--type", "website", "--url", "https://x.example", "--name", "X"],
        )

        assert result.exit_code == 2
        assert "scraper_config" in result.output


class TestSourcesAdmin:
    """Tests for listing, enabling, disabling and deleting sources."""

    def test_list(self, runner, mock_db):
        repo = MagicMock()
        repo.list_sources = AsyncMock(
            return_value=[
                Source(
                    source_id=uuid4(),
                    source_type="atom",
                    url="https://example.com/atom.xml",
                    name="Flaky Feed",
                    enabled_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
                    fetch_error_count=3,
                    last_error="HTTP 503 from https://example.com/atom.xml",
                )
            ]
        )

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["sources", "list"])

        assert result.exit_code == 0, result.output
        assert "degraded" in result.output
        assert "last=never" in result.output
        assert "Flaky Feed" in result.output
        assert "last error: HTTP 503" in result.output

    def test_list_empty(self, runner, mock_db):
        repo = MagicMock()
        repo.list_sources = AsyncMock(return_value=[])

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["sources", "list", "--enabled-only"])

        assert "No sources configured" in result.output
        repo.list_sources.assert_awaited_once_with(enabled_only=True)

    def test_enable(self, runner, mock_db):
        repo = MagicMock()
        repo.set_enabled = AsyncMock(return_value=True)
        source_id = uuid4()

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["sources", "enable", str(source_id)])

        assert result.exit_code == 0, result.output
        repo.set_enabled.assert_awaited_once_with(source_id, True)

    def test_disable_missing_source(self, runner, mock_db):
        repo = MagicMock()
        repo.set_enabled = AsyncMock(return_value=False)

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["sources", "disable", str(uuid4())])

        assert result.exit_code == 1

    def test_delete(self, runner, mock_db):
        repo = MagicMock()
        repo.delete = AsyncMock(return_value=True)
        source_id = uuid4()

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["sources", "delete", str(source_id), "--yes"])

        assert result.exit_code == 0, result.output
        repo.delete.assert_awaited_once_with(source_id)


class TestInitDbAndHealth:
    """Tests for `newsfed init-db` and `newsfed health`."""

    def test_init_db(self, runner, mock_db):
        repo = MagicMock()
        repo.create_table = AsyncMock()

        with patch("newsfed.storage.database.Database", return_value=mock_db), \
             patch("newsfed.sources.repository.SourcesRepository", return_value=repo):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        repo.create_table.assert_awaited_once()

    def test_health_all_good(self, runner, mock_db, feed_dir):
        with patch("newsfed.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 0, result.output
        assert "All services healthy!" in result.output
        assert feed_dir.exists()

    def test_health_database_down(self, runner, mock_db):
        mock_db.connect = AsyncMock(side_effect=OSError("connection refused"))

        with patch("newsfed.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "postgres: False" in result.output
