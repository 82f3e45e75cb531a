"""Database repository for the sources table."""

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from newsfed.sources.schemas import ENGINE_WRITABLE_FIELDS, ScraperConfig, Source
from newsfed.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    source_id         UUID PRIMARY KEY,
    source_type       TEXT NOT NULL CHECK (source_type IN ('rss', 'atom', 'website')),
    url               TEXT NOT NULL,
    name              TEXT NOT NULL DEFAULT '',
    enabled_at        TIMESTAMPTZ,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    polling_interval  INTERVAL,
    last_fetched_at   TIMESTAMPTZ,
    last_modified     TEXT,
    etag              TEXT,
    fetch_error_count INTEGER NOT NULL DEFAULT 0,
    last_error        TEXT,
    scraper_config    JSONB,
    CHECK ((source_type = 'website') = (scraper_config IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_sources_enabled
    ON sources(enabled_at) WHERE enabled_at IS NOT NULL;
"""

_INSERT_SQL = """
INSERT INTO sources (
    source_id, source_type, url, name, enabled_at, polling_interval, scraper_config
)
VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
RETURNING *
"""


def _decode_scraper_config(value: Any) -> ScraperConfig | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return ScraperConfig.model_validate(value)


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        source_id=record["source_id"],
        source_type=record["source_type"],
        url=record["url"],
        name=record["name"],
        enabled_at=record["enabled_at"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
        polling_interval=record["polling_interval"],
        last_fetched_at=record["last_fetched_at"],
        last_modified=record["last_modified"],
        etag=record["etag"],
        fetch_error_count=record["fetch_error_count"],
        last_error=record["last_error"],
        scraper_config=_decode_scraper_config(record["scraper_config"]),
    )


def _records_to_sources(records) -> list[Source]:
    """Convert rows, skipping any that no longer form a valid Source."""
    sources = []
    for record in records:
        try:
            sources.append(_record_to_source(record))
        except (ValueError, ValidationError) as e:
            logger.error(f"Skipping invalid source {record['source_id']}: {e}")
    return sources


class SourcesRepository:
    """CRUD operations for the sources table.

    Implements the source store used by the discovery engine
    (``list_enabled``, ``get`` and ``update``) plus the administrative
    operations used by the CLI.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Sources table ensured")

    async def create(self, source: Source) -> Source:
        """Insert a new source and return it with database timestamps."""
        scraper_config = (
            source.scraper_config.model_dump_json() if source.scraper_config else None
        )
        row = await self._db.fetchrow(
            _INSERT_SQL,
            source.source_id,
            source.source_type.value,
            source.url,
            source.name,
            source.enabled_at,
            source.polling_interval,
            scraper_config,
        )
        logger.info(f"Created {source.source_type.value} source {source.source_id}: {source.url}")
        return _record_to_source(row)

    async def get(self, source_id: UUID) -> Source | None:
        """Fetch a single source by ID."""
        row = await self._db.fetchrow(
            "SELECT * FROM sources WHERE source_id = $1",
            source_id,
        )
        return _record_to_source(row) if row else None

    async def list_enabled(self) -> list[Source]:
        """All enabled sources, oldest first."""
        rows = await self._db.fetch(
            "SELECT * FROM sources WHERE enabled_at IS NOT NULL ORDER BY created_at, source_id"
        )
        return _records_to_sources(rows)

    async def list_sources(
        self,
        source_type: str | None = None,
        enabled_only: bool = False,
    ) -> list[Source]:
        """List sources with optional filters."""
        conditions: list[str] = []
        params: list = []

        if enabled_only:
            conditions.append("enabled_at IS NOT NULL")

        if source_type:
            params.append(source_type)
            conditions.append(f"source_type = ${len(params)}")

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        rows = await self._db.fetch(
            f"SELECT * FROM sources{where_clause} ORDER BY created_at, source_id",
            *params,
        )
        return _records_to_sources(rows)

    async def update(self, source_id: UUID, fields: dict[str, Any]) -> bool:
        """Apply a partial update of engine-owned fields.

        Only the fetch bookkeeping fields and ``enabled_at`` may be written
        through this method; any other key raises ValueError before touching
        the database. ``updated_at`` is left alone, so it keeps tracking
        administrative edits only. Returns True if a row was updated.
        """
        unknown = set(fields) - ENGINE_WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by the discovery engine: {sorted(unknown)}")
        if not fields:
            return False

        assignments = []
        params: list = [source_id]
        for name, value in fields.items():
            params.append(value)
            assignments.append(f"{name} = ${len(params)}")

        result = await self._db.execute(
            f"UPDATE sources SET {', '.join(assignments)} WHERE source_id = $1",
            *params,
        )
        return result.endswith("1")

    async def set_enabled(self, source_id: UUID, enabled: bool) -> bool:
        """Enable or disable a source. Returns True if a row was updated."""
        enabled_at = datetime.now(timezone.utc) if enabled else None
        result = await self._db.execute(
            "UPDATE sources SET enabled_at = $2, updated_at = NOW() WHERE source_id = $1",
            source_id,
            enabled_at,
        )
        return result.endswith("1")

    async def delete(self, source_id: UUID) -> bool:
        """Hard-delete a source. Items it already produced are kept."""
        result = await self._db.execute(
            "DELETE FROM sources WHERE source_id = $1",
            source_id,
        )
        return result.endswith("1")
