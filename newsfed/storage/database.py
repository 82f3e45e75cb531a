"""
asyncpg pool for the source metadata database.

The discovery engine only ever runs short single-statement queries
(list enabled sources, write back one source's fetch metadata), so each
helper borrows a pooled connection for exactly one statement.
"""

import logging
from typing import Any

import asyncpg

from newsfed.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Connection pool wrapper used by SourcesRepository.

    Usage:
        db = Database()
        await db.connect()
        try:
            rows = await db.fetch("SELECT * FROM sources")
        finally:
            await db.close()
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float = 30.0,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Open the pool. Raises whatever asyncpg raises if the server is unreachable."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                server_settings={"application_name": "newsfed"},
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Could not connect to source database: {e}")
            raise
        logger.info(f"Source database connected (pool {self._min_size}-{self._max_size})")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Source database connection closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status tag, e.g. ``UPDATE 1``."""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the pool can run ``SELECT 1``."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (OSError, RuntimeError, asyncpg.PostgresError) as e:
            logger.warning(f"Source database health check failed: {e}")
            return False
