"""Deduplication gate in front of the item store."""

import asyncio
import logging
from datetime import datetime, timezone

from newsfed.discovery.schemas import NewsItem

logger = logging.getLogger(__name__)


class DeduplicationGate:
    """
    Admits an item only if no stored item has the same URL.

    URLs are compared as exact strings: scheme, host case, trailing slashes
    and query order all matter. The check and the write happen under one
    lock, so two sources reporting the same URL concurrently store it once.

    Usage:
        gate = DeduplicationGate(item_store)
        if await gate.admit(item):
            new_items += 1
    """

    def __init__(self, item_store) -> None:
        self._store = item_store
        self._lock = asyncio.Lock()

    async def exists(self, url: str) -> bool:
        """Whether an item with this URL is already stored."""
        return await self._store.exists(url)

    async def admit(self, item: NewsItem) -> bool:
        """
        Store the item unless its URL is already present.

        ``discovered_at`` is stamped here, at the moment of admission.

        Returns:
            True if the item was stored, False if it was a duplicate
        """
        async with self._lock:
            if await self._store.exists(item.url):
                logger.debug(f"Skipping duplicate {item.url}")
                return False
            item.discovered_at = datetime.now(timezone.utc)
            await self._store.add(item)
            return True
