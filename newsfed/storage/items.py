"""
File-backed news item store.

Each item is one JSON document named ``<item id>.json`` inside the feed
directory. A URL index is built from the directory on first use and kept
current on every add, so existence checks do not rescan the disk.
"""

import asyncio
import logging
from pathlib import Path
from uuid import UUID

from pydantic import ValidationError

from newsfed.discovery.schemas import NewsItem

logger = logging.getLogger(__name__)


class ItemStoreError(Exception):
    """Raised when an item cannot be written."""


class FileItemStore:
    """
    Item store keeping one JSON file per news item.

    Usage:
        store = FileItemStore(Path("/var/lib/newsfed/items"))
        if not await store.exists(item.url):
            await store.add(item)
    """

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)
        self._urls: set[str] | None = None
        self._index_lock = asyncio.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def _path_for(self, item_id: UUID) -> Path:
        return self._dir / f"{item_id}.json"

    def _read_all(self) -> list[NewsItem]:
        if not self._dir.exists():
            return []

        items = []
        for path in sorted(self._dir.glob("*.json")):
            try:
                items.append(NewsItem.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable item file {path.name}: {e}")
        return items

    def _write(self, item: NewsItem) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(item.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(item.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

    async def list(self) -> list[NewsItem]:
        """Load every readable item in the store."""
        return await asyncio.to_thread(self._read_all)

    async def get(self, item_id: UUID) -> NewsItem | None:
        path = self._path_for(item_id)
        try:
            data = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        return NewsItem.model_validate_json(data)

    async def _ensure_index(self) -> set[str]:
        async with self._index_lock:
            if self._urls is None:
                items = await self.list()
                self._urls = {item.url for item in items}
                logger.info(f"Item URL index built: {len(self._urls)} items")
            return self._urls

    async def exists(self, url: str) -> bool:
        """Exact-string URL lookup against every stored item."""
        urls = await self._ensure_index()
        return url in urls

    async def add(self, item: NewsItem) -> None:
        """Persist a new item.

        Raises:
            ItemStoreError: If the item file cannot be written
        """
        urls = await self._ensure_index()
        try:
            await asyncio.to_thread(self._write, item)
        except OSError as e:
            raise ItemStoreError(f"Failed to write item {item.id}: {e}") from e
        urls.add(item.url)

    def health_check(self) -> bool:
        """Check that the feed directory exists (or can be created) and is writable."""
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            probe = self._dir / ".healthcheck"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
            return True
        except OSError:
            return False
