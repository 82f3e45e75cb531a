"""Storage layer: source metadata database and news item files."""

from newsfed.storage.database import Database
from newsfed.storage.items import FileItemStore, ItemStoreError

__all__ = ["Database", "FileItemStore", "ItemStoreError"]
