"""Tests for the deduplication gate."""

import asyncio
from datetime import datetime, timezone

import pytest

from newsfed.discovery.dedup import DeduplicationGate
from newsfed.discovery.schemas import NewsItem


def _item(url: str) -> NewsItem:
    return NewsItem(title="Title", url=url)


class TestDeduplicationGate:
    """Tests for DeduplicationGate."""

    @pytest.mark.asyncio
    async def test_admits_new_url(self, item_store):
        gate = DeduplicationGate(item_store)

        assert await gate.admit(_item("https://example.com/a"))
        assert item_store.urls == ["https://example.com/a"]

    @pytest.mark.asyncio
    async def test_same_url_twice_in_batch_stores_once(self, item_store):
        gate = DeduplicationGate(item_store)

        results = [await gate.admit(_item("https://example.com/a")) for _ in range(2)]

        assert results == [True, False]
        assert len(item_store.items) == 1

    @pytest.mark.asyncio
    async def test_comparison_is_exact(self, item_store):
        gate = DeduplicationGate(item_store)

        for url in [
            "https://example.com/a",
            "https://example.com/a/",
            "https://EXAMPLE.com/a",
            "http://example.com/a",
        ]:
            assert await gate.admit(_item(url))

        assert len(item_store.items) == 4

    @pytest.mark.asyncio
    async def test_concurrent_admission_of_same_url(self, item_store):
        gate = DeduplicationGate(item_store)

        results = await asyncio.gather(*(gate.admit(_item("https://example.com/a")) for _ in range(5)))

        assert results.count(True) == 1
        assert len(item_store.items) == 1

    @pytest.mark.asyncio
    async def test_discovered_at_set_on_admission(self, item_store):
        gate = DeduplicationGate(item_store)
        item = _item("https://example.com/a")
        item.discovered_at = datetime(2000, 1, 1, tzinfo=timezone.utc)
        before = datetime.now(timezone.utc)

        await gate.admit(item)

        assert before <= item_store.items[0].discovered_at <= datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_exists(self, item_store):
        gate = DeduplicationGate(item_store)
        await gate.admit(_item("https://example.com/a"))

        assert await gate.exists("https://example.com/a")
        assert not await gate.exists("https://example.com/b")
