"""Per-host request spacing for website scraping."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass
class HostRateLimiter:
    """
    Enforce a minimum interval between requests to the same host.

    Hosts are independent: waiting on one never delays another. Requests
    to one host are serialised through a per-host lock so concurrent
    fetches queue up instead of bursting.
    """

    min_interval: float = 1.0  # seconds between requests to one host
    _last_request: dict[str, float] = field(default_factory=dict, repr=False)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

    async def acquire(self, url: str) -> None:
        """Wait until a request to the URL's host is allowed."""
        if self.min_interval <= 0:
            return

        host = urlparse(url).netloc.lower()
        lock = self._locks.setdefault(host, asyncio.Lock())

        async with lock:
            last = self._last_request.get(host)
            if last is not None:
                wait_time = self.min_interval - (time.monotonic() - last)
                if wait_time > 0:
                    logger.debug(f"Rate limited {host}, waiting {wait_time:.2f}s")
                    await asyncio.sleep(wait_time)
            self._last_request[host] = time.monotonic()
