"""
HTTP layer for source fetches.

Provides:
- HTTPClient: Async HTTP client that sends the engine's User-Agent,
  applies the per-request timeout, and maps transport failures and
  error statuses onto the fetch error taxonomy.

There is no in-request retry: a transient failure is retried naturally on
the source's next scheduled cycle, and counts toward auto-disable.
"""

import logging
from typing import Any

import httpx

from newsfed.discovery.config import DEFAULT_USER_AGENT
from newsfed.discovery.errors import PermanentFetchError, TransientFetchError

logger = logging.getLogger(__name__)


def conditional_headers(last_modified: str | None, etag: str | None) -> dict[str, str]:
    """Build conditional GET headers from stored cache validators."""
    headers = {}
    if last_modified:
        headers["If-Modified-Since"] = last_modified
    if etag:
        headers["If-None-Match"] = etag
    return headers


def classify_status(status_code: int, url: str) -> None:
    """
    Raise the taxonomy error for a non-success status.

    5xx responses are transient; every other status of 300 or more that
    reaches this point (4xx, unfollowed redirects) is permanent.
    """
    if status_code >= 500:
        raise TransientFetchError(
            f"HTTP {status_code} from {url}", status_code=status_code, url=url
        )
    if status_code >= 300:
        raise PermanentFetchError(
            f"HTTP {status_code} from {url}", status_code=status_code, url=url
        )


class HTTPClient:
    """
    Async HTTP client for feed and page fetches.

    Example:
        async with HTTPClient(timeout=10.0) as client:
            response = await client.get(url, headers=conditional_headers(lm, etag),
                                        allow_not_modified=True)
            if response.status_code == 304:
                ...
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Per-request timeout in seconds.
            user_agent: User-Agent header sent with every request.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        allow_not_modified: bool = False,
    ) -> httpx.Response:
        """
        Perform a single GET request.

        Args:
            url: Request URL
            headers: Extra request headers (e.g., conditional validators)
            allow_not_modified: Return 304 responses instead of raising

        Returns:
            httpx.Response with a 2xx status (or 304 when allowed)

        Raises:
            TransientFetchError: Timeouts, connection errors, 5xx statuses
            PermanentFetchError: Invalid URLs, 4xx statuses
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        try:
            response = await self._client.get(url, headers=headers or None)
        except httpx.TimeoutException as e:
            raise TransientFetchError(
                f"Request to {url} timed out ({type(e).__name__})", url=url
            ) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.TooManyRedirects) as e:
            raise PermanentFetchError(f"Cannot fetch {url}: {e}", url=url) from e
        except httpx.TransportError as e:
            raise TransientFetchError(
                f"Request to {url} failed: {type(e).__name__}: {e}", url=url
            ) from e

        if response.status_code == 304 and allow_not_modified:
            return response

        classify_status(response.status_code, url)
        if response.status_code < 200:
            raise PermanentFetchError(
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
                url=url,
            )

        logger.debug(f"GET {url} -> {response.status_code} ({len(response.content)} bytes)")
        return response
