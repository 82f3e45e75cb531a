"""
Error taxonomy for source fetches.

Transient errors (timeouts, connection failures, 5xx) are retried on the
source's next scheduled cycle and count toward auto-disable. Permanent
errors (4xx, unparseable feeds or markup) disable the source immediately.
Validation errors drop a single scraped candidate and never fail a fetch.
"""


class FetchError(Exception):
    """Base exception for a failed source fetch."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransientFetchError(FetchError):
    """Failure expected to clear up on a later attempt."""


class PermanentFetchError(FetchError):
    """Failure that will recur until the source is reconfigured."""


class FeedParseError(PermanentFetchError):
    """Response body is not a recognisable RSS/Atom document."""


class MarkupParseError(PermanentFetchError):
    """HTML could not be parsed or queried with the configured selectors."""


class SourceConfigError(PermanentFetchError):
    """Source configuration cannot be used to fetch it."""


class ArticleValidationError(ValueError):
    """A scraped article failed field, domain or date checks."""
