"""
aggregator.errors — Failure taxonomy of the fetch layer.

Only ``RateLimitExceeded`` and ``BannedError`` are the result of retrying;
every other error is raised on the attempt that produced it.
"""

from typing import Optional


class FetchError(Exception):
    """Base class for everything ``fetch_with_retry`` can raise."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Connection, DNS or timeout failure while issuing the GET."""


class BodyReadError(FetchError):
    """The response arrived but its body could not be read in full."""


class UnexpectedStatus(FetchError):
    """Non-retryable HTTP status."""

    def __init__(self, status_code: int, url: Optional[str] = None):
        super().__init__(f"unexpected status code: {status_code}", url)
        self.status_code = status_code


class RateLimitExceeded(FetchError):
    """Every attempt was answered with an ordinary throttle (HTTP 429)."""

    def __init__(self, attempts: int, url: Optional[str] = None):
        super().__init__(f"rate limit exceeded after {attempts} attempts", url)
        self.attempts = attempts


class BannedError(FetchError):
    """The upstream kept answering with its soft-ban document."""

    def __init__(self, attempts: int, url: Optional[str] = None):
        super().__init__(f"banned after {attempts} attempts", url)
        self.attempts = attempts


class FetchCancelled(FetchError):
    """The caller's cancel event fired while waiting or backing off."""
