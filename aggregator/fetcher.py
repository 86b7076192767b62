"""
aggregator.fetcher — Rate-limited GET with provider-aware retries.
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from aggregator.classify import PermanentFailure, RetryableThrottle, StatusClassifier, Success
from aggregator.errors import (
    BannedError,
    BodyReadError,
    FetchCancelled,
    FetchError,
    RateLimitExceeded,
    TransportError,
    UnexpectedStatus,
)
from aggregator.ratelimiter import RateLimiter
from aggregator.throttle import FETCH_HEADERS, REQUEST_TIMEOUT, RetryConfig

logger = logging.getLogger(__name__)


def _sleep(delay: float, cancel: Optional[threading.Event]):
    if cancel is None:
        time.sleep(delay)
    elif cancel.wait(delay):
        raise FetchCancelled("cancelled during retry backoff")


def fetch_with_retry(
    url: str,
    rate_limiter: RateLimiter,
    config: Optional[RetryConfig] = None,
    classifier: Optional[StatusClassifier] = None,
    session: Optional[requests.Session] = None,
    cancel: Optional[threading.Event] = None,
    on_throttle: Optional[Callable[[RetryableThrottle, int], None]] = None,
) -> bytes:
    """
    Fetch ``url`` and return the raw body.

    Every attempt goes through ``rate_limiter.wait()`` first.  Transport and
    body-read errors, and any status the classifier deems permanent, are raised
    on the spot.  Throttles are retried up to ``config.max_retries`` attempts:
    ordinary ones after ``base_delay * attempt * delay_multiplier`` seconds,
    soft bans after the fixed cooldown.

    ``on_throttle(outcome, attempt)`` is called for every throttle or soft ban,
    including ones that are later recovered from.
    """
    config = config or RetryConfig()
    classifier = classifier or StatusClassifier()
    http = session if session is not None else requests

    for attempt in range(1, config.max_retries + 1):
        logger.debug("Fetching URL: %s (attempt %d/%d)", url, attempt, config.max_retries)

        rate_limiter.wait(cancel=cancel)

        try:
            resp = http.get(url, headers=FETCH_HEADERS, timeout=REQUEST_TIMEOUT, stream=True)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"failed to fetch URL {url}: {e}", url) from e

        with resp:
            status_code = resp.status_code
            try:
                body = resp.content
            except requests.exceptions.RequestException as e:
                raise BodyReadError(f"failed to read response body: {e}", url) from e

        outcome = classifier.classify(status_code, body)

        if isinstance(outcome, Success):
            logger.info("Successfully fetched URL: %s", url)
            return outcome.body

        if isinstance(outcome, PermanentFailure):
            if outcome.status_code is not None:
                raise UnexpectedStatus(outcome.status_code, url)
            raise FetchError(outcome.reason, url)

        if on_throttle is not None:
            on_throttle(outcome, attempt)

        if attempt == config.max_retries:
            if outcome.banned:
                raise BannedError(config.max_retries, url)
            raise RateLimitExceeded(config.max_retries, url)

        if outcome.delay is not None:
            delay = config.ban_cooldown if config.ban_cooldown is not None else outcome.delay
        else:
            delay = config.backoff(attempt)

        if outcome.banned:
            logger.warning("Received banned response from %s, waiting %.0fs before retry...", url, delay)
        else:
            logger.warning("Rate limit exceeded for %s, waiting %.0fs before retry...", url, delay)
        _sleep(delay, cancel)

    # range() is never empty: RetryConfig enforces max_retries >= 1.
    raise FetchError("max retries reached", url)
