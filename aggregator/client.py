"""
aggregator.client — Record-level access to one upstream.

A client owns the single rate limiter for its upstream; every fetch made
through it, from any thread, shares that limiter.
"""

import json
import logging
import threading
from typing import Callable, List, Optional

import requests

from aggregator.classify import RetryableThrottle
from aggregator.errors import FetchCancelled, FetchError
from aggregator.fetcher import fetch_with_retry
from aggregator.observability import record_outcome, record_throttle, start_fetch_run
from aggregator.providers import Upstream
from aggregator.ratelimiter import RateLimiter
from aggregator.throttle import RetryConfig

logger = logging.getLogger(__name__)


def jikan_has_next_page(body: bytes) -> bool:
    """Read ``pagination.has_next_page`` from a Jikan list response."""
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    return bool((payload.get("pagination") or {}).get("has_next_page"))


def anime365_has_data(body: bytes) -> bool:
    """True when an anime365 catalog batch carries a non-empty ``data`` list."""
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    return bool(payload.get("data"))


class UpstreamClient:
    def __init__(
        self,
        upstream: Upstream,
        config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.upstream = upstream
        self.config = config or RetryConfig()
        self.session = session
        self.limiter = limiter or upstream.new_rate_limiter()
        self.classifier = upstream.new_classifier()
        self.cancel = cancel
        self.metrics = start_fetch_run(upstream.name)
        self._metrics_lock = threading.Lock()

    def _on_throttle(self, outcome: RetryableThrottle, attempt: int):
        with self._metrics_lock:
            record_throttle(self.metrics, banned=outcome.banned)

    def fetch(self, *parts, **query) -> bytes:
        """Fetch one URL of this upstream; raises ``FetchError`` on failure."""
        url = self.upstream.url(*parts, **query)
        return fetch_with_retry(
            url,
            self.limiter,
            config=self.config,
            classifier=self.classifier,
            session=self.session,
            cancel=self.cancel,
            on_throttle=self._on_throttle,
        )

    def fetch_or_none(self, *parts, **query) -> Optional[bytes]:
        """
        Like ``fetch`` but a failed record becomes ``None`` so the batch can
        write a placeholder and carry on.  Cancellation still stops the batch.
        """
        try:
            body = self.fetch(*parts, **query)
        except FetchCancelled:
            raise
        except FetchError as e:
            logger.error("Failed to fetch %s record %s: %s", self.upstream.name, parts or query, e)
            with self._metrics_lock:
                record_outcome(self.metrics, e)
            return None
        with self._metrics_lock:
            record_outcome(self.metrics)
        return body

    def skip(self, reason: str):
        """Count a record that was not fetched at all (missing id, already saved)."""
        logger.info("Skipping %s record: %s", self.upstream.name, reason)
        with self._metrics_lock:
            self.metrics["fetch_skipped"] += 1

    def fetch_pages(
        self,
        identifier,
        resource: str,
        has_next_page: Callable[[bytes], bool] = jikan_has_next_page,
    ) -> List[bytes]:
        """
        Fetch ``<identifier>/<resource>?page=1..N`` until ``has_next_page``
        says there is nothing more.  A failed page fails the whole record.
        """
        pages = []
        page = 1
        while True:
            body = self.fetch(identifier, resource, page=page)
            pages.append(body)
            if not has_next_page(body):
                break
            page += 1
        logger.debug("Fetched %d page(s) of %s for %s", len(pages), resource, identifier)
        return pages

    def fetch_offsets(
        self,
        limit: int,
        start: int = 0,
        has_data: Callable[[bytes], bool] = anime365_has_data,
    ) -> List[bytes]:
        """
        Walk a catalog with ``?limit=<limit>&offset=<start>, <start+limit>, ...``
        until a batch comes back empty.  The empty batch is not returned.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit!r}")
        batches = []
        offset = start
        while True:
            body = self.fetch(limit=limit, offset=offset)
            if not has_data(body):
                break
            batches.append(body)
            offset += limit
        logger.info("Fetched %d batch(es) of %s from offset %d", len(batches), self.upstream.name, start)
        return batches
