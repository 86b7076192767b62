"""
aggregator — Rate-limited, ban-aware fetch layer for the anime metadata savers.

Re-exports every public symbol so callers can use
``from aggregator import fetch_with_retry, RateLimiter``.
"""

from aggregator.throttle import (
    MAX_RETRIES,
    RETRY_DELAY,
    RETRY_MULTIPLIER,
    BAN_COOLDOWN,
    BURST_WINDOW,
    REQUEST_TIMEOUT,
    THROTTLED_STATUS_CODES,
    FETCH_HEADERS,
    RetryConfig,
    load_retry_config,
)

from aggregator.errors import (
    FetchError,
    TransportError,
    BodyReadError,
    UnexpectedStatus,
    RateLimitExceeded,
    BannedError,
    FetchCancelled,
)

from aggregator.ratelimiter import RateLimiter

from aggregator.classify import (
    Success,
    RetryableThrottle,
    PermanentFailure,
    FetchOutcome,
    StatusClassifier,
    PayloadBanClassifier,
)

from aggregator.fetcher import fetch_with_retry

from aggregator.providers import UPSTREAMS, Upstream, get_upstream

from aggregator.client import UpstreamClient, anime365_has_data, jikan_has_next_page

from aggregator.observability import (
    FAILURE_RATE_WARNING,
    FAILURE_RATE_CRITICAL,
    BAN_ALERT_THRESHOLD,
    start_fetch_run,
    record_outcome,
    record_throttle,
    finish_fetch_run,
    evaluate_alerts,
)
