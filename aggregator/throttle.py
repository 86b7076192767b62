"""
aggregator.throttle — Rate-limiting constants and retry configuration.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

MAX_RETRIES = 3
RETRY_DELAY = 10.0                       # seconds, scaled by attempt * multiplier
RETRY_MULTIPLIER = 2
BAN_COOLDOWN = 300.0                     # 5 minutes
BURST_WINDOW = 60.0
REQUEST_TIMEOUT = 30
THROTTLED_STATUS_CODES = {429}

FETCH_HEADERS = {
    "User-Agent": "anime-db-aggregator/1.0",
    "Accept": "application/json, application/xml;q=0.9, */*;q=0.8",
}

ENV_PREFIX = "AGGREGATOR_"


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and backoff parameters for ``fetch_with_retry``."""

    max_retries: int = MAX_RETRIES
    base_delay: float = RETRY_DELAY
    delay_multiplier: int = RETRY_MULTIPLIER
    ban_cooldown: Optional[float] = None

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.delay_multiplier < 1:
            raise ValueError(f"delay_multiplier must be >= 1, got {self.delay_multiplier}")
        if self.ban_cooldown is not None and self.ban_cooldown < 0:
            raise ValueError(f"ban_cooldown must be >= 0, got {self.ban_cooldown}")

    def backoff(self, attempt: int) -> float:
        """Linear backoff: ``base_delay * attempt * delay_multiplier``."""
        return self.base_delay * attempt * self.delay_multiplier


def _read(environ: Mapping[str, str], name: str, cast, default):
    key = ENV_PREFIX + name
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid value for {key}: {raw!r}") from None


def load_retry_config(environ: Optional[Mapping[str, str]] = None) -> RetryConfig:
    """
    Build a ``RetryConfig`` from ``AGGREGATOR_*`` environment variables,
    falling back to the module defaults for anything unset.
    """
    env = os.environ if environ is None else environ
    return RetryConfig(
        max_retries=_read(env, "MAX_RETRIES", int, MAX_RETRIES),
        base_delay=_read(env, "RETRY_DELAY", float, RETRY_DELAY),
        delay_multiplier=_read(env, "RETRY_MULTIPLIER", int, RETRY_MULTIPLIER),
        ban_cooldown=_read(env, "BAN_COOLDOWN", float, None),
    )
