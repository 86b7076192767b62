"""
aggregator.classify — Turn (status code, body) into a fetch outcome.

This is the only place that knows how a given upstream signals trouble; the
retry loop in ``aggregator.fetcher`` just acts on the outcome.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Optional, Union

from aggregator.throttle import BAN_COOLDOWN, THROTTLED_STATUS_CODES


@dataclass(frozen=True)
class Success:
    body: bytes


@dataclass(frozen=True)
class RetryableThrottle:
    """Try again later.  ``delay`` is an explicit cooldown, if the upstream implies one."""

    delay: Optional[float] = None
    banned: bool = False


@dataclass(frozen=True)
class PermanentFailure:
    reason: str
    status_code: Optional[int] = None


FetchOutcome = Union[Success, RetryableThrottle, PermanentFailure]


class StatusClassifier:
    """Status-only rule: 200 succeeds, 429 throttles, anything else fails."""

    def classify(self, status_code: int, body: bytes) -> FetchOutcome:
        if status_code == 200:
            return Success(body)
        if status_code in THROTTLED_STATUS_CODES:
            return RetryableThrottle()
        return PermanentFailure(f"unexpected status code: {status_code}", status_code)


class PayloadBanClassifier(StatusClassifier):
    """
    Status rule plus detection of a soft ban hidden in the response body.

    AniDB answers a banned client with ``<error code="500">banned</error>``,
    frequently with status 200.  The document wins over the status code.
    """

    def __init__(self, code: str = "500", message: str = "banned", cooldown: float = BAN_COOLDOWN):
        self.code = code
        self.message = message
        self.cooldown = cooldown

    def is_banned(self, body: bytes) -> bool:
        if not body or not body.lstrip().startswith(b"<"):
            return False
        try:
            root = ET.fromstring(body)
        except ET.ParseError:
            return False
        text = (root.text or "").strip()
        return root.get("code") == self.code and text == self.message

    def classify(self, status_code: int, body: bytes) -> FetchOutcome:
        if self.is_banned(body):
            return RetryableThrottle(delay=self.cooldown, banned=True)
        return super().classify(status_code, body)
