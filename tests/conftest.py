"""
tests/conftest.py — Shared fixtures, fake clock and sample payloads for the test suite.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from aggregator.ratelimiter import RateLimiter

ANIDB_BANNED_XML = b'<?xml version="1.0" encoding="UTF-8"?>\n<error code="500">banned</error>\n'

ANIDB_ANIME_XML = b"""\
<?xml version="1.0" encoding="UTF-8"?>
<anime id="1" restricted="false">
  <episodes>
    <episode id="1"><epno type="1">1</epno><airdate>1998-04-03</airdate></episode>
  </episodes>
</anime>
"""

JIKAN_PAGE_MORE = b'{"data": [{"mal_id": 1}], "pagination": {"last_visible_page": 2, "has_next_page": true}}'
JIKAN_PAGE_LAST = b'{"data": [{"mal_id": 2}], "pagination": {"last_visible_page": 2, "has_next_page": false}}'

ANIME365_BATCH = b'{"data": [{"id": 1, "myAnimeListId": 1, "aniDbId": 23}]}'
ANIME365_EMPTY = b'{"data": []}'


class FakeClock:
    """Stands in for the ``time`` module: ``sleep`` advances ``monotonic``."""

    def __init__(self, start: float = 1000.0, advance_on_sleep: bool = True):
        self.start = start
        self.now = start
        self.advance_on_sleep = advance_on_sleep
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        if self.advance_on_sleep:
            self.now += seconds

    def advance(self, seconds: float):
        self.now += seconds


def mock_http_response(content: bytes, status_code: int = 200):
    """Return a mock ``requests.Response`` usable as a context manager."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.content = content
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


@pytest.fixture
def fake_clock():
    """A ``FakeClock`` patched in as ``aggregator.ratelimiter.time``."""
    clock = FakeClock()
    with patch("aggregator.ratelimiter.time", clock):
        yield clock


@pytest.fixture
def mock_limiter():
    """A ``RateLimiter`` double that admits immediately."""
    limiter = MagicMock(spec=RateLimiter)
    limiter.wait.return_value = 0.0
    return limiter
