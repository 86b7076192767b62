"""
aggregator.ratelimiter — Admission control against a single upstream.

Two ceilings apply at once:

cadence gate    — admissions are spaced at least ``1 / requests_per_second``
                  apart (or ``min_interval``, whichever is longer).
burst ceiling   — at most ``requests_per_minute`` admissions per burst window.

By default the burst window is a fixed period aligned to construction time and
the whole history is dropped when a new period begins, so a caller may burst
right after a period boundary.  ``sliding=True`` expires each admission
``burst_window`` seconds after it was recorded instead.

One instance is meant to be shared by every worker hitting the same upstream.
Slots are reserved under a lock and slept on outside it, so concurrent callers
never receive the same slot.
"""

import logging
import threading
import time
from collections import deque
from typing import Optional

from aggregator.errors import FetchCancelled
from aggregator.throttle import BURST_WINDOW

logger = logging.getLogger(__name__)


class RateLimiter:
    """Blocking two-ceiling rate limiter; ``wait()`` delays but never rejects."""

    def __init__(
        self,
        requests_per_second: int,
        requests_per_minute: int,
        burst_window: float = BURST_WINDOW,
        sliding: bool = False,
        min_interval: Optional[float] = None,
    ):
        for name, value in (
            ("requests_per_second", requests_per_second),
            ("requests_per_minute", requests_per_minute),
        ):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if burst_window <= 0:
            raise ValueError(f"burst_window must be positive, got {burst_window!r}")
        if min_interval is not None and min_interval < 0:
            raise ValueError(f"min_interval must be >= 0, got {min_interval!r}")

        self.requests_per_second = requests_per_second
        self.requests_per_minute = requests_per_minute
        self.burst_window = float(burst_window)
        self.sliding = sliding
        # min_interval only ever widens the spacing (AniDB wants 1 request / 5s).
        self.interval = max(1.0 / requests_per_second, min_interval or 0.0)

        self._lock = threading.Lock()
        self._history: deque = deque()
        self._window_start = time.monotonic()
        self._next_slot = self._window_start

    @property
    def pending(self) -> int:
        """Admissions currently counted against the burst ceiling."""
        with self._lock:
            return len(self._history)

    def wait(self, cancel: Optional[threading.Event] = None) -> float:
        """
        Block until one more request may be sent, record it and return the
        admission time on the ``time.monotonic()`` clock.

        ``cancel`` is optional; when it is set before or during the wait,
        ``FetchCancelled`` is raised.  The reserved slot is given back when no
        later caller has reserved after it; otherwise it stays consumed.
        """
        if cancel is not None and cancel.is_set():
            raise FetchCancelled("cancelled before rate limiter admission")

        with self._lock:
            now = time.monotonic()
            slot = self._reserve(now)
            pending = len(self._history)

        delay = slot - now
        if delay > 0:
            logger.debug(
                "Rate limiting: waiting %.3fs (%d/%d in burst window)",
                delay, pending, self.requests_per_minute,
            )
            if cancel is None:
                time.sleep(delay)
            elif cancel.wait(delay):
                self._release(slot)
                raise FetchCancelled("cancelled while waiting for rate limiter")
        return slot

    def _release(self, slot: float):
        with self._lock:
            if self._history and self._history[-1] == slot and self._next_slot == slot + self.interval:
                self._history.pop()
                self._next_slot = slot

    # Everything below runs with self._lock held.

    def _reserve(self, now: float) -> float:
        slot = max(now, self._next_slot)
        if self.sliding:
            slot = self._admit_sliding(slot)
        else:
            slot = self._admit_periodic(slot)
        self._history.append(slot)
        self._next_slot = slot + self.interval
        return slot

    def _admit_periodic(self, slot: float) -> float:
        elapsed = slot - self._window_start
        if elapsed >= self.burst_window:
            self._window_start += (elapsed // self.burst_window) * self.burst_window
            self._history.clear()

        if len(self._history) >= self.requests_per_minute:
            # Full: the next admission happens at the next flush.
            self._window_start += self.burst_window
            self._history.clear()
            slot = max(slot, self._window_start)
        return slot

    def _admit_sliding(self, slot: float) -> float:
        self._expire(slot)
        if len(self._history) >= self.requests_per_minute:
            slot = max(slot, self._history.popleft() + self.burst_window)
            self._expire(slot)
        return slot

    def _expire(self, slot: float):
        horizon = slot - self.burst_window
        while self._history and self._history[0] <= horizon:
            self._history.popleft()
