"""
rate_limiter.py — Token-Bucket Request Throttle
=================================================
Last.fm asks clients to stay around five requests per second per key.
The bucket refills continuously from elapsed clock time, so there is no
background timer; ``acquire`` computes exactly how long to wait for the
next whole token.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from armystats.utils import get_logger

logger = get_logger("armystats.ratelimit")


class TokenBucket:
    """
    Continuous-refill token bucket.

    Parameters
    ----------
    capacity : int
        Maximum burst size; the bucket starts full.
    refill_rate : float
        Tokens added per second.
    clock, sleep : callable
        Injected for tests.  Default to ``time.monotonic`` / ``time.sleep``.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_rate: float = 5.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._last_refill, 0.0)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    @property
    def available(self) -> float:
        """Tokens currently in the bucket (after refill)."""
        with self._lock:
            self._refill()
            return self._tokens

    def acquire(self) -> float:
        """
        Take one token, sleeping if the bucket is empty.

        Returns the number of seconds spent waiting (0.0 on the fast path).
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0

            wait = (1 - self._tokens) / self.refill_rate
            logger.debug("Rate limit reached — waiting %.3fs", wait)
            self._sleep(wait)

            self._refill()
            self._tokens = max(self._tokens - 1, 0.0)
            return wait
