"""
Request rate limiter for the LLM API.

Bounds outbound requests by a sliding one-minute window and a daily quota.
Every service that talks to the model calls ``acquire()`` first.
"""
import logging
import os
import threading
import time
from collections import deque
from typing import Callable, Dict, Optional

from sop_compare.errors import QuotaExceededError, RateLimitTimeoutError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
DAY_SECONDS = 24 * 60 * 60.0
SAFETY_BUFFER_SECONDS = 0.05


class RateLimiter:
    """
    Sliding-window limiter with a daily cap.

    The check-and-record step runs under a lock so two concurrent callers can
    never both claim the last free slot. Waiting happens outside the lock;
    after a wait the window is evaluated again from scratch.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        requests_per_day: int = 1500,
        max_wait: Optional[float] = 300.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if requests_per_minute < 1 or requests_per_day < 1:
            raise ValueError("Rate limits must be positive")

        self.requests_per_minute = requests_per_minute
        self.requests_per_day = requests_per_day
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._timestamps = deque()
        self._daily_count = 0
        self._day_start = clock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= WINDOW_SECONDS:
            self._timestamps.popleft()

    def _try_record(self) -> float:
        """
        Record a request if a slot is free.

        Returns:
            0.0 when the request was recorded, otherwise the number of seconds
            to wait before trying again.

        Raises:
            QuotaExceededError: If the daily quota is used up.
        """
        with self._lock:
            now = self._clock()

            if now - self._day_start > DAY_SECONDS:
                logger.info("Daily request window elapsed, resetting counter")
                self._daily_count = 0
                self._day_start = now

            self._prune(now)

            if self._daily_count >= self.requests_per_day:
                raise QuotaExceededError(
                    "Daily API request limit exceeded. Please try again tomorrow."
                )

            if len(self._timestamps) >= self.requests_per_minute:
                oldest = self._timestamps[0]
                return WINDOW_SECONDS - (now - oldest) + SAFETY_BUFFER_SECONDS

            self._timestamps.append(now)
            self._daily_count += 1
            return 0.0

    def acquire(self) -> None:
        """
        Block until one request may be issued, then record it.

        Raises:
            QuotaExceededError: If the daily quota is used up. Never waits.
            RateLimitTimeoutError: If the total wait would exceed max_wait.
        """
        waited = 0.0
        while True:
            wait_time = self._try_record()
            if wait_time <= 0:
                return

            if self.max_wait is not None and waited + wait_time > self.max_wait:
                raise RateLimitTimeoutError(
                    f"Rate limit wait of {waited + wait_time:.1f}s exceeds {self.max_wait:.1f}s"
                )

            logger.info(f"Per-minute limit reached, waiting {wait_time:.2f}s")
            self._sleep(wait_time)
            waited += wait_time

    def stats(self) -> Dict[str, int]:
        """Current usage of both windows."""
        with self._lock:
            self._prune(self._clock())
            return {
                'minute_used': len(self._timestamps),
                'minute_limit': self.requests_per_minute,
                'day_used': self._daily_count,
                'day_limit': self.requests_per_day,
            }


def _from_env() -> RateLimiter:
    max_wait = os.getenv('RATE_LIMIT_MAX_WAIT', '300')
    return RateLimiter(
        requests_per_minute=int(os.getenv('RATE_LIMIT_PER_MINUTE', '10')),
        requests_per_day=int(os.getenv('RATE_LIMIT_PER_DAY', '1500')),
        max_wait=float(max_wait) if max_wait else None,
    )


# Module-level instance shared by all request handlers
rate_limiter = _from_env()
