# backend/leadsync/services/rate_limiter.py
"""
Per-platform API rate limiting.

Sliding window limiter: a platform allows at most `max_requests` calls in
any `window_seconds` interval. acquire() never sleeps; when the window is
full it raises RateLimitExceededError with the time until a slot frees up,
and the caller decides whether to wait or give up.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple
import logging

from leadsync.schemas.social_media import SocialPlatform
from leadsync.services.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


# (max_requests, window_seconds)
PLATFORM_RATE_LIMITS: Dict[SocialPlatform, Tuple[int, float]] = {
    SocialPlatform.FACEBOOK: (200, 3600),
    SocialPlatform.INSTAGRAM: (200, 3600),
    SocialPlatform.LINKEDIN: (100, 86400),
    SocialPlatform.TWITTER: (300, 900),
    SocialPlatform.TIKTOK: (100, 3600),
}


class RateLimiter:
    """
    Sliding-window rate limiter for one platform. Thread-safe.
    """

    def __init__(
        self,
        platform: SocialPlatform,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.platform = platform
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()

        # Request tracking
        self._requests: Deque[float] = deque()
        self.total_requests = 0
        self.total_denied = 0

    @classmethod
    def for_platform(
        cls,
        platform: SocialPlatform,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiter":
        max_requests, window_seconds = PLATFORM_RATE_LIMITS[platform]
        return cls(platform, max_requests, window_seconds, clock=clock)

    def _evict_expired(self, now: float):
        while self._requests and now - self._requests[0] >= self.window_seconds:
            self._requests.popleft()

    def acquire(self) -> None:
        """
        Consume one request slot.

        Raises:
            RateLimitExceededError: the window is full
        """
        with self._lock:
            now = self._clock()
            self._evict_expired(now)

            if len(self._requests) >= self.max_requests:
                retry_after = max(self.window_seconds - (now - self._requests[0]), 0.0)
                self.total_denied += 1
                logger.warning(
                    f"🚨 {self.platform.value} rate limit reached: "
                    f"{len(self._requests)}/{self.max_requests} in {self.window_seconds:.0f}s, "
                    f"retry in {retry_after:.0f}s"
                )
                raise RateLimitExceededError(self.platform, retry_after=retry_after)

            self._requests.append(now)
            self.total_requests += 1

    def remaining(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return self.max_requests - len(self._requests)

    def reset(self):
        with self._lock:
            self._requests.clear()

    def get_stats(self) -> Dict:
        """Get current rate limiter stats"""
        with self._lock:
            self._evict_expired(self._clock())
            return {
                "platform": self.platform.value,
                "max_requests": self.max_requests,
                "window_seconds": self.window_seconds,
                "requests_in_window": len(self._requests),
                "remaining": self.max_requests - len(self._requests),
                "total_requests": self.total_requests,
                "total_denied": self.total_denied,
            }


class RateLimiterRegistry:
    """
    One limiter per platform, created on first use.

    Shared by every orchestrator built on the same integration state so the
    budget is counted once per process.
    """

    def __init__(
        self,
        limits: Optional[Dict[SocialPlatform, Tuple[int, float]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limits = dict(PLATFORM_RATE_LIMITS)
        if limits:
            self.limits.update(limits)
        self._clock = clock
        self._limiters: Dict[SocialPlatform, RateLimiter] = {}
        self._lock = threading.Lock()

    def get(self, platform: SocialPlatform) -> RateLimiter:
        with self._lock:
            limiter = self._limiters.get(platform)
            if limiter is None:
                max_requests, window_seconds = self.limits[platform]
                limiter = RateLimiter(platform, max_requests, window_seconds, clock=self._clock)
                self._limiters[platform] = limiter
            return limiter

    def get_stats(self) -> Dict[str, Dict]:
        with self._lock:
            limiters = list(self._limiters.values())
        return {limiter.platform.value: limiter.get_stats() for limiter in limiters}
