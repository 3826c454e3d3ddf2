"""
Token bucket rate limiter shared by every outbound AWS call of a run.

A single limiter paces discovery (DynamoDB, ElastiCache) and CloudWatch
queries alike, so at most ``requests_per_second`` calls start per second
across all threads, after an initial burst of ``burst_size``.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from .constants import DEFAULT_RATE_LIMIT_BURST, DEFAULT_RATE_LIMIT_PER_SECOND

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Rate limiter settings."""
    requests_per_second: float = DEFAULT_RATE_LIMIT_PER_SECOND
    burst_size: int = DEFAULT_RATE_LIMIT_BURST


class TokenBucketRateLimiter:
    """Thread-safe token bucket.

    Tokens refill continuously at ``requests_per_second`` up to
    ``burst_size``. ``acquire`` blocks the caller until a token is free;
    it never fails.
    """

    def __init__(self, config: Optional[RateLimiterConfig] = None):
        self.config = config or RateLimiterConfig()
        if self.config.requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if self.config.burst_size < 1:
            raise ValueError("burst_size must be at least 1")

        self._lock = threading.Lock()
        self._tokens = float(self.config.burst_size)
        self._last_refill = time.monotonic()

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                float(self.config.burst_size),
                self._tokens + elapsed * self.config.requests_per_second,
            )
            self._last_refill = now

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill(time.monotonic())
            return self._tokens

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        with self._lock:
            self._refill(time.monotonic())
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def acquire(self) -> float:
        """
        Wait until a token is available and take it.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        while True:
            with self._lock:
                now = time.monotonic()
                self._refill(now)
                if self._tokens >= 1:
                    self._tokens -= 1
                    if waited:
                        logger.debug(f"Rate limiter delayed call by {waited:.2f}s")
                    return waited
                delay = (1 - self._tokens) / self.config.requests_per_second
            # Sleep outside the lock so other threads can refill and compete
            time.sleep(delay)
            waited += delay
