"""
Tests for cloud_linter/rate_limiter.py.

Covers:
- RateLimiterConfig defaults
- Token accounting (burst, try_acquire)
- Pacing of calls beyond the burst
- Sharing one limiter across threads
"""
import os
import sys
import threading
import time

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cloud_linter.rate_limiter import RateLimiterConfig, TokenBucketRateLimiter


class TestRateLimiterConfig:
    """Tests for RateLimiterConfig."""

    def test_default_values(self):
        """Default is one call per second with no burst."""
        config = RateLimiterConfig()

        assert config.requests_per_second == 1.0
        assert config.burst_size == 1

    def test_invalid_rate(self):
        """A non-positive rate is rejected."""
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=0))

    def test_invalid_burst(self):
        """A burst below one is rejected."""
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(RateLimiterConfig(burst_size=0))


class TestTokenBucketRateLimiter:
    """Tests for TokenBucketRateLimiter."""

    def test_initial_tokens_equals_burst_size(self):
        """The bucket starts full."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=1, burst_size=5))

        assert limiter.available_tokens == pytest.approx(5, abs=0.1)

    def test_try_acquire_until_empty(self):
        """try_acquire succeeds burst_size times then fails."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=0.1, burst_size=3))

        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False

    def test_acquire_within_burst_does_not_wait(self):
        """Calls inside the burst return immediately."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=1, burst_size=3))

        start = time.monotonic()
        for _ in range(3):
            assert limiter.acquire() == 0.0
        assert time.monotonic() - start < 0.5

    def test_excess_calls_are_delayed(self):
        """Calls beyond the burst wait for the refill interval."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=10, burst_size=2))

        start = time.monotonic()
        for _ in range(4):
            limiter.acquire()
        elapsed = time.monotonic() - start

        # Two excess calls at 10/s need at least ~0.2s
        assert elapsed >= 0.15

    def test_acquire_reports_wait(self):
        """acquire returns the time it spent waiting."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=20, burst_size=1))

        limiter.acquire()
        waited = limiter.acquire()

        assert waited > 0

    def test_tokens_refill_over_time(self):
        """An emptied bucket refills at the configured rate."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=20, burst_size=1))

        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False
        time.sleep(0.1)
        assert limiter.try_acquire() is True

    def test_shared_across_threads(self):
        """One limiter paces calls made from several threads."""
        limiter = TokenBucketRateLimiter(RateLimiterConfig(requests_per_second=20, burst_size=1))
        calls = []
        lock = threading.Lock()

        def worker():
            for _ in range(2):
                limiter.acquire()
                with lock:
                    calls.append(time.monotonic())

        start = time.monotonic()
        threads = [threading.Thread(target=worker) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        elapsed = time.monotonic() - start

        assert len(calls) == 6
        # Five calls beyond the burst at 20/s need at least ~0.25s
        assert elapsed >= 0.2
