"""Tests for RateLimiter."""

import pytest

from app.relay.ratelimit import RateLimiter


class TestRateLimiter:
    """Unit tests for the sliding-window call budget."""

    def test_budget_exhausts(self, clock):
        """Test calls beyond the budget are refused."""
        limiter = RateLimiter(max_calls=2, window=60.0, clock=clock)
        assert limiter.try_acquire()
        assert limiter.try_acquire()
        assert not limiter.try_acquire()
        assert limiter.remaining() == 0

    def test_window_slides(self, clock):
        """Test old calls fall out of the window."""
        limiter = RateLimiter(max_calls=1, window=60.0, clock=clock)
        assert limiter.try_acquire()
        clock.advance(59.0)
        assert not limiter.try_acquire()
        clock.advance(1.0)
        assert limiter.try_acquire()

    def test_zero_disables_window(self, clock):
        """Test max_calls=0 means unlimited."""
        limiter = RateLimiter(max_calls=0, clock=clock)
        assert all(limiter.try_acquire() for _ in range(500))
        assert limiter.remaining() is None

    def test_penalize_starts_cooldown(self, clock):
        """Test an upstream 429 blocks calls for the cooldown period."""
        limiter = RateLimiter(max_calls=0, cooldown=3.0, clock=clock)
        limiter.penalize()
        assert limiter.cooling_down
        assert not limiter.try_acquire()
        clock.advance(3.0)
        assert not limiter.cooling_down
        assert limiter.try_acquire()

    def test_refused_calls_do_not_consume_budget(self, clock):
        """Test a refusal during cooldown leaves the window untouched."""
        limiter = RateLimiter(max_calls=2, cooldown=1.0, clock=clock)
        limiter.penalize()
        limiter.try_acquire()
        clock.advance(1.0)
        assert limiter.remaining() == 2

    def test_negative_budget_rejected(self):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            RateLimiter(max_calls=-1)
