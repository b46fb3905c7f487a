"""Tests for the sliding-window rate limiter."""

import pytest

from conclave.config import WEBHOOK_KINDS
from conclave.webhooks.ratelimit import (
    RATE_LIMITS,
    SlidingWindowRateLimiter,
    build_rate_limiters,
)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindow:
    def test_allows_up_to_max(self):
        limiter = SlidingWindowRateLimiter(60, 3, clock=FakeClock())
        assert all(limiter.allow("1.2.3.4").allowed for _ in range(3))

    def test_rejects_m_plus_one_with_retry_after(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(60, 3, clock=clock)
        for _ in range(3):
            limiter.allow("ip")
            clock.advance(5)
        decision = limiter.allow("ip")
        assert not decision.allowed
        # Oldest hit was 15s ago; it leaves the window in 45s.
        assert decision.retry_after == 45

    def test_accepts_again_after_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(60, 2, clock=clock)
        limiter.allow("ip")
        limiter.allow("ip")
        assert not limiter.allow("ip").allowed
        clock.advance(60)
        assert limiter.allow("ip").allowed

    def test_rejected_requests_do_not_extend_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(10, 1, clock=clock)
        limiter.allow("ip")
        for _ in range(5):
            clock.advance(1)
            assert not limiter.allow("ip").allowed
        clock.advance(5)
        assert limiter.allow("ip").allowed

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(60, 1, clock=FakeClock())
        assert limiter.allow("a").allowed
        assert not limiter.allow("a").allowed
        assert limiter.allow("b").allowed

    def test_retry_after_at_least_one(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(10, 1, clock=clock)
        limiter.allow("ip")
        clock.advance(9.9)
        assert limiter.allow("ip").retry_after == 1

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(0, 5)
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(60, 0)


class TestConfiguredLimits:
    def test_one_limiter_per_kind(self):
        limiters = build_rate_limiters()
        assert set(limiters) == set(WEBHOOK_KINDS)

    @pytest.mark.parametrize(
        ("kind", "minutes", "maximum"),
        [
            ("contact", 15, 5),
            ("appeals", 60, 3),
            ("submissions", 15, 10),
            ("complaints", 30, 5),
            ("applications", 30, 2),
        ],
    )
    def test_limits(self, kind: str, minutes: int, maximum: int):
        rule = RATE_LIMITS[kind]
        assert rule.window_seconds == minutes * 60
        assert rule.max_requests == maximum

    def test_appeals_limit_enforced(self):
        clock = FakeClock()
        limiter = build_rate_limiters(clock=clock)["appeals"]
        for _ in range(3):
            assert limiter.allow("ip").allowed
        decision = limiter.allow("ip")
        assert not decision.allowed
        assert decision.retry_after == 3600
