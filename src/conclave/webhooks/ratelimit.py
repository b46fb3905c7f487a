"""Sliding-window rate limiting for the public form endpoints.

The in-process limiter is only correct for a single worker: each process
keeps its own counters. Anything that needs a shared view (several uvicorn
workers, several hosts) should implement ``RateLimiter`` over a key-value
store with expiry.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

# Guard against unbounded growth from spoofed forwarding headers.
_MAX_TRACKED_KEYS = 10_000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int


class RateLimiter(Protocol):
    def allow(self, key: str) -> RateLimitDecision: ...


# kind → (window, max requests per client IP)
RATE_LIMITS: dict[str, RateLimitRule] = {
    "contact": RateLimitRule(window_seconds=15 * 60, max_requests=5),
    "appeals": RateLimitRule(window_seconds=60 * 60, max_requests=3),
    "submissions": RateLimitRule(window_seconds=15 * 60, max_requests=10),
    "complaints": RateLimitRule(window_seconds=30 * 60, max_requests=5),
    "applications": RateLimitRule(window_seconds=30 * 60, max_requests=2),
}


class SlidingWindowRateLimiter:
    """Per-key timestamp log trimmed to the trailing window.

    Not locked: under concurrent requests the worst case is admitting one
    or two extra requests, never corrupting a bucket.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0 or max_requests <= 0:
            msg = "window_seconds and max_requests must be positive"
            raise ValueError(msg)
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._hits: dict[str, list[float]] = {}

    @classmethod
    def from_rule(
        cls, rule: RateLimitRule, clock: Callable[[], float] = time.monotonic
    ) -> SlidingWindowRateLimiter:
        return cls(rule.window_seconds, rule.max_requests, clock=clock)

    def allow(self, key: str) -> RateLimitDecision:
        now = self._clock()
        if len(self._hits) > _MAX_TRACKED_KEYS:
            self._hits.clear()

        recent = [t for t in self._hits.get(key, []) if now - t < self.window_seconds]
        if len(recent) >= self.max_requests:
            self._hits[key] = recent
            retry_after = math.ceil(recent[0] + self.window_seconds - now)
            return RateLimitDecision(allowed=False, retry_after=max(1, retry_after))

        recent.append(now)
        self._hits[key] = recent
        return RateLimitDecision(allowed=True)


def build_rate_limiters(
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, SlidingWindowRateLimiter]:
    """One independent limiter per notification kind."""
    return {
        kind: SlidingWindowRateLimiter.from_rule(rule, clock=clock)
        for kind, rule in RATE_LIMITS.items()
    }
