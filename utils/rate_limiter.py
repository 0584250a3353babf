"""
Simple in-memory rate limiter for Discord interactions.

This is not meant to be a perfect security boundary (restarts reset state),
but it stops a single member from flooding /bet.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter:
    """
    Sliding window limiter: allow ``limit`` hits per ``per_seconds`` per
    (scope, guild, user).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[tuple[str, int, int], list[float]] = {}

    def check(self, *, scope: str, guild_id: int, user_id: int, limit: int, per_seconds: int) -> RateLimitResult:
        now = self._clock()
        key = (scope, guild_id, user_id)
        hits = [t for t in self._hits.get(key, []) if t > now - per_seconds]

        if len(hits) >= limit:
            self._hits[key] = hits
            retry_after = int(max(0.0, (hits[0] + per_seconds) - now) + 0.999)
            return RateLimitResult(allowed=False, retry_after_seconds=retry_after)

        hits.append(now)
        self._hits[key] = hits
        return RateLimitResult(allowed=True)

    def reset(self, scope: str | None = None) -> None:
        """Forget recorded hits, for one scope or all of them."""
        if scope is None:
            self._hits.clear()
            return
        for key in [k for k in self._hits if k[0] == scope]:
            del self._hits[key]


GLOBAL_RATE_LIMITER = RateLimiter()
