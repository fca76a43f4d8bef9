"""Fixed-window request rate limiting keyed by client address."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from .errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


@dataclass(frozen=True, slots=True)
class RateLimitStatus:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


class FixedWindowRateLimiter:
    """Count hits per key inside consecutive windows of ``window_seconds``."""

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def hit(self, key: str) -> RateLimitStatus:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now, count=0)
            self._windows[key] = window
            self._sweep(now)
        window.count += 1
        reset = max(0, math.ceil(window.started_at + self.window_seconds - now))
        return RateLimitStatus(
            allowed=window.count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - window.count),
            reset_seconds=reset,
        )

    def _sweep(self, now: float) -> None:
        stale = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in stale:
            del self._windows[key]


def client_key(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def rate_limit_headers(status: RateLimitStatus) -> dict[str, str]:
    return {
        "RateLimit-Limit": str(status.limit),
        "RateLimit-Remaining": str(status.remaining),
        "RateLimit-Reset": str(status.reset_seconds),
    }


async def enforce_search_limit(request: Request) -> None:
    """Router dependency applying the stricter search window."""

    limiter: FixedWindowRateLimiter = request.app.state.context.search_limiter
    status = limiter.hit(client_key(request))
    if not status.allowed:
        logger.warning("Search rate limit exceeded for %s", client_key(request))
        raise RateLimitError()
