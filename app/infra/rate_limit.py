"""Per-client fixed-window rate limiter (in-memory)."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response

from app.infra.config import settings
from app.infra.errors import ApiError


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


class FixedWindowRateLimiter:
    """Counts requests per client key in fixed windows.

    A window starts on the first request after the previous one expired and
    is replaced wholesale, never merged. No locking: all callers run on the
    same event loop and ``hit`` never awaits.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = RateLimitWindow(count=0, reset_at=now + self.window_seconds)
            self._windows[key] = window

        window.count += 1
        return RateLimitDecision(
            allowed=window.count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - window.count, 0),
            reset_at=window.reset_at,
        )

    def now(self) -> float:
        return self._clock()

    def reset(self) -> None:
        self._windows.clear()


def client_key(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


spotify_rate_limiter = FixedWindowRateLimiter(
    max_requests=settings.rate_limit_max_requests,
    window_seconds=settings.rate_limit_window_seconds,
)


async def enforce_spotify_rate_limit(request: Request, response: Response) -> None:
    """Dependency for the /spotify routes: counts the hit and sets X-RateLimit-* headers."""
    decision = spotify_rate_limiter.hit(client_key(request))
    headers = decision.headers()
    # Error handlers copy these onto responses built from a raised ApiError
    request.state.rate_limit_headers = headers
    if not decision.allowed:
        retry_after = max(math.ceil(decision.reset_at - spotify_rate_limiter.now()), 1)
        headers["Retry-After"] = str(retry_after)
        raise ApiError(429, "rate_limited", headers=headers)
    response.headers.update(headers)
