"""
In-memory fixed-window rate limiting per client IP.

Two limiters exist: a general one for the API and a stricter one for login.
Both are exposed as FastAPI dependencies; `cleanup_rate_limits` evicts
expired windows and runs periodically from the application lifespan.
"""

import math
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from vaisu.core.config import settings
from vaisu.core.exceptions import ApiError
from vaisu.core.logging import get_logger

logger = get_logger()


@dataclass
class Window:
    count: int
    reset_time: float


class FixedWindowRateLimiter:
    def __init__(self, window_seconds: float, max_requests: int, message: str):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.message = message
        self._windows: dict[str, Window] = {}

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Count one request for `key`.

        Returns:
            None when allowed, otherwise the seconds until the window resets
        """
        now = time.time() if now is None else now
        window = self._windows.get(key)

        if window is None or now > window.reset_time:
            self._windows[key] = Window(count=1, reset_time=now + self.window_seconds)
            return None
        if window.count >= self.max_requests:
            return math.ceil(window.reset_time - now)
        window.count += 1
        return None

    def cleanup(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        expired = [key for key, window in self._windows.items() if now > window.reset_time]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


general_limiter = FixedWindowRateLimiter(
    settings.rate_limit_window_seconds,
    settings.rate_limit_max_requests,
    "Too many requests",
)
login_limiter = FixedWindowRateLimiter(
    settings.rate_limit_window_seconds,
    settings.login_rate_limit_max_requests,
    "Too many login attempts",
)


def _enforce(limiter: FixedWindowRateLimiter, request: Request) -> None:
    ip = request.client.host if request.client else "unknown"
    retry_after = limiter.hit(ip)
    if retry_after is not None:
        logger.warning(f"Rate limit hit for {ip} on {request.url.path} ({limiter.message})")
        raise ApiError(429, limiter.message, retryAfter=retry_after)


async def rate_limit(request: Request) -> None:
    _enforce(general_limiter, request)


async def login_rate_limit(request: Request) -> None:
    _enforce(login_limiter, request)


def cleanup_rate_limits() -> int:
    """Evict expired windows of both limiters; returns how many were removed."""
    removed = general_limiter.cleanup() + login_limiter.cleanup()
    if removed:
        logger.debug(f"Evicted {removed} expired rate limit windows")
    return removed
