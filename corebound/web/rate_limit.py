"""Fixed-window, in-memory rate limiting.

Counts are per process. Behind several workers each one limits on its own,
which is enough to blunt a single abusive client.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60


@dataclass
class RateLimitResult:
    limited: bool
    remaining: int
    retry_after_ms: Optional[int] = None


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window limiter keyed by arbitrary strings (IP, user, route+user).

    Example:
        >>> limiter = RateLimiter()
        >>> limiter.check("contact:203.0.113.9", limit=3, window_seconds=300).remaining
        2
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.windows: Dict[str, _Window] = {}
        self.last_cleanup = clock()

    def _cleanup(self, now: float):
        if now - self.last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self.last_cleanup = now
        for key in [k for k, w in self.windows.items() if now > w.reset_at]:
            del self.windows[key]

    def check(self, key: str, limit: int, window_seconds: float) -> RateLimitResult:
        """Count one request against key.

        Args:
            key: Bucket identifier
            limit: Requests allowed per window
            window_seconds: Window length

        Returns:
            RateLimitResult; retry_after_ms is set only when limited
        """
        now = self.clock()
        self._cleanup(now)

        window = self.windows.get(key)
        if window is None or now > window.reset_at:
            self.windows[key] = _Window(count=1, reset_at=now + window_seconds)
            return RateLimitResult(limited=False, remaining=limit - 1)

        window.count += 1
        if window.count > limit:
            retry_after_ms = int((window.reset_at - now) * 1000)
            logger.warning(f"Rate limit hit for {key} (retry in {retry_after_ms}ms)")
            return RateLimitResult(limited=True, remaining=0, retry_after_ms=retry_after_ms)

        return RateLimitResult(limited=False, remaining=limit - window.count)


def client_ip(request: Request) -> str:
    """Best-effort client IP, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
