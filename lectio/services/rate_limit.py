"""Fixed-window in-memory rate limiter."""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from lectio.utils.logging import get_logger

LOG = get_logger("lectio.rate_limit")


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }


class FixedWindowRateLimiter:
    """Counts hits per key in windows of ``window_seconds``.

    Expired windows are pruned at most once per window length.
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Optional[Callable[[], float]] = None):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._next_prune = 0.0

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            if now >= self._next_prune:
                self._prune(now)
            window = self._windows.get(key)
            if window is None or window.reset_at < now:
                window = _Window(count=1, reset_at=now + self.window_seconds)
                self._windows[key] = window
            else:
                window.count += 1
            count, reset_at = window.count, window.reset_at
        allowed = count <= self.max_requests
        if not allowed:
            LOG.debug("rate limit exceeded key=%s count=%s", key, count)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at,
        )

    def _prune(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if w.reset_at < now]
        for k in expired:
            del self._windows[k]
        self._next_prune = now + self.window_seconds

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()
            self._next_prune = 0.0


def client_key(headers, remote_addr: Optional[str], path: str) -> str:
    """``<ip>:<path>`` using the first X-Forwarded-For hop, then X-Real-IP."""
    forwarded = (headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    ip = forwarded or (headers.get("X-Real-IP") or "").strip() or remote_addr or "unknown"
    return f"{ip}:{path}"


__all__ = ["FixedWindowRateLimiter", "RateLimitDecision", "client_key"]
