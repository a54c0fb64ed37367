"""Typed RateLimiter Protocol (allow/retry_after) with an env-selected backend.

RATE_LIMIT_BACKEND picks ``noop`` (default), ``memory`` (single process, tests)
or ``redis`` (shared fixed windows via REDIS_URL).
"""
from __future__ import annotations

import logging
import os
import threading
import time
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)


class RateLimitError(Exception):
    """Raised when a request exceeds the configured rate limit.

    Attributes:
        retry_after: Seconds until next permitted attempt.
        limit: Optional symbolic limit name.
    """

    def __init__(self, message: str, retry_after: int, limit: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit


@runtime_checkable
class RateLimiter(Protocol):
    def allow(self, key: str, quota: int, per_seconds: int) -> bool: ...  # pragma: no cover
    def retry_after(self, key: str, per_seconds: int) -> int: ...  # pragma: no cover


def window_start(epoch: float | None = None, size: int = 60) -> int:
    """Return the epoch second representing the window bucket start."""
    e = int(epoch if epoch is not None else time.time())
    return e - (e % size)


class NoopRateLimiter:
    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        return True

    def retry_after(self, key: str, per_seconds: int) -> int:
        return 0


class MemoryRateLimiter:
    """In-process fixed-window limiter. Not shared across workers."""

    def __init__(self) -> None:
        # key -> (window_start, count)
        self._buckets: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        ws = window_start(size=per_seconds)
        with self._lock:
            cur = self._buckets.get(key)
            count = 1 if cur is None or cur[0] != ws else cur[1] + 1
            self._buckets[key] = (ws, count)
        return count <= quota

    def retry_after(self, key: str, per_seconds: int) -> int:
        cur = self._buckets.get(key)
        if not cur:
            return 0
        end = cur[0] + per_seconds
        return max(0, end - int(time.time()))


_instance: RateLimiter | None = None


def _build() -> RateLimiter:
    backend = os.getenv("RATE_LIMIT_BACKEND", "noop").strip().lower() or "noop"
    if backend == "memory":
        return MemoryRateLimiter()
    if backend == "redis":
        from .rate_limiter_redis import RedisRateLimiter  # keeps redis off the import path for other backends

        url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        try:
            return RedisRateLimiter(url, os.getenv("RATE_LIMIT_PREFIX", "kalika:rl:"))
        except Exception:
            log.warning("redis rate limiter unavailable at %s; falling back to noop", url, exc_info=True)
    return NoopRateLimiter()


def get_rate_limiter() -> RateLimiter:
    global _instance
    if _instance is None:
        _instance = _build()
    return _instance


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Install a limiter explicitly; ``None`` rebuilds from env on next use."""
    global _instance
    _instance = limiter


__all__ = [
    "RateLimiter",
    "RateLimitError",
    "NoopRateLimiter",
    "MemoryRateLimiter",
    "get_rate_limiter",
    "set_rate_limiter",
    "window_start",
]
