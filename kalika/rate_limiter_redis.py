"""Fixed-window limiter on Redis INCR+EXPIRE, shared across gunicorn workers."""
from __future__ import annotations

import redis

from .rate_limiter import window_start


class RedisRateLimiter:
    def __init__(self, url: str, prefix: str) -> None:
        self._client = redis.Redis.from_url(url, decode_responses=False)
        self._client.ping()
        self._prefix = prefix

    def _key(self, logical_key: str, per_seconds: int) -> str:
        ws = window_start(size=per_seconds)
        return f"{self._prefix}{logical_key}:{ws}:{per_seconds}"

    def allow(self, key: str, quota: int, per_seconds: int) -> bool:
        rk = self._key(key, per_seconds)
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(rk, 1)
        pipe.ttl(rk)
        count, ttl = pipe.execute()
        if int(count) == 1 or int(ttl) < 0:
            self._client.expire(rk, per_seconds)
        return int(count) <= quota

    def retry_after(self, key: str, per_seconds: int) -> int:
        ttl = self._client.ttl(self._key(key, per_seconds))
        if ttl is None or ttl < 0:
            return per_seconds
        return int(ttl)


__all__ = ["RedisRateLimiter"]
