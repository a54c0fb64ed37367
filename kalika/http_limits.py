"""HTTP rate limiting decorator.

Add @limit to a view to enforce fixed-window quotas. Place it *below* the
auth decorator so the default key can use the verified caller.
"""
from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g, request

from .metrics import increment as metrics_increment
from .rate_limiter import RateLimitError, get_rate_limiter

LimiterKeyFunc = Callable[[], str]


def _default_key() -> str:
    principal = getattr(g, "principal", None)
    if principal is not None:
        return f"uid:{principal.uid}"
    return f"ip:{request.remote_addr or 'unknown'}"


def limit(
    name: str,
    *,
    quota: int | None = None,
    per_seconds: int | None = None,
    quota_config_key: str | None = None,
    per_seconds_config_key: str | None = None,
    key_func: LimiterKeyFunc = _default_key,
):
    """Enforce ``quota`` calls per ``per_seconds`` window for ``name``.

    Explicit numbers win; otherwise the values are read from app config keys,
    falling back to 5 per 60s.
    """

    def decorator(fn: Callable[..., Any]):
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any):
            q = quota
            p = per_seconds
            if q is None and quota_config_key:
                q = current_app.config.get(quota_config_key)
            if p is None and per_seconds_config_key:
                p = current_app.config.get(per_seconds_config_key)
            q = max(1, int(q or 5))
            p = max(1, int(p or 60))
            logical_key = f"{name}:{key_func()}"
            rl = get_rate_limiter()
            allowed = rl.allow(logical_key, quota=q, per_seconds=p)
            metrics_increment(
                "rate_limit.hit",
                {"name": name, "outcome": "allow" if allowed else "block", "window": str(p)},
            )
            if not allowed:
                raise RateLimitError(
                    f"Rate limit exceeded for {name}",
                    retry_after=rl.retry_after(logical_key, per_seconds=p),
                    limit=name,
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator


__all__ = ["limit"]
