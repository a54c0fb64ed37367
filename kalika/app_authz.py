"""Access guard: bearer credential -> Principal -> capability check.

Every mutating endpoint runs authenticate-then-authorize before touching data.
Failures raise ``Unauthenticated`` / ``Forbidden``; the central handlers in
``errors`` map them to 401 / 403 problem responses.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from flask import g, request

from .errors import Forbidden, Unauthenticated
from .identity import IdentityProvider, Principal
from .services import get_services

P = ParamSpec("P")
R = TypeVar("R")

_BEARER = re.compile(r"^Bearer\s+(\S+)\s*$", re.IGNORECASE)


def bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    m = _BEARER.match(header_value.strip())
    return m.group(1) if m else None


def authenticate(credential: str | None, identity: IdentityProvider | None = None) -> Principal:
    if not credential:
        raise Unauthenticated("Missing token")
    provider = identity or get_services().identity
    return provider.verify(credential)


def require_capability(principal: Principal, capability: str) -> None:
    if not principal.has(capability):
        raise Forbidden(f"Forbidden (requires {capability})", required=capability)


def current_principal() -> Principal:
    principal = getattr(g, "principal", None)
    if principal is None:
        raise Unauthenticated("authentication required")
    return principal


def _authenticate_request() -> Principal:
    credential = bearer_token(request.headers.get("Authorization"))
    principal = authenticate(credential)
    g.principal = principal
    g.credential = credential
    return principal


def require_auth(fn: Callable[P, R]) -> Callable[P, R]:
    """Authenticate only; any verified caller passes."""

    @wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        _authenticate_request()
        return fn(*args, **kwargs)

    return wrapper


def requires(*capabilities: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Authenticate, then demand every listed capability."""

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            principal = _authenticate_request()
            for cap in capabilities:
                require_capability(principal, cap)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "bearer_token",
    "authenticate",
    "require_capability",
    "current_principal",
    "require_auth",
    "requires",
]
