"""Shared RFC7807 problem+json helpers for consistent error responses."""
from __future__ import annotations

import uuid

from flask import g, jsonify
from werkzeug.wrappers.response import Response

_BASE_TYPE_PREFIX = "https://kalikascan.app/errors/"


def problem(status: int, type_: str, title: str, detail: str, **extra: object) -> Response:
    payload = {
        "type": type_,
        "title": title,
        "status": status,
        "detail": detail,
    }
    rid = getattr(g, "request_id", None)
    if rid:
        payload["request_id"] = rid
    for k, v in extra.items():
        if v is not None:
            payload[k] = v
    resp = jsonify(payload)
    resp.status_code = status
    resp.mimetype = "application/problem+json"
    if rid and "X-Request-Id" not in resp.headers:
        resp.headers["X-Request-Id"] = rid
    return resp


def _ptype(slug: str) -> str:
    return _BASE_TYPE_PREFIX + slug


def _std(status: int, slug: str, title: str, detail: str | None = None, **extra: object) -> Response:
    d = detail if detail is not None else slug
    # reason defaults to the slug so clients can branch without parsing detail
    extra.setdefault("reason", slug)
    return problem(status, _ptype(str(extra["reason"])), title, d, **extra)


def bad_request(detail: str = "bad_request", **extra: object) -> Response:
    extra.setdefault("reason", "bad_request")
    return _std(400, "bad_request", "Bad Request", detail, **extra)


def unauthorized(detail: str = "unauthenticated", www_auth: str | None = "Bearer", **extra: object) -> Response:
    resp = _std(401, "unauthenticated", "Unauthorized", detail, **extra)
    if www_auth:
        resp.headers["WWW-Authenticate"] = www_auth
    return resp


def forbidden(detail: str = "forbidden", **extra: object) -> Response:
    return _std(403, "forbidden", "Forbidden", detail, **extra)


def not_found(detail: str = "not_found", **extra: object) -> Response:
    return _std(404, "not_found", "Not Found", detail, **extra)


def conflict(detail: str = "conflict", **extra: object) -> Response:
    return _std(409, "conflict", "Conflict", detail, **extra)


def too_many_requests(detail: str = "rate_limited", retry_after: int | None = None, **extra: object) -> Response:
    resp = _std(429, "rate_limited", "Too Many Requests", detail, retry_after=retry_after, **extra)
    if retry_after is not None:
        resp.headers["Retry-After"] = str(int(retry_after))
    return resp


def internal_server_error(detail: str = "internal_error", incident_id: str | None = None, **extra: object) -> Response:
    if not incident_id:
        incident_id = str(uuid.uuid4())
    return _std(500, "internal_error", "Internal Server Error", detail, incident_id=incident_id, **extra)


__all__ = [
    "problem",
    "bad_request",
    "unauthorized",
    "forbidden",
    "not_found",
    "conflict",
    "too_many_requests",
    "internal_server_error",
]
