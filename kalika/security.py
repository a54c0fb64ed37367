"""Security middleware: response hardening headers and a CORS allow-list.

The API authenticates with bearer tokens only (no cookies), so there is no
CSRF layer and CORS never allows credentials.
Preflight requests are answered by Flask's automatic OPTIONS handling; the
after-request hook adds the CORS headers to them like any other response.
"""

from __future__ import annotations

from flask import Flask, request


def _apply_cors(app: Flask, resp):
    allowed: list[str] = app.config.get("CORS_ALLOWED_ORIGINS", []) or []
    origin = request.headers.get("Origin")
    if not allowed or not origin:
        return resp
    if origin in allowed or "*" in allowed:
        resp.headers.setdefault("Vary", "Origin")
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = (
            request.headers.get("Access-Control-Request-Headers") or "Authorization, Content-Type"
        )
        resp.headers["Access-Control-Max-Age"] = "600"
    return resp


def init_security(app: Flask) -> Flask:
    @app.after_request
    def _security_after_request(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if not app.config.get("TESTING") and not app.config.get("DEBUG"):
            resp.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
        return _apply_cors(app, resp)

    return app


__all__ = ["init_security"]
