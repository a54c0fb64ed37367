"""Domain error system + RFC7807 handler registration.

Every failure the API reports is a ``DomainError`` carrying an HTTP status and a
machine-readable ``reason``. Handlers below turn them into problem+json bodies;
anything else becomes a 500 with an incident id that is only logged server side.
"""
from __future__ import annotations

import logging
import traceback
import uuid
from collections.abc import Callable
from typing import Any

from flask import request
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from .audit_events import record_audit_event
from .http_errors import (
    bad_request,
    conflict,
    forbidden,
    internal_server_error,
    not_found,
    problem,
    too_many_requests,
    unauthorized,
)
from .rate_limiter import RateLimitError

log = logging.getLogger(__name__)


class DomainError(Exception):
    status = 400
    reason = "bad_request"

    def __init__(self, detail: str | None = None, **extra: Any):
        self.detail = detail or self.reason
        self.extra = extra
        super().__init__(self.detail)


class Unauthenticated(DomainError):
    status = 401
    reason = "unauthenticated"

    def __init__(self, detail: str = "Missing or invalid credential"):
        super().__init__(detail)


class Forbidden(DomainError):
    status = 403
    reason = "forbidden"

    def __init__(self, detail: str = "Forbidden", required: str | None = None):
        super().__init__(detail, required_capability=required)
        self.required = required


class ValidationError(DomainError):
    status = 400
    reason = "validation_error"

    def __init__(self, detail: str = "Invalid request", invalid_params: list[dict[str, str]] | None = None):
        super().__init__(detail, invalid_params=invalid_params)
        self.invalid_params = invalid_params or []


class NotFound(DomainError):
    status = 404
    reason = "not_found"

    def __init__(self, resource: str, detail: str | None = None):
        super().__init__(detail or f"{resource} not found", resource=resource)
        self.resource = resource


class IntegrityMismatch(DomainError):
    status = 400
    reason = "integrity_mismatch"

    def __init__(self, location: str):
        super().__init__(f"Applicant id mismatch ({location} application)", location=location)
        self.location = location


class AlreadyReviewed(DomainError):
    status = 400
    reason = "already_reviewed"

    def __init__(self, current_status: str):
        super().__init__(f"Already reviewed ({current_status})", current_status=current_status)
        self.current_status = current_status


class InvalidState(DomainError):
    status = 400
    reason = "invalid_state"

    def __init__(self, detail: str, current_status: str | None = None):
        super().__init__(detail, current_status=current_status)
        self.current_status = current_status


_STATUS_HELPERS: dict[int, Callable[..., Response]] = {
    400: bad_request,
    401: unauthorized,
    403: forbidden,
    404: not_found,
    409: conflict,
}


def _emit_problem(resp: Response) -> None:
    payload = resp.get_json(silent=True) or {}
    record_audit_event(
        "problem_response",
        reason=payload.get("reason"),
        status=payload.get("status"),
        path=request.path,
    )


def register_error_handlers(app: Any) -> None:
    @app.errorhandler(DomainError)
    def _h_domain(err: DomainError) -> Response:
        helper = _STATUS_HELPERS.get(err.status, bad_request)
        resp = helper(detail=err.detail, reason=err.reason, **err.extra)
        _emit_problem(resp)
        return resp

    @app.errorhandler(RateLimitError)
    def _h_rate_limit(ex: RateLimitError) -> Response:
        resp = too_many_requests(detail="rate_limited", retry_after=ex.retry_after, limit=ex.limit)
        _emit_problem(resp)
        return resp

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException) -> Response:
        status = ex.code or 500
        helper = _STATUS_HELPERS.get(status)
        if helper:
            resp = helper(detail=ex.description)
        elif status >= 500:
            resp = internal_server_error()
        else:
            slug = (ex.name or "error").lower().replace(" ", "_")
            resp = problem(status, "about:blank", ex.name or "Error", str(ex.description), reason=slug)
        _emit_problem(resp)
        return resp

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception) -> Response:
        incident_id = str(uuid.uuid4())
        log.error("Unhandled exception incident_id=%s path=%s\n%s", incident_id, request.path, traceback.format_exc())
        resp = internal_server_error(incident_id=incident_id)
        record_audit_event("incident", incident_id=incident_id, path=request.path)
        _emit_problem(resp)
        return resp


__all__ = [
    "DomainError",
    "Unauthenticated",
    "Forbidden",
    "ValidationError",
    "NotFound",
    "IntegrityMismatch",
    "AlreadyReviewed",
    "InvalidState",
    "register_error_handlers",
]
