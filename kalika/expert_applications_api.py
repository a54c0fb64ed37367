from __future__ import annotations

from flask import Blueprint, request

from .api_types import DeleteApplicationResponse, ReviewResponse
from .app_authz import current_principal, requires
from .review_service import ReviewRequest, ReviewService
from .roles import IS_ADMIN
from .services import get_services

bp = Blueprint("expert_applications", __name__, url_prefix="/api/admin/expert-applications")


def _service() -> ReviewService:
    svc = get_services()
    return ReviewService(svc.store, svc.notifier)


@bp.post("/review")
@requires(IS_ADMIN)
def review_application() -> ReviewResponse:
    req = ReviewRequest.from_payload(request.get_json(silent=True))
    result = _service().review(current_principal(), req)
    return result.to_dict()  # type: ignore[return-value]


@bp.post("/delete")
@requires(IS_ADMIN)
def delete_application() -> DeleteApplicationResponse:
    body = request.get_json(silent=True) or {}
    application_id = body.get("applicationId") if isinstance(body, dict) else None
    status = _service().delete_application(current_principal(), application_id)
    return {"ok": True, "applicationId": application_id.strip(), "status": status}
