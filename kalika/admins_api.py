"""Admin account administration.

Admins are identity-provider accounts carrying the ``admin`` (and optionally
``superadmin``) custom claim plus a profile document under ``admins/{uid}``.
"""
from __future__ import annotations

import logging

from flask import Blueprint, current_app

from .api_types import CreateAdminResponse, DeleteAdminResponse, UpdateNameResponse
from .app_authz import current_principal, require_capability, requires
from .audit_events import record_audit_event
from .errors import DomainError, NotFound, ValidationError
from .payload import json_object, require_id, utcnow
from .roles import IS_ADMIN, IS_SUPERADMIN, AdminRole, claims_for_admin_role
from .services import get_services
from .store import SERVER_TIMESTAMP, DocumentMissing, admin_path

log = logging.getLogger(__name__)

bp = Blueprint("admin_accounts", __name__, url_prefix="/api/admin")

MAX_DISPLAY_NAME = 60


@bp.post("/create-admin")
@requires(IS_ADMIN)
def create_admin() -> CreateAdminResponse:
    body = json_object()
    email = str(body.get("email") or "").strip()
    password = str(body.get("password") or "")
    if not email or not password:
        raise ValidationError(
            "Email and password required",
            invalid_params=[{"name": n, "reason": "required"} for n, v in (("email", email), ("password", password)) if not v],
        )
    requested: AdminRole = "superadmin" if body.get("role") == "superadmin" else "admin"
    principal = current_principal()
    if requested == "superadmin":
        require_capability(principal, IS_SUPERADMIN)
    display_name = str(body.get("displayName") or "").strip() or "Admin"
    avatar = current_app.config["DEFAULT_ADMIN_AVATAR"]

    svc = get_services()
    uid = svc.identity.create_user(email, password, display_name, photo_url=avatar)
    svc.identity.set_custom_claims(uid, claims_for_admin_role(requested))
    svc.store.set(
        admin_path(uid),
        {
            "uid": uid,
            "email": email,
            "displayName": display_name,
            "role": requested,
            "photoURL": avatar,
            "disabled": False,
            "createdAt": utcnow(),
            "createdBy": principal.uid,
        },
    )
    log.info("admin %s (%s) created by %s", uid, requested, principal.uid)
    record_audit_event("admin_created", actor_uid=principal.uid, uid=uid, role=requested)
    return {"ok": True, "uid": uid, "role": requested}


@bp.post("/delete-admin")
@requires(IS_SUPERADMIN)
def delete_admin() -> DeleteAdminResponse:
    body = json_object()
    uid = require_id(body, "uid", "Invalid payload. Expected { uid }")
    principal = current_principal()
    if uid == principal.uid:
        raise ValidationError("You cannot delete your own account.", invalid_params=[{"name": "uid", "reason": "self"}])
    svc = get_services()
    if svc.identity.get_claims(uid).get("superadmin"):
        raise ValidationError("You cannot delete a superadmin.", invalid_params=[{"name": "uid", "reason": "superadmin"}])

    # two independent systems: attempt both, report what failed
    errors: list[str] = []
    identity_deleted = profile_deleted = False
    try:
        svc.identity.delete_user(uid)
        identity_deleted = True
    except DomainError as e:
        errors.append(f"identity: {e.detail}")
    try:
        svc.store.delete(admin_path(uid))
        profile_deleted = True
    except Exception as e:
        log.warning("admin profile %s delete failed", uid, exc_info=True)
        errors.append(f"profile: {type(e).__name__}")
    record_audit_event("admin_deleted", actor_uid=principal.uid, uid=uid, errors=errors or None)
    resp: DeleteAdminResponse = {
        "ok": True,
        "uid": uid,
        "identityDeleted": identity_deleted,
        "profileDeleted": profile_deleted,
    }
    if errors:
        resp["errors"] = errors
    return resp


@bp.post("/profile/update-name")
@requires(IS_ADMIN)
def update_name() -> UpdateNameResponse:
    body = json_object()
    display_name = str(body.get("displayName") or "").strip()
    if not display_name:
        raise ValidationError("Display name is required", invalid_params=[{"name": "displayName", "reason": "required"}])
    if len(display_name) > MAX_DISPLAY_NAME:
        raise ValidationError("Display name is too long", invalid_params=[{"name": "displayName", "reason": "max_length"}])
    uid = current_principal().uid
    svc = get_services()
    try:
        svc.store.update(admin_path(uid), {"displayName": display_name, "updatedAt": SERVER_TIMESTAMP})
    except DocumentMissing as e:
        raise NotFound("admin", "Admin not found") from e
    svc.identity.update_user(uid, display_name=display_name)
    return {"ok": True, "displayName": display_name}
