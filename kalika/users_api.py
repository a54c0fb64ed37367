"""End-user account administration (list, role override, ban, delete)."""
from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint

from .api_types import OkBase, UserListResponse, UserView
from .app_authz import current_principal, requires
from .audit_events import record_audit_event
from .errors import ValidationError
from .payload import json_object, require_id, to_iso
from .roles import IS_ADMIN, USER_ROLES, normalize_user_role
from .services import get_services
from .store import SERVER_TIMESTAMP, USERS, user_path

log = logging.getLogger(__name__)

bp = Blueprint("admin_users", __name__, url_prefix="/api/admin/users")


def user_view(doc_id: str, data: dict[str, Any]) -> UserView:
    return {
        "uid": data.get("uid") or doc_id,
        "email": data.get("email"),
        "displayName": data.get("displayName"),
        "username": data.get("username"),
        "photoURL": data.get("photoURL"),
        "imageUrl": data.get("imageUrl"),
        "role": normalize_user_role(data.get("role")),
        "isExpert": bool(data.get("isExpert")),
        "banned": bool(data.get("banned")),
        "bannedReason": data.get("bannedReason"),
        "createdAt": to_iso(data.get("createdAt")),
        "lastActiveAt": to_iso(data.get("lastActiveAt")),
        "updatedAt": to_iso(data.get("updatedAt")),
    }


def _target_uid(body: dict[str, Any], self_error: str) -> str:
    uid = require_id(body, "uid", "Missing uid")
    if uid == current_principal().uid:
        raise ValidationError(self_error, invalid_params=[{"name": "uid", "reason": "self"}])
    return uid


@bp.get("/list")
@requires(IS_ADMIN)
def list_users() -> UserListResponse:
    rows = get_services().store.list((USERS,), order_by="createdAt", descending=True)
    return {"users": [user_view(doc_id, data) for doc_id, data in rows]}


@bp.post("/set-role")
@requires(IS_ADMIN)
def set_role() -> OkBase:
    body = json_object()
    uid = _target_uid(body, "You cannot change your own role.")
    role = str(body.get("role") or "")
    if role not in USER_ROLES:
        raise ValidationError("Invalid role", invalid_params=[{"name": "role", "reason": "must be 'regular' or 'expert'"}])
    get_services().store.set(
        user_path(uid),
        {"role": role, "isExpert": role == "expert", "updatedAt": SERVER_TIMESTAMP},
        merge=True,
    )
    record_audit_event("user_role_set", actor_uid=current_principal().uid, uid=uid, role=role)
    return {"ok": True}


@bp.post("/toggle-ban")
@requires(IS_ADMIN)
def toggle_ban() -> OkBase:
    body = json_object()
    uid = _target_uid(body, "You cannot ban yourself.")
    banned = bool(body.get("banned"))
    reason = body.get("bannedReason")
    svc = get_services()
    svc.store.set(
        user_path(uid),
        {
            "banned": banned,
            "bannedReason": reason if banned and isinstance(reason, str) else None,
            "updatedAt": SERVER_TIMESTAMP,
        },
        merge=True,
    )
    # a banned user also loses the ability to sign in
    svc.identity.update_user(uid, disabled=banned)
    record_audit_event("user_ban_toggled", actor_uid=current_principal().uid, uid=uid, banned=banned)
    return {"ok": True}


@bp.post("/delete")
@requires(IS_ADMIN)
def delete_user() -> OkBase:
    body = json_object()
    uid = _target_uid(body, "You cannot delete yourself.")
    svc = get_services()
    # identity first so the account cannot sign in even if the document delete fails;
    # an unknown account is a 404 and the document stays
    svc.identity.delete_user(uid)
    svc.store.delete(user_path(uid))
    log.info("user %s deleted by %s", uid, current_principal().uid)
    record_audit_event("user_deleted", actor_uid=current_principal().uid, uid=uid)
    return {"ok": True}
