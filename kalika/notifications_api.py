from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from flask import Blueprint, jsonify

from .api_types import NotificationSummaryResponse, RelayResponse
from .app_authz import current_principal, require_auth, requires
from .errors import ValidationError
from .http_limits import limit
from .payload import json_object, parse_iso, require_str, utcnow
from .roles import IS_ADMIN
from .services import get_services
from .store import APPLICATIONS, HEALTH_ASSESSMENTS, MAP_SCANS, PLANT_SCANS

log = logging.getLogger(__name__)

bp = Blueprint("notifications", __name__)

# counter key -> (collection, field, marker kind); scan collections stamp
# createdAtLocal as epoch ms on the device, the others use server timestamps
SUMMARY_SOURCES: dict[str, tuple[str, str, str]] = {
    "plant_scans": (PLANT_SCANS, "createdAtLocal", "ms"),
    "map_posts": (MAP_SCANS, "createdAtLocal", "ms"),
    "health_assessments": (HEALTH_ASSESSMENTS, "createdAt", "iso"),
    "expert_applications": (APPLICATIONS, "createdAt", "iso"),
}


def _marker(key: str, kind: str, raw: Any, now: datetime, now_ms: int) -> Any:
    """Resolve one lastSeen entry; absent means "now" so nothing shows as new."""
    if kind == "ms":
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return raw
        return now_ms
    if not raw:
        return now
    parsed = parse_iso(raw) if isinstance(raw, str) else None
    if parsed is None:
        raise ValidationError("Invalid lastSeen timestamp", invalid_params=[{"name": f"lastSeen.{key}", "reason": "iso8601"}])
    return parsed


@bp.post("/api/admin/notifications/summary")
@requires(IS_ADMIN)
def notifications_summary() -> NotificationSummaryResponse:
    body = json_object()
    last_seen = body.get("lastSeen") or {}
    if not isinstance(last_seen, dict):
        raise ValidationError("lastSeen must be an object")
    now = utcnow()
    now_ms = int(now.timestamp() * 1000)
    store = get_services().store
    counts: dict[str, int] = {}
    for key, (collection, field, kind) in SUMMARY_SOURCES.items():
        after = _marker(key, kind, last_seen.get(key), now, now_ms)
        counts[key] = store.count_after((collection,), field, after)
    return {
        "counts": counts,  # type: ignore[typeddict-item]
        "serverNow": {"ms": now_ms, "iso": now.isoformat()},
    }


@bp.post("/api/notify/indie")
@require_auth
@limit("notify_relay", quota_config_key="NOTIFY_RELAY_QUOTA", per_seconds_config_key="NOTIFY_RELAY_PER_SECONDS")
def notify_indie():
    body = json_object()
    to_uid = require_str(body, "toUid", "Missing fields")
    title = require_str(body, "title", "Missing fields")
    message = require_str(body, "message", "Missing fields")
    push_data = body.get("pushData")
    if push_data is not None and not isinstance(push_data, dict):
        raise ValidationError("pushData must be an object", invalid_params=[{"name": "pushData", "reason": "object"}])
    if to_uid == current_principal().uid:
        skipped: RelayResponse = {"ok": True, "skipped": "self"}
        return skipped
    outcome = get_services().notifier.send(to_uid, title, message, push_data)
    log.info("relay push from %s to %s delivered=%s", current_principal().uid, to_uid, outcome.delivered)
    payload: RelayResponse = {"ok": outcome.delivered, "delivered": outcome.delivered, "detail": outcome.detail}
    resp = jsonify(payload)
    resp.status_code = 200 if outcome.delivered else 400
    return resp
