"""Lightweight audit event recorder for security-sensitive actions.

Stores events in a bounded in-memory list (process local) and mirrors each one
to the ``kalika.audit`` logger so they reach whatever sink the deployment ships
logs to.
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any

log = logging.getLogger("kalika.audit")

_AUDIT_BUFFER: list[dict[str, Any]] = []
_MAX_BUFFER = 500


@dataclass
class AuditEvent:
    ts: int
    action: str
    actor_uid: str | None = None
    meta: dict[str, Any] | None = None


def record_audit_event(action: str, actor_uid: str | None = None, **meta: Any) -> AuditEvent:
    ev = AuditEvent(int(time.time()), action, actor_uid, meta or None)
    if len(_AUDIT_BUFFER) >= _MAX_BUFFER:
        del _AUDIT_BUFFER[0: max(50, _MAX_BUFFER // 10)]  # drop oldest slice
    _AUDIT_BUFFER.append(asdict(ev))
    log.info("audit action=%s actor=%s meta=%s", action, actor_uid or "-", meta)
    return ev


def list_audit_events(action: str | None = None) -> list[dict[str, Any]]:
    if action is None:
        return list(_AUDIT_BUFFER)
    return [e for e in _AUDIT_BUFFER if e["action"] == action]


def clear_audit_events() -> None:
    _AUDIT_BUFFER.clear()


__all__ = ["AuditEvent", "record_audit_event", "list_audit_events", "clear_audit_events"]
