"""Request body and timestamp helpers shared by the JSON views."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flask import request

from .errors import ValidationError
from .store import is_document_id


def json_object() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def require_str(body: dict[str, Any], name: str, detail: str | None = None) -> str:
    value = body.get(name)
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(detail or f"Missing {name}", invalid_params=[{"name": name, "reason": "required"}])
    return text


def require_id(body: dict[str, Any], name: str, detail: str | None = None) -> str:
    """Like ``require_str`` but the value must also be a single document id."""
    value = require_str(body, name, detail)
    if not is_document_id(value):
        raise ValidationError(f"Invalid {name}", invalid_params=[{"name": name, "reason": "document_id"}])
    return value


def to_iso(value: Any) -> str | None:
    """Render a stored timestamp (datetime or string) as ISO-8601, else None."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, str) and value:
        return value
    return None


def parse_iso(value: str) -> datetime | None:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["json_object", "require_str", "require_id", "to_iso", "parse_iso", "utcnow"]
