from __future__ import annotations

from typing import Any

from flask import Blueprint

from .logging_setup import LOG_BUFFER

bp = Blueprint("health_api", __name__)


@bp.get("/healthz")
def healthz() -> tuple[dict[str, Any], int]:
    # Liveness only; does not touch Firebase
    return {"status": "ok", "recent_warnings": len(LOG_BUFFER)}, 200
