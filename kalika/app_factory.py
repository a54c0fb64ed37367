"""Flask application factory.

Wires configuration, the collaborator container (identity provider, document
store, push notifier), security middleware, blueprints and the problem+json
error handlers. Tests pass their own collaborators through the keyword
arguments so nothing touches Firebase or NativeNotify.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from dotenv import load_dotenv
from flask import Flask, g, request
from werkzeug.wrappers.response import Response

from .admins_api import bp as admins_bp
from .config import Config
from .errors import register_error_handlers
from .expert_applications_api import bp as expert_applications_bp
from .health_api import bp as health_bp
from .identity import FirebaseIdentityProvider, IdentityProvider
from .logging_setup import configure_logging, install_support_log_handler
from .metrics import LoggingMetrics, set_metrics
from .notifications_api import bp as notifications_bp
from .notify import Notifier, build_notifier
from .security import init_security
from .services import Services, init_services
from .store import DocumentStore
from .users_api import bp as users_bp

log = logging.getLogger("kalika.request")


def _build_store(cfg: Config) -> DocumentStore:
    if cfg.store_backend == "memory":
        from .store_memory import MemoryStore

        return MemoryStore()
    if cfg.store_backend != "firestore":
        raise ValueError(f"Unknown STORE_BACKEND: {cfg.store_backend}")
    from .firebase import get_firebase_app
    from .store_firestore import FirestoreStore

    return FirestoreStore(get_firebase_app(cfg))


def _build_identity(cfg: Config) -> IdentityProvider:
    from .firebase import get_firebase_app

    return FirebaseIdentityProvider(get_firebase_app(cfg))


def create_app(
    config_override: dict[str, Any] | None = None,
    *,
    identity: IdentityProvider | None = None,
    store: DocumentStore | None = None,
    notifier: Notifier | None = None,
) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    cfg = Config.from_env()
    if config_override:
        known = {k: v for k, v in config_override.items() if hasattr(cfg, k)}
        if known:
            cfg.override(known)
    app.config.update(cfg.to_flask_dict())
    if config_override:
        for k, v in config_override.items():  # also allow direct Flask config keys
            if k.isupper():
                app.config[k] = v

    configure_logging()

    # --- Collaborators ---
    init_services(
        app,
        Services(
            identity=identity if identity is not None else _build_identity(cfg),
            store=store if store is not None else _build_store(cfg),
            notifier=notifier if notifier is not None else build_notifier(cfg),
        ),
    )

    # --- Security middleware (CORS, headers) ---
    init_security(app)

    # --- Metrics backend wiring ---
    if app.config.get("METRICS_BACKEND") == "log":
        set_metrics(LoggingMetrics())
        app.logger.info("Metrics backend initialized: log")

    @app.before_request
    def _before_req() -> None:
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", None) or str(uuid.uuid4())
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        principal = getattr(g, "principal", None)
        log.info(
            {
                "request_id": rid,
                "uid": principal.uid if principal is not None else None,
                "method": request.method,
                "path": request.path,
                "status": resp.status_code,
                "duration_ms": dur_ms,
            }
        )
        return resp

    # --- Blueprints ---
    app.register_blueprint(expert_applications_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(admins_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(health_bp)

    # --- Error handling ---
    register_error_handlers(app)
    install_support_log_handler()

    return app


__all__ = ["create_app"]
