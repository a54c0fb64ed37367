"""Single firebase_admin App shared by the identity provider and Firestore store."""
from __future__ import annotations

import logging
import os
import threading

import firebase_admin
from firebase_admin import credentials

from .config import Config

log = logging.getLogger(__name__)

APP_NAME = "kalika"
_lock = threading.Lock()


def get_firebase_app(cfg: Config) -> firebase_admin.App:
    """Return the named app, initializing it on first use.

    Uses the service-account file when present, otherwise Application Default
    Credentials (Cloud Run / GCE metadata server).
    """
    with _lock:
        try:
            return firebase_admin.get_app(APP_NAME)
        except ValueError:
            pass
        if os.path.exists(cfg.firebase_credentials_path):
            cred = credentials.Certificate(cfg.firebase_credentials_path)
            source = cfg.firebase_credentials_path
        else:
            cred = credentials.ApplicationDefault()
            source = "application-default"
        options: dict[str, object] = {"httpTimeout": cfg.identity_timeout_seconds}
        if cfg.firebase_project_id:
            options["projectId"] = cfg.firebase_project_id
        app = firebase_admin.initialize_app(cred, options=options, name=APP_NAME)
        log.info("firebase app initialized credentials=%s project=%s", source, cfg.firebase_project_id or "-")
        return app


__all__ = ["APP_NAME", "get_firebase_app"]
