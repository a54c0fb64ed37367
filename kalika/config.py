from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_NOTIFY_URL = "https://app.nativenotify.com/api/indie/notification"
DEFAULT_ADMIN_AVATAR = "https://res.cloudinary.com/kalikascan/image/upload/v1/defaults/admin-avatar.png"


@dataclass
class Config:
    secret_key: str = "change-me"
    firebase_credentials_path: str = "serviceAccountKey.json"
    firebase_project_id: str | None = None
    identity_timeout_seconds: float = 10.0
    store_backend: str = "firestore"  # firestore | memory
    notify_app_id: int | None = None
    notify_app_token: str | None = None
    notify_url: str = DEFAULT_NOTIFY_URL
    notify_timeout_seconds: float = 5.0
    notify_relay_quota: int = 30
    notify_relay_per_seconds: int = 60
    default_admin_avatar: str = DEFAULT_ADMIN_AVATAR
    cors_allowed_origins: list[str] = field(default_factory=list)
    metrics_backend: str = "noop"  # noop | log

    @classmethod
    def from_env(cls) -> Config:
        cors = os.getenv("CORS_ALLOW_ORIGINS", "")
        app_id_raw = os.getenv("NATIVE_NOTIFY_APP_ID", "").strip()
        return cls(
            secret_key=os.getenv("SECRET_KEY", "change-me"),
            firebase_credentials_path=os.getenv("FIREBASE_CREDENTIALS_PATH", "serviceAccountKey.json"),
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            identity_timeout_seconds=float(os.getenv("FIREBASE_HTTP_TIMEOUT_SECONDS", "10")),
            store_backend=os.getenv("STORE_BACKEND", "firestore").strip().lower() or "firestore",
            # NativeNotify app ids are numeric; anything else counts as unset
            notify_app_id=int(app_id_raw) if app_id_raw.isdigit() else None,
            notify_app_token=os.getenv("NATIVE_NOTIFY_APP_TOKEN") or None,
            notify_url=os.getenv("NATIVE_NOTIFY_URL", DEFAULT_NOTIFY_URL),
            notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5")),
            notify_relay_quota=int(os.getenv("NOTIFY_RELAY_QUOTA", "30")),
            notify_relay_per_seconds=int(os.getenv("NOTIFY_RELAY_PER_SECONDS", "60")),
            default_admin_avatar=os.getenv("DEFAULT_ADMIN_AVATAR", DEFAULT_ADMIN_AVATAR),
            cors_allowed_origins=[o for o in [c.strip() for c in cors.split(",")] if o],
            metrics_backend=os.getenv("METRICS_BACKEND", "noop").strip().lower() or "noop",
        )

    def override(self, d: dict):
        for k, v in d.items():
            if hasattr(self, k):
                setattr(self, k, v)

    def to_flask_dict(self):
        return {
            "SECRET_KEY": self.secret_key,
            "CORS_ALLOWED_ORIGINS": self.cors_allowed_origins,
            "DEFAULT_ADMIN_AVATAR": self.default_admin_avatar,
            "NOTIFY_RELAY_QUOTA": self.notify_relay_quota,
            "NOTIFY_RELAY_PER_SECONDS": self.notify_relay_per_seconds,
            "METRICS_BACKEND": self.metrics_backend,
        }
