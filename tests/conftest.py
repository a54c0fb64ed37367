from __future__ import annotations

import itertools
from collections.abc import Mapping
from typing import Any

import pytest

from kalika import create_app
from kalika.audit_events import clear_audit_events
from kalika.errors import NotFound, Unauthenticated, ValidationError
from kalika.identity import Principal
from kalika.metrics import reset_metrics
from kalika.notify import NotificationOutcome
from kalika.rate_limiter import NoopRateLimiter, set_rate_limiter
from kalika.store import application_path, user_application_path, user_path
from kalika.store_memory import MemoryStore

ADMIN_UID = "admin-1"
SUPER_UID = "super-1"
MEMBER_UID = "member-1"


class FakeIdentity:
    """Token -> claims map plus a tiny account registry."""

    def __init__(self) -> None:
        self.tokens: dict[str, dict[str, Any]] = {}
        self.accounts: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def add_account(self, uid: str, claims: Mapping[str, Any] | None = None, token: str | None = None, **fields: Any):
        self.accounts[uid] = {"claims": dict(claims or {}), **fields}
        if token:
            self.tokens[token] = {"uid": uid, "email": fields.get("email"), **(claims or {})}

    def verify(self, credential: str) -> Principal:
        claims = self.tokens.get(credential)
        if claims is None:
            raise Unauthenticated("Invalid or expired credential")
        return Principal.from_claims(claims)

    def create_user(self, email: str, password: str, display_name: str, photo_url: str | None = None) -> str:
        if any(a.get("email") == email for a in self.accounts.values()):
            raise ValidationError("Email already in use", invalid_params=[{"name": "email", "reason": "exists"}])
        uid = f"new-{next(self._ids)}"
        self.accounts[uid] = {"claims": {}, "email": email, "display_name": display_name, "photo_url": photo_url}
        return uid

    def set_custom_claims(self, uid: str, claims: Mapping[str, Any]) -> None:
        self._account(uid)["claims"] = dict(claims)

    def get_claims(self, uid: str) -> dict[str, Any]:
        return dict(self._account(uid)["claims"])

    def update_user(self, uid: str, **fields: Any) -> None:
        self._account(uid).update(fields)

    def delete_user(self, uid: str) -> None:
        self._account(uid)
        del self.accounts[uid]

    def _account(self, uid: str) -> dict[str, Any]:
        if uid not in self.accounts:
            raise NotFound("user", "Identity account not found")
        return self.accounts[uid]


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.outcome = NotificationOutcome(attempted=True, delivered=True, detail={"ok": True})
        self.error: Exception | None = None

    def send(self, to_uid: str, title: str, body: str, payload: dict[str, Any] | None = None) -> NotificationOutcome:
        self.sent.append({"to_uid": to_uid, "title": title, "body": body, "payload": payload})
        if self.error is not None:
            raise self.error
        return self.outcome


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def seed_application(store: MemoryStore, application_id: str, uid: str, status: str = "pending", **extra: Any) -> None:
    doc = {"uid": uid, "status": status, "fullName": "Ada Applicant", **extra}
    store.set(application_path(application_id), doc)
    store.set(user_application_path(uid, application_id), dict(doc))


def seed_user(store: MemoryStore, uid: str, **fields: Any) -> None:
    store.set(user_path(uid), {"uid": uid, "role": "regular", **fields})


@pytest.fixture(autouse=True)
def _reset_process_state():
    clear_audit_events()
    reset_metrics()
    set_rate_limiter(NoopRateLimiter())
    yield
    set_rate_limiter(None)
    reset_metrics()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def identity() -> FakeIdentity:
    ident = FakeIdentity()
    ident.add_account(ADMIN_UID, {"admin": True}, token="admin-token", email="admin@kalika.test")
    ident.add_account(SUPER_UID, {"admin": True, "superadmin": True}, token="super-token", email="root@kalika.test")
    ident.add_account(MEMBER_UID, {}, token="member-token", email="member@kalika.test")
    return ident


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(store, identity, notifier):
    return create_app(
        {"TESTING": True, "SECRET_KEY": "test"},
        identity=identity,
        store=store,
        notifier=notifier,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer("admin-token")


@pytest.fixture
def super_headers() -> dict[str, str]:
    return bearer("super-token")


@pytest.fixture
def member_headers() -> dict[str, str]:
    return bearer("member-token")
