from __future__ import annotations

import logging

from kalika import create_app
from kalika.config import Config
from kalika.metrics import LoggingMetrics
from kalika.services import get_services
from kalika.store_memory import MemoryStore


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] == "ok"
    assert "recent_warnings" in body


def test_request_id_and_headers(client):
    r = client.get("/healthz")
    assert r.headers["X-Request-Id"]
    assert int(r.headers["X-Request-Duration-ms"]) >= 0
    assert r.headers["Cache-Control"] == "no-store"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"


def test_cors_allow_list(identity, notifier):
    app = create_app(
        {"TESTING": True, "cors_allowed_origins": ["https://console.kalikascan.app"]},
        identity=identity,
        store=MemoryStore(),
        notifier=notifier,
    )
    client = app.test_client()
    r = client.options(
        "/api/admin/expert-applications/review",
        headers={"Origin": "https://console.kalikascan.app", "Access-Control-Request-Headers": "Authorization"},
    )
    assert r.headers["Access-Control-Allow-Origin"] == "https://console.kalikascan.app"
    assert r.headers["Access-Control-Allow-Headers"] == "Authorization"
    assert "Access-Control-Allow-Credentials" not in r.headers

    r = client.get("/healthz", headers={"Origin": "https://evil.test"})
    assert "Access-Control-Allow-Origin" not in r.headers


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", " Memory ")
    monkeypatch.setenv("NATIVE_NOTIFY_APP_ID", "4321")
    monkeypatch.setenv("NATIVE_NOTIFY_APP_TOKEN", "tok")
    monkeypatch.setenv("NOTIFY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.test, ,https://b.test")
    cfg = Config.from_env()
    assert cfg.store_backend == "memory"
    assert cfg.notify_app_id == 4321
    assert cfg.notify_app_token == "tok"
    assert cfg.notify_timeout_seconds == 2.5
    assert cfg.cors_allowed_origins == ["https://a.test", "https://b.test"]


def test_non_numeric_app_id_counts_as_unset(monkeypatch):
    monkeypatch.setenv("NATIVE_NOTIFY_APP_ID", "abc")
    assert Config.from_env().notify_app_id is None


def test_memory_backend_from_config(identity, notifier):
    app = create_app({"TESTING": True, "store_backend": "memory"}, identity=identity, notifier=notifier)
    with app.app_context():
        assert isinstance(get_services().store, MemoryStore)


def test_log_metrics_backend(identity, notifier, store, caplog):
    app = create_app({"TESTING": True, "METRICS_BACKEND": "log"}, identity=identity, store=store, notifier=notifier)
    assert app.config["METRICS_BACKEND"] == "log"
    with caplog.at_level(logging.INFO, logger="kalika.metrics"):
        LoggingMetrics().increment("review.decided", {"decision": "approved"})
    assert "review.decided" in caplog.text
