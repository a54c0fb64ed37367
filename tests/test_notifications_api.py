from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from _problem_utils import assert_problem
from conftest import MEMBER_UID

from kalika import create_app
from kalika.notify import NotificationOutcome
from kalika.rate_limiter import MemoryRateLimiter, set_rate_limiter

SUMMARY = "/api/admin/notifications/summary"
RELAY = "/api/notify/indie"


def _seed_activity(store, base: datetime) -> None:
    base_ms = int(base.timestamp() * 1000)
    for i, offset in enumerate((-10_000, 5_000, 15_000)):
        store.set(("plant_scans", f"p{i}"), {"createdAtLocal": base_ms + offset})
    store.set(("map_scans", "m0"), {"createdAtLocal": base_ms + 1})
    store.set(("map_scans", "m1"), {"createdAtLocal": "not-a-number"})
    store.set(("health_assessments", "h0"), {"createdAt": base + timedelta(minutes=1)})
    store.set(("health_assessments", "h1"), {"createdAt": base - timedelta(minutes=1)})
    store.set(("expert_applications", "a0"), {"createdAt": base + timedelta(hours=1), "uid": "U1"})


def test_summary_counts_since_markers(client, store, admin_headers):
    base = datetime(2025, 5, 1, 8, 0, tzinfo=timezone.utc)
    _seed_activity(store, base)
    base_ms = int(base.timestamp() * 1000)

    r = client.post(
        SUMMARY,
        json={
            "lastSeen": {
                "plant_scans": base_ms,
                "map_posts": base_ms,
                "health_assessments": "2025-05-01T08:00:00Z",
                "expert_applications": "2025-05-01T08:00:00+00:00",
            }
        },
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["counts"] == {"plant_scans": 2, "map_posts": 1, "health_assessments": 1, "expert_applications": 1}
    assert isinstance(body["serverNow"]["ms"], int)
    assert body["serverNow"]["iso"].endswith("+00:00")


def test_summary_missing_markers_mean_nothing_new(client, store, admin_headers):
    _seed_activity(store, datetime(2024, 1, 1, tzinfo=timezone.utc))
    r = client.post(SUMMARY, json={}, headers=admin_headers)
    assert r.status_code == 200
    assert set(r.get_json()["counts"].values()) == {0}


def test_summary_rejects_bad_iso_marker(client, admin_headers):
    r = client.post(SUMMARY, json={"lastSeen": {"health_assessments": "yesterday"}}, headers=admin_headers)
    body = assert_problem(r, 400, "validation_error")
    assert body["invalid_params"][0]["name"] == "lastSeen.health_assessments"


def test_summary_requires_admin(client, member_headers):
    assert_problem(client.post(SUMMARY, json={}, headers=member_headers), 403, "forbidden")


def test_relay_sends_push(client, notifier, member_headers):
    r = client.post(
        RELAY,
        json={"toUid": "U9", "title": "New comment", "message": "Someone replied", "pushData": {"postId": "p1"}},
        headers=member_headers,
    )
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "delivered": True, "detail": {"ok": True}}
    assert notifier.sent == [{"to_uid": "U9", "title": "New comment", "body": "Someone replied", "payload": {"postId": "p1"}}]


def test_relay_to_self_is_skipped(client, notifier, member_headers):
    r = client.post(RELAY, json={"toUid": MEMBER_UID, "title": "t", "message": "m"}, headers=member_headers)
    assert r.get_json() == {"ok": True, "skipped": "self"}
    assert notifier.sent == []


def test_relay_failure_is_400(client, notifier, member_headers):
    notifier.outcome = NotificationOutcome(attempted=True, delivered=False, detail="timeout")
    r = client.post(RELAY, json={"toUid": "U9", "title": "t", "message": "m"}, headers=member_headers)
    assert r.status_code == 400
    assert r.get_json() == {"ok": False, "delivered": False, "detail": "timeout"}


@pytest.mark.parametrize(
    "body",
    [
        {"title": "t", "message": "m"},
        {"toUid": "U9", "message": "m"},
        {"toUid": "U9", "title": "t"},
        {"toUid": "U9", "title": "t", "message": "m", "pushData": "x"},
    ],
)
def test_relay_validation(client, notifier, member_headers, body):
    assert_problem(client.post(RELAY, json=body, headers=member_headers), 400, "validation_error")
    assert notifier.sent == []


def test_relay_requires_authentication(client):
    assert_problem(client.post(RELAY, json={"toUid": "U9", "title": "t", "message": "m"}), 401, "unauthenticated")


def test_relay_is_rate_limited_per_caller(store, identity, notifier, member_headers, admin_headers):
    set_rate_limiter(MemoryRateLimiter())
    app = create_app(
        {"TESTING": True, "NOTIFY_RELAY_QUOTA": 2, "NOTIFY_RELAY_PER_SECONDS": 3600},
        identity=identity,
        store=store,
        notifier=notifier,
    )
    client = app.test_client()
    body = {"toUid": "U9", "title": "t", "message": "m"}
    assert client.post(RELAY, json=body, headers=member_headers).status_code == 200
    assert client.post(RELAY, json=body, headers=member_headers).status_code == 200
    r = client.post(RELAY, json=body, headers=member_headers)
    problem = assert_problem(r, 429, "rate_limited")
    assert problem["limit"] == "notify_relay"
    assert int(r.headers["Retry-After"]) >= 0
    # other callers have their own window
    assert client.post(RELAY, json=body, headers=admin_headers).status_code == 200
    assert len(notifier.sent) == 3


def test_summary_empty_iso_marker_means_now(client, store, admin_headers):
    store.set(("health_assessments", "h0"), {"createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)})
    r = client.post(SUMMARY, json={"lastSeen": {"health_assessments": "", "expert_applications": ""}}, headers=admin_headers)
    assert r.status_code == 200
    counts = r.get_json()["counts"]
    assert counts["health_assessments"] == 0
    assert counts["expert_applications"] == 0


def test_summary_counts_naive_stored_timestamps(client, store, admin_headers):
    store.set(("expert_applications", "a0"), {"createdAt": datetime(2025, 5, 1, 9, 0)})
    store.set(("expert_applications", "a1"), {"createdAt": datetime(2025, 5, 1, 7, 0)})
    r = client.post(SUMMARY, json={"lastSeen": {"expert_applications": "2025-05-01T08:00:00Z"}}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()["counts"]["expert_applications"] == 1
