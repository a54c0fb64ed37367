from __future__ import annotations

import pytest
from _problem_utils import assert_problem
from conftest import seed_application, seed_user

from kalika.audit_events import list_audit_events
from kalika.store import application_path, user_application_path

URL = "/api/admin/expert-applications/delete"


@pytest.mark.parametrize("status", ["approved", "rejected"])
def test_deletes_reviewed_global_copy_only(client, store, admin_headers, status):
    seed_user(store, "U1")
    seed_application(store, "A1", "U1", status=status)

    r = client.post(URL, json={"applicationId": "A1"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "applicationId": "A1", "status": status}
    assert store.get(application_path("A1")) is None
    # the applicant keeps their own history
    assert store.get(user_application_path("U1", "A1"))["status"] == status
    assert list_audit_events("expert_application_deleted")[0]["meta"]["status"] == status


def test_pending_application_cannot_be_deleted(client, store, admin_headers):
    seed_application(store, "A1", "U1")
    r = client.post(URL, json={"applicationId": "A1"}, headers=admin_headers)
    body = assert_problem(r, 400, "invalid_state")
    assert body["current_status"] == "pending"
    assert body["detail"] == "Only approved/rejected applications can be deleted."
    assert store.get(application_path("A1")) is not None


def test_application_without_status_counts_as_pending(client, store, admin_headers):
    store.set(application_path("A1"), {"uid": "U1"})
    r = client.post(URL, json={"applicationId": "A1"}, headers=admin_headers)
    assert_problem(r, 400, "invalid_state")


def test_missing_application(client, admin_headers):
    r = client.post(URL, json={"applicationId": "nope"}, headers=admin_headers)
    body = assert_problem(r, 404, "not_found")
    assert body["resource"] == "application"


def test_missing_application_id(client, admin_headers):
    r = client.post(URL, json={}, headers=admin_headers)
    assert_problem(r, 400, "validation_error")


def test_member_cannot_delete(client, store, member_headers):
    seed_application(store, "A1", "U1", status="approved")
    r = client.post(URL, json={"applicationId": "A1"}, headers=member_headers)
    assert_problem(r, 403, "forbidden")
    assert store.get(application_path("A1")) is not None


@pytest.mark.parametrize("bad_id", ["A1/x", "A1/nested/Y", ".", "__A1__"])
def test_application_id_must_be_single_document_id(client, store, admin_headers, bad_id):
    seed_application(store, "A1", "U1", status="approved")
    r = client.post(URL, json={"applicationId": bad_id}, headers=admin_headers)
    body = assert_problem(r, 400, "validation_error")
    assert body["invalid_params"] == [{"name": "applicationId", "reason": "document_id"}]
    assert store.get(application_path("A1")) is not None
