from __future__ import annotations

import pytest
from conftest import FakeIdentity

from kalika.app_authz import authenticate, bearer_token, require_capability
from kalika.errors import Forbidden, Unauthenticated
from kalika.identity import Principal
from kalika.roles import IS_ADMIN, IS_SUPERADMIN, capabilities_from_claims
from kalika.store import is_document_id


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc", "abc"),
        ("  Bearer   abc  ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("Bearer a b", None),
        ("", None),
        (None, None),
    ],
)
def test_bearer_token_parsing(header, expected):
    assert bearer_token(header) == expected


def test_capabilities_from_claims():
    assert capabilities_from_claims({}) == frozenset()
    assert capabilities_from_claims({"admin": True}) == {IS_ADMIN}
    # superadmin implies admin even without the admin claim
    assert capabilities_from_claims({"superadmin": True}) == {IS_ADMIN, IS_SUPERADMIN}
    assert capabilities_from_claims({"admin": False, "superadmin": None}) == frozenset()


def test_authenticate_missing_credential():
    with pytest.raises(Unauthenticated):
        authenticate(None, FakeIdentity())
    with pytest.raises(Unauthenticated):
        authenticate("", FakeIdentity())


def test_authenticate_unknown_credential():
    with pytest.raises(Unauthenticated):
        authenticate("forged", FakeIdentity())


def test_authenticate_builds_principal():
    ident = FakeIdentity()
    ident.add_account("a1", {"admin": True}, token="tok", email="a@x.test")
    principal = authenticate("tok", ident)
    assert principal.uid == "a1"
    assert principal.email == "a@x.test"
    assert principal.has(IS_ADMIN)
    assert not principal.has(IS_SUPERADMIN)


def test_principal_requires_subject():
    with pytest.raises(Unauthenticated):
        Principal.from_claims({"admin": True})
    assert Principal.from_claims({"sub": "s1"}).uid == "s1"


def test_require_capability_only_checks_named_flag():
    admin = Principal(uid="a", capabilities=frozenset({IS_ADMIN}))
    require_capability(admin, IS_ADMIN)
    with pytest.raises(Forbidden) as ei:
        require_capability(admin, IS_SUPERADMIN)
    assert ei.value.required == IS_SUPERADMIN


def test_malformed_header_is_401(client):
    r = client.get("/api/admin/users/list", headers={"Authorization": "Token admin-token"})
    assert r.status_code == 401


def test_expired_token_is_401(client):
    r = client.get("/api/admin/users/list", headers={"Authorization": "Bearer expired"})
    assert r.status_code == 401
    assert r.get_json()["reason"] == "unauthenticated"


@pytest.mark.parametrize(
    "value, ok",
    [("U1", True), ("abc-DEF_12", True), ("", False), ("a/b", False), (".", False), ("..", False), ("__x__", False), (None, False), (5, False)],
)
def test_is_document_id(value, ok):
    assert is_document_id(value) is ok
