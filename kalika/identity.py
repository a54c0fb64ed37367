"""Identity provider seam.

``IdentityProvider`` is the narrow contract the access guard and the account
endpoints depend on; ``FirebaseIdentityProvider`` implements it on
``firebase_admin.auth``.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import firebase_admin
from firebase_admin import auth

from .errors import NotFound, Unauthenticated, ValidationError
from .roles import capabilities_from_claims

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    uid: str
    capabilities: frozenset[str] = frozenset()
    email: str | None = None
    claims: Mapping[str, Any] = field(default_factory=dict)

    def has(self, capability: str) -> bool:
        return capability in self.capabilities

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> Principal:
        uid = str(claims.get("uid") or claims.get("sub") or "")
        if not uid:
            raise Unauthenticated("Credential has no subject")
        return cls(
            uid=uid,
            capabilities=capabilities_from_claims(claims),
            email=claims.get("email"),
            claims=dict(claims),
        )


class IdentityProvider(Protocol):
    def verify(self, credential: str) -> Principal: ...  # pragma: no cover
    def create_user(self, email: str, password: str, display_name: str, photo_url: str | None = None) -> str: ...  # pragma: no cover
    def set_custom_claims(self, uid: str, claims: Mapping[str, Any]) -> None: ...  # pragma: no cover
    def get_claims(self, uid: str) -> dict[str, Any]: ...  # pragma: no cover
    def update_user(self, uid: str, **fields: Any) -> None: ...  # pragma: no cover
    def delete_user(self, uid: str) -> None: ...  # pragma: no cover


# verify_id_token failure modes that mean "caller is not authenticated";
# CertificateFetchError covers key-fetch timeouts against Google
_VERIFY_ERRORS = (
    ValueError,
    auth.InvalidIdTokenError,
    auth.CertificateFetchError,
    auth.UserDisabledError,
)


class FirebaseIdentityProvider:
    def __init__(self, app: firebase_admin.App, check_revoked: bool = False) -> None:
        self._app = app
        self._check_revoked = check_revoked

    def verify(self, credential: str) -> Principal:
        try:
            decoded = auth.verify_id_token(credential, app=self._app, check_revoked=self._check_revoked)
        except _VERIFY_ERRORS as e:
            log.info("id token rejected: %s", type(e).__name__)
            raise Unauthenticated("Invalid or expired credential") from e
        return Principal.from_claims(decoded)

    def create_user(self, email: str, password: str, display_name: str, photo_url: str | None = None) -> str:
        try:
            rec = auth.create_user(
                email=email,
                password=password,
                display_name=display_name,
                photo_url=photo_url,
                app=self._app,
            )
        except auth.EmailAlreadyExistsError as e:
            raise ValidationError("Email already in use", invalid_params=[{"name": "email", "reason": "exists"}]) from e
        except ValueError as e:
            # firebase_admin validates email/password shape client side
            raise ValidationError(str(e)) from e
        return rec.uid

    def set_custom_claims(self, uid: str, claims: Mapping[str, Any]) -> None:
        auth.set_custom_user_claims(uid, dict(claims), app=self._app)

    def get_claims(self, uid: str) -> dict[str, Any]:
        try:
            rec = auth.get_user(uid, app=self._app)
        except auth.UserNotFoundError as e:
            raise NotFound("user") from e
        return dict(rec.custom_claims or {})

    def update_user(self, uid: str, **fields: Any) -> None:
        try:
            auth.update_user(uid, app=self._app, **fields)
        except auth.UserNotFoundError as e:
            raise NotFound("user", "Identity account not found") from e

    def delete_user(self, uid: str) -> None:
        try:
            auth.delete_user(uid, app=self._app)
        except auth.UserNotFoundError as e:
            raise NotFound("user", "Identity account not found") from e


__all__ = [
    "Principal",
    "IdentityProvider",
    "FirebaseIdentityProvider",
]
