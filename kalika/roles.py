"""Capability and role vocabulary.

Capability: permission flag carried by a verified Principal, derived from the
identity provider's custom claims.
UserRole: the end-user role stored on ``users/{uid}`` documents.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

Capability = Literal["isAdmin", "isSuperAdmin"]
UserRole = Literal["regular", "expert"]
Decision = Literal["approved", "rejected"]
AdminRole = Literal["admin", "superadmin"]

IS_ADMIN: Capability = "isAdmin"
IS_SUPERADMIN: Capability = "isSuperAdmin"

# custom claim -> capabilities it grants; superadmins are admins too
CLAIM_CAPABILITIES: dict[str, tuple[Capability, ...]] = {
    "admin": (IS_ADMIN,),
    "superadmin": (IS_ADMIN, IS_SUPERADMIN),
}

USER_ROLES: tuple[UserRole, ...] = ("regular", "expert")
DECISIONS: tuple[Decision, ...] = ("approved", "rejected")

# review decision -> role the applicant ends up with
ROLE_FOR_DECISION: dict[Decision, UserRole] = {
    "approved": "expert",
    "rejected": "regular",
}


def capabilities_from_claims(claims: Mapping[str, Any]) -> frozenset[str]:
    caps: set[str] = set()
    for claim, granted in CLAIM_CAPABILITIES.items():
        if claims.get(claim):
            caps.update(granted)
    return frozenset(caps)


def claims_for_admin_role(role: AdminRole) -> dict[str, bool]:
    if role == "superadmin":
        return {"admin": True, "superadmin": True}
    return {"admin": True}


def normalize_user_role(value: object) -> UserRole:
    return "expert" if value == "expert" else "regular"


__all__ = [
    "Capability",
    "UserRole",
    "Decision",
    "AdminRole",
    "IS_ADMIN",
    "IS_SUPERADMIN",
    "CLAIM_CAPABILITIES",
    "USER_ROLES",
    "DECISIONS",
    "ROLE_FOR_DECISION",
    "capabilities_from_claims",
    "claims_for_admin_role",
    "normalize_user_role",
]
