"""API response type contracts.

Runtime behavior of endpoints does not depend on these definitions; they exist
for static analysis and as a readable catalogue of response shapes.
"""

from __future__ import annotations

from typing import Any, Literal, NotRequired, TypedDict


class OkBase(TypedDict):
    ok: Literal[True]


class NotificationBlock(TypedDict):
    attempted: bool
    delivered: bool
    detail: Any


class ReviewResponse(OkBase):
    applicationId: str
    status: Literal["approved", "rejected"]
    notification: NotificationBlock


class DeleteApplicationResponse(OkBase):
    applicationId: str
    status: Literal["approved", "rejected"]


class UserView(TypedDict):
    uid: str
    email: str | None
    displayName: str | None
    username: str | None
    photoURL: str | None
    imageUrl: str | None
    role: Literal["regular", "expert"]
    isExpert: bool
    banned: bool
    bannedReason: str | None
    createdAt: str | None
    lastActiveAt: str | None
    updatedAt: str | None


class UserListResponse(TypedDict):
    users: list[UserView]


class CreateAdminResponse(OkBase):
    uid: str
    role: Literal["admin", "superadmin"]


class DeleteAdminResponse(OkBase):
    uid: str
    identityDeleted: bool
    profileDeleted: bool
    errors: NotRequired[list[str]]


class UpdateNameResponse(OkBase):
    displayName: str


class SummaryCounts(TypedDict):
    plant_scans: int
    map_posts: int
    health_assessments: int
    expert_applications: int


class ServerNow(TypedDict):
    ms: int
    iso: str


class NotificationSummaryResponse(TypedDict):
    counts: SummaryCounts
    serverNow: ServerNow


class RelayResponse(TypedDict):
    ok: bool
    delivered: NotRequired[bool]
    detail: NotRequired[Any]
    skipped: NotRequired[str]


__all__ = [
    "OkBase",
    "NotificationBlock",
    "ReviewResponse",
    "DeleteApplicationResponse",
    "UserView",
    "UserListResponse",
    "CreateAdminResponse",
    "DeleteAdminResponse",
    "UpdateNameResponse",
    "SummaryCounts",
    "ServerNow",
    "NotificationSummaryResponse",
    "RelayResponse",
]
