"""Document store contract.

Documents are addressed by a path tuple of alternating collection / document
ids, e.g. ``("users", uid, "expert_applications", app_id)``. All multi-document
read-check-write sequences go through ``run_transaction``: the callback gets a
``Transaction``, must do every read before its first write, must have no side
effects of its own (backends may run it more than once), and nothing it wrote
is visible unless it returns normally.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar

T = TypeVar("T")

DocPath = tuple[str, ...]
Document = dict[str, Any]

APPLICATIONS = "expert_applications"
USERS = "users"
ADMINS = "admins"
PLANT_SCANS = "plant_scans"
MAP_SCANS = "map_scans"
HEALTH_ASSESSMENTS = "health_assessments"


class _ServerTimestamp:
    """Placeholder resolved by the backend to its own commit time."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class DocumentMissing(LookupError):
    """Raised by ``update`` when the target document does not exist."""

    def __init__(self, path: DocPath) -> None:
        super().__init__("/".join(path))
        self.path = path


class Transaction(Protocol):
    def get(self, path: DocPath) -> Document | None: ...  # pragma: no cover
    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None: ...  # pragma: no cover
    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None: ...  # pragma: no cover
    def delete(self, path: DocPath) -> None: ...  # pragma: no cover


class DocumentStore(Protocol):
    def get(self, path: DocPath) -> Document | None: ...  # pragma: no cover
    def set(self, path: DocPath, data: Mapping[str, Any], merge: bool = False) -> None: ...  # pragma: no cover
    def update(self, path: DocPath, patch: Mapping[str, Any]) -> None: ...  # pragma: no cover
    def delete(self, path: DocPath) -> None: ...  # pragma: no cover
    def list(
        self, collection: DocPath, order_by: str | None = None, descending: bool = False
    ) -> list[tuple[str, Document]]: ...  # pragma: no cover
    def count_after(self, collection: DocPath, field: str, value: Any) -> int: ...  # pragma: no cover
    def run_transaction(self, fn: Callable[[Transaction], T]) -> T: ...  # pragma: no cover


def is_document_id(value: object) -> bool:
    """Whether ``value`` can stand alone as one Firestore document id.

    A slash would split into extra path segments, so request ids are checked
    with this before they reach a path helper.
    """
    if not isinstance(value, str) or not value:
        return False
    if "/" in value or value in (".", ".."):
        return False
    return not (value.startswith("__") and value.endswith("__"))


def application_path(application_id: str) -> DocPath:
    return (APPLICATIONS, application_id)


def user_path(uid: str) -> DocPath:
    return (USERS, uid)


def user_application_path(uid: str, application_id: str) -> DocPath:
    return (USERS, uid, APPLICATIONS, application_id)


def admin_path(uid: str) -> DocPath:
    return (ADMINS, uid)


__all__ = [
    "DocPath",
    "Document",
    "SERVER_TIMESTAMP",
    "DocumentMissing",
    "Transaction",
    "DocumentStore",
    "is_document_id",
    "APPLICATIONS",
    "USERS",
    "ADMINS",
    "PLANT_SCANS",
    "MAP_SCANS",
    "HEALTH_ASSESSMENTS",
    "application_path",
    "user_path",
    "user_application_path",
    "admin_path",
]
