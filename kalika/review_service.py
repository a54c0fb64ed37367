"""Expert application review workflow.

An application lives in two projections: the global ``expert_applications/{id}``
document and the applicant's nested ``users/{uid}/expert_applications/{id}``
copy. A review moves both from ``pending`` to ``approved`` or ``rejected``
exactly once and sets the applicant's role in the same transaction. The push
to the applicant is attempted only after commit and never undoes the review.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from . import metrics
from .audit_events import record_audit_event
from .errors import AlreadyReviewed, IntegrityMismatch, InvalidState, NotFound, ValidationError
from .identity import Principal
from .notify import NotificationOutcome, Notifier
from .roles import DECISIONS, ROLE_FOR_DECISION, Decision
from .store import (
    SERVER_TIMESTAMP,
    DocumentStore,
    Transaction,
    application_path,
    is_document_id,
    user_application_path,
    user_path,
)

log = logging.getLogger(__name__)

PENDING = "pending"
TERMINAL_STATUSES = frozenset(DECISIONS)
APPLICANT_FIELD = "uid"
PUSH_TYPE = "expert_application_reviewed"


@dataclass(frozen=True)
class ReviewRequest:
    application_id: str
    applicant_id: str
    decision: Decision
    admin_note: str | None = None

    @classmethod
    def from_payload(cls, body: Any) -> ReviewRequest:
        """Validate a review request body.

        ``uid`` and ``status`` are accepted as aliases for ``applicantId`` and
        ``decision`` (field names used by the console UI).
        """
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        application_id = body.get("applicationId")
        applicant_id = body.get("applicantId", body.get("uid"))
        decision = body.get("decision", body.get("status"))
        note = body.get("adminNote")
        invalid: list[dict[str, str]] = []
        for name, value in (("applicationId", application_id), ("applicantId", applicant_id), ("decision", decision)):
            if not isinstance(value, str) or not value.strip():
                invalid.append({"name": name, "reason": "required"})
            elif name != "decision" and not is_document_id(value.strip()):
                invalid.append({"name": name, "reason": "document_id"})
        if isinstance(decision, str) and decision.strip() and decision not in DECISIONS:
            invalid.append({"name": "decision", "reason": "must be 'approved' or 'rejected'"})
        if note is not None and not isinstance(note, str):
            invalid.append({"name": "adminNote", "reason": "must be a string or null"})
        if invalid:
            raise ValidationError("Missing or invalid fields", invalid_params=invalid)
        return cls(
            application_id=application_id.strip(),
            applicant_id=applicant_id.strip(),
            decision=decision,
            admin_note=note or None,
        )


@dataclass
class ReviewResult:
    application_id: str
    status: Decision
    notification: NotificationOutcome
    ok: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "applicationId": self.application_id,
            "status": self.status,
            "notification": self.notification.to_dict(),
        }


def compose_review_message(decision: Decision, admin_note: str | None) -> tuple[str, str]:
    """Title and body of the push sent to the applicant."""
    note = (admin_note or "").strip()
    note_part = f"\n\nAdmin note: {note}" if note else ""
    if decision == "approved":
        title = "Expert application approved ✅"
        body = (
            f"Congratulations! Your expert application has been approved.{note_part}"
            "\n\nPlease logout your account to clean/refresh the profile."
        )
    else:
        title = "Expert application rejected ❌"
        body = f"Your expert application has been rejected.{note_part}"
    return title, body


class ReviewService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier

    # --- Review ---
    def review(self, principal: Principal, req: ReviewRequest) -> ReviewResult:
        aid, uid = req.application_id, req.applicant_id

        def _apply(tx: Transaction) -> None:
            # reads first; the backend may re-run this closure on contention
            global_doc = tx.get(application_path(aid))
            if global_doc is None:
                raise NotFound("application", "Global application not found")
            user_doc = tx.get(user_path(uid))
            if user_doc is None:
                raise NotFound("user", "User not found")
            nested_doc = tx.get(user_application_path(uid, aid))
            if nested_doc is None:
                raise NotFound("nestedApplication", "User application doc not found")
            if global_doc.get(APPLICANT_FIELD) != uid:
                raise IntegrityMismatch("global")
            if nested_doc.get(APPLICANT_FIELD) != uid:
                raise IntegrityMismatch("nested")
            current = str(global_doc.get("status") or PENDING)
            if current != PENDING:
                raise AlreadyReviewed(current)

            patch = {
                "status": req.decision,
                "adminNote": req.admin_note,
                "reviewedAt": SERVER_TIMESTAMP,
                "reviewedBy": principal.uid,
            }
            tx.update(application_path(aid), patch)
            tx.update(user_application_path(uid, aid), patch)
            role = ROLE_FOR_DECISION[req.decision]
            tx.set(
                user_path(uid),
                {"role": role, "isExpert": role == "expert", "updatedAt": SERVER_TIMESTAMP},
                merge=True,
            )

        self.store.run_transaction(_apply)
        log.info("application %s for uid=%s %s by %s", aid, uid, req.decision, principal.uid)
        record_audit_event(
            "expert_application_reviewed",
            actor_uid=principal.uid,
            application_id=aid,
            applicant_id=uid,
            status=req.decision,
        )
        metrics.increment("review.decided", {"decision": req.decision})

        notification = self._notify_applicant(req)
        return ReviewResult(application_id=aid, status=req.decision, notification=notification)

    def _notify_applicant(self, req: ReviewRequest) -> NotificationOutcome:
        title, body = compose_review_message(req.decision, req.admin_note)
        payload = {"type": PUSH_TYPE, "status": req.decision, "applicationId": req.application_id}
        try:
            outcome = self.notifier.send(req.applicant_id, title, body, payload)
        except Exception as e:
            # review already committed; report instead of failing the request
            log.warning("review push for application %s failed", req.application_id, exc_info=True)
            outcome = NotificationOutcome(attempted=True, delivered=False, detail=type(e).__name__)
        metrics.increment(
            "review.notification",
            {"attempted": str(outcome.attempted).lower(), "delivered": str(outcome.delivered).lower()},
        )
        return outcome

    # --- Deletion ---
    def delete_application(self, principal: Principal, application_id: str) -> str:
        """Delete the global copy of a reviewed application; returns its status."""
        if not isinstance(application_id, str) or not application_id.strip():
            raise ValidationError("Missing fields", invalid_params=[{"name": "applicationId", "reason": "required"}])
        if not is_document_id(application_id.strip()):
            raise ValidationError("Invalid applicationId", invalid_params=[{"name": "applicationId", "reason": "document_id"}])
        path = application_path(application_id.strip())

        def _apply(tx: Transaction) -> str:
            doc = tx.get(path)
            if doc is None:
                raise NotFound("application", "Application not found")
            status = str(doc.get("status") or PENDING)
            if status not in TERMINAL_STATUSES:
                raise InvalidState("Only approved/rejected applications can be deleted.", current_status=status)
            tx.delete(path)
            return status

        status = self.store.run_transaction(_apply)
        log.info("application %s (%s) deleted by %s", path[-1], status, principal.uid)
        record_audit_event("expert_application_deleted", actor_uid=principal.uid, application_id=path[-1], status=status)
        return status


__all__ = [
    "PENDING",
    "TERMINAL_STATUSES",
    "ReviewRequest",
    "ReviewResult",
    "ReviewService",
    "compose_review_message",
]
