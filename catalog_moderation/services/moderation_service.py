"""Moderation queue and review state machine.

Submissions move ``pending -> approved | rejected | archived`` exactly once.
The transition is a single conditional UPDATE guarded on ``status='pending'``,
so of two reviewers racing on the same submission only one wins; the other
gets a ConflictError.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.core.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, NotImplementedFeatureError,
    ValidationError,
)
from catalog_moderation.db.base import utcnow
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.submission import Submission
from catalog_moderation.services.audit_service import audit_service, RequestMeta
from catalog_moderation.services.collaborators import CatalogMaterializer
from catalog_moderation.services.nearby_service import nearby_service
from catalog_moderation.services.permission_service import permission_service
from catalog_moderation.services.submission_service import (
    STATUSES, SUBJECT_TYPES, SUBMISSION_TYPES, submission_service,
)

logger = logging.getLogger("catalog_moderation")

# Accepted review actions and the terminal status each one produces.
REVIEW_ACTIONS = {
    "approve": "approved",
    "approved": "approved",
    "reject": "rejected",
    "rejected": "rejected",
    "archive": "archived",
    "archived": "archived",
    "apply_changes": None,
}


@dataclass
class SubmissionFilter:
    status: Optional[str] = None
    subject_type: Optional[str] = None
    submission_type: Optional[str] = None


def clamp_per_page(per_page: Optional[int]) -> int:
    if per_page is None:
        return settings.MODERATION_DEFAULT_PER_PAGE
    return max(settings.MODERATION_MIN_PER_PAGE, min(settings.MODERATION_MAX_PER_PAGE, per_page))


class ModerationService:

    @staticmethod
    def list_submissions(
        db: Session,
        filters: Optional[SubmissionFilter] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> tuple[list[Submission], int, int]:
        """One page of the queue, newest first. Returns (items, total, effective per_page)."""
        filters = filters or SubmissionFilter()
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if filters.status and filters.status not in STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(STATUSES)}")
        if filters.subject_type and filters.subject_type not in SUBJECT_TYPES:
            raise ValidationError(
                f"Invalid subject type. Must be one of: {', '.join(SUBJECT_TYPES)}"
            )
        if filters.submission_type and filters.submission_type not in SUBMISSION_TYPES:
            raise ValidationError(
                f"Invalid submission type. Must be one of: {', '.join(SUBMISSION_TYPES)}"
            )
        per_page = clamp_per_page(per_page)

        with storage_errors(db, "moderation queue"):
            query = db.query(Submission)
            if filters.status:
                query = query.filter(Submission.status == filters.status)
            if filters.subject_type:
                query = query.filter(Submission.subject_type == filters.subject_type)
            if filters.submission_type:
                query = query.filter(Submission.submission_type == filters.submission_type)

            total = query.count()
            if total > 0 and page > math.ceil(total / per_page):
                raise NotFoundError("page not found")

            items = (
                query.order_by(Submission.created_at.desc(), Submission.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
                .all()
            )
        return items, total, per_page

    @staticmethod
    def get_for_review(db: Session, submission_id: str) -> dict:
        """Submission detail with advisory nearby artworks for the reviewer."""
        submission = submission_service.get_submission(db, submission_id)
        nearby = []
        if submission.lat is not None and submission.lon is not None:
            nearby = [
                n for n in nearby_service.find_nearby(db, submission.lat, submission.lon)
                if n["id"] != submission.subject_ref
            ]
        return {"submission": submission, "nearby": nearby}

    @staticmethod
    def review_submission(
        db: Session,
        submission_id: str,
        actor_token: str,
        action: str,
        notes: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
        materializer: Optional[CatalogMaterializer] = None,
    ) -> Submission:
        """Move a pending submission to a terminal state."""
        if not permission_service.can_review(db, actor_token):
            raise AuthorizationError("Moderator permission required")

        if action not in REVIEW_ACTIONS:
            raise ValidationError(
                "Invalid action. Must be one of: approve, reject, archive, apply_changes"
            )
        new_status = REVIEW_ACTIONS[action]
        if new_status is None:
            raise NotImplementedFeatureError("Applying changes is not yet supported")
        if notes and len(notes) > settings.MAX_REVIEW_NOTES_LENGTH:
            raise ValidationError(
                f"Notes must be {settings.MAX_REVIEW_NOTES_LENGTH} characters or less"
            )

        submission_service.get_submission(db, submission_id)

        reviewed_at = utcnow()
        with storage_errors(db, "review update"):
            changed = (
                db.query(Submission)
                .filter(Submission.id == submission_id, Submission.status == "pending")
                .update(
                    {
                        Submission.status: new_status,
                        Submission.reviewed_at: reviewed_at,
                        Submission.reviewer_token: actor_token,
                        Submission.review_notes: notes,
                        Submission.pending_key: None,
                    },
                    synchronize_session=False,
                )
            )
            db.commit()

        if changed == 0:
            raise ConflictError("Submission has already been reviewed")

        logger.info("Submission %s %s by %s", submission_id, new_status, actor_token)
        audit_service.record_from_request(
            db, request_meta,
            entity_type="submission",
            entity_id=submission_id,
            action="update",
            actor_token=actor_token,
            old_data={"status": "pending"},
            new_data={"status": new_status},
            metadata={"decision": new_status, "reviewer_token": actor_token, "notes": notes},
        )

        submission = submission_service.get_submission(db, submission_id)
        with storage_errors(db, "review reload"):
            db.refresh(submission)

        if new_status == "approved" and materializer is not None:
            try:
                materializer.materialize(submission)
            except Exception:
                logger.exception("Materialization failed for submission %s", submission_id)

        return submission


moderation_service = ModerationService()
