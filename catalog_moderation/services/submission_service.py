"""Submission store: validated ingest of proposed catalog changes."""

import json
import logging
from typing import Optional, Any, Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalog_moderation.core.exceptions import (
    DuplicatePendingSubmissionError, NotFoundError, ValidationError,
)
from catalog_moderation.core.geo import validate_coordinates
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.catalog import Artwork, Artist
from catalog_moderation.models.submission import Submission, new_submission_id
from catalog_moderation.services.audit_service import audit_service, RequestMeta

logger = logging.getLogger("catalog_moderation")

SUBMISSION_TYPES = ("new_entry", "field_edit")
SUBJECT_TYPES = ("artwork", "artist")
STATUSES = ("pending", "approved", "rejected", "archived")

EDITABLE_FIELDS = {
    "artwork": (
        "title", "description", "artist_names", "year_created",
        "medium", "dimensions", "tags",
    ),
    "artist": (
        "name", "biography", "birth_year", "death_year", "nationality", "website",
    ),
}

SUBJECT_MODELS = {"artwork": Artwork, "artist": Artist}


def pending_key(subject_ref: Optional[str], actor_token: str) -> Optional[str]:
    if not subject_ref:
        return None
    return f"{subject_ref}:{actor_token}"


def _check_fields(subject_type: str, payload: dict) -> None:
    allowed = EDITABLE_FIELDS[subject_type]
    unknown = [k for k in payload if k not in allowed]
    if unknown:
        raise ValidationError(
            f"Fields not editable for {subject_type}: {', '.join(unknown)}",
            details={"invalid_fields": unknown, "allowed_fields": list(allowed)},
        )


def _validate_new_entry(db: Session, subject_type: str, subject_ref: Optional[str],
                        payload_old: dict, payload_new: dict,
                        lat: Optional[float], lon: Optional[float]) -> None:
    if subject_ref:
        raise ValidationError("New entries must not reference an existing record")
    if payload_old:
        raise ValidationError("New entries have no previous values")
    if not payload_new:
        raise ValidationError("New entries need at least one field")
    _check_fields(subject_type, payload_new)
    if subject_type == "artwork":
        if lat is None or lon is None:
            raise ValidationError("Location is required for new artworks")
    elif not payload_new.get("name"):
        raise ValidationError("Name is required for new artists")


def _validate_field_edit(db: Session, subject_type: str, subject_ref: Optional[str],
                         payload_old: dict, payload_new: dict,
                         lat: Optional[float], lon: Optional[float]) -> None:
    if not subject_ref:
        raise ValidationError("Edits must reference an existing record")
    if not payload_new:
        raise ValidationError("Edits need at least one changed field")
    _check_fields(subject_type, payload_new)
    if set(payload_old) != set(payload_new):
        raise ValidationError("Old and new values must cover the same fields")

    model = SUBJECT_MODELS[subject_type]
    with storage_errors(db, "subject lookup"):
        exists = db.query(model.id).filter(model.id == subject_ref).first()
    if exists is None:
        raise NotFoundError(f"{subject_type.capitalize()} '{subject_ref}' not found")


VALIDATORS: dict[str, Callable[..., None]] = {
    "new_entry": _validate_new_entry,
    "field_edit": _validate_field_edit,
}


class SubmissionService:

    @staticmethod
    def validate_submission(
        db: Session,
        submission_type: str,
        subject_type: str,
        subject_ref: Optional[str],
        actor_token: str,
        payload_old: Optional[dict],
        payload_new: dict,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> tuple[str, str]:
        """Run every check ``create_submission`` makes before writing.

        Returns the serialized old and new payloads.
        """
        validator = VALIDATORS.get(submission_type)
        if validator is None:
            raise ValidationError(f"Unknown submission type '{submission_type}'")
        if subject_type not in SUBJECT_TYPES:
            raise ValidationError(f"Unknown subject type '{subject_type}'")
        if not actor_token:
            raise ValidationError("Actor token is required")
        if (lat is None) != (lon is None):
            raise ValidationError("Latitude and longitude must be given together")
        if lat is not None and not validate_coordinates(lat, lon):
            raise ValidationError("Coordinates out of range")

        payload_old = payload_old or {}
        payload_new = payload_new or {}
        validator(db, subject_type, subject_ref, payload_old, payload_new, lat, lon)

        try:
            old_json = json.dumps(payload_old)
            new_json = json.dumps(payload_new)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Payload is not JSON-serializable: {e}")

        if subject_ref:
            existing = SubmissionService.get_pending_submissions(db, subject_ref, actor_token)
            if existing:
                raise DuplicatePendingSubmissionError(existing[0].id)
        return old_json, new_json

    @staticmethod
    def create_submission(
        db: Session,
        submission_type: str,
        subject_type: str,
        subject_ref: Optional[str],
        actor_token: str,
        payload_old: Optional[dict],
        payload_new: dict,
        notes: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        submission_id: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> Submission:
        """Validate, check the one-pending-per-subject rule, insert, then audit."""
        old_json, new_json = SubmissionService.validate_submission(
            db, submission_type, subject_type, subject_ref, actor_token,
            payload_old, payload_new, lat, lon,
        )
        payload_old = payload_old or {}
        payload_new = payload_new or {}

        submission_id = submission_id or new_submission_id()
        submission = Submission(
            id=submission_id,
            submission_type=submission_type,
            subject_type=subject_type,
            subject_ref=subject_ref,
            actor_token=actor_token,
            payload_old_json=old_json,
            payload_new_json=new_json,
            lat=lat,
            lon=lon,
            submitter_notes=notes,
            status="pending",
            pending_key=pending_key(subject_ref, actor_token),
        )
        with storage_errors(db, "submission insert"):
            try:
                db.add(submission)
                db.commit()
            except IntegrityError:
                # Lost a race with a concurrent create for the same subject.
                db.rollback()
                existing = SubmissionService.get_pending_submissions(db, subject_ref, actor_token)
                if existing:
                    raise DuplicatePendingSubmissionError(existing[0].id)
                raise

        logger.info(
            "Submission %s created (%s %s) by %s",
            submission_id, submission_type, subject_type, actor_token,
        )
        audit_service.record_from_request(
            db, request_meta,
            entity_type="submission",
            entity_id=submission_id,
            action="create",
            actor_token=actor_token,
            old_data=payload_old,
            new_data=payload_new,
            metadata={
                "submission_type": submission_type,
                "subject_type": subject_type,
                "subject_ref": subject_ref,
            },
        )
        with storage_errors(db, "submission reload"):
            db.refresh(submission)
        return submission

    @staticmethod
    def get_pending_submissions(db: Session, subject_ref: str, actor_token: str) -> list[Submission]:
        """Pending submissions by ``actor_token`` for ``subject_ref``, newest first."""
        with storage_errors(db, "pending lookup"):
            return (
                db.query(Submission)
                .filter(
                    Submission.subject_ref == subject_ref,
                    Submission.actor_token == actor_token,
                    Submission.status == "pending",
                )
                .order_by(Submission.created_at.desc())
                .all()
            )

    @staticmethod
    def get_submission(db: Session, submission_id: str) -> Submission:
        with storage_errors(db, "submission lookup"):
            submission = db.query(Submission).filter(Submission.id == submission_id).first()
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    @staticmethod
    def list_for_actor(db: Session, actor_token: str, status: Optional[str] = None,
                       limit: int = 100) -> list[Submission]:
        if status and status not in STATUSES:
            raise ValidationError(f"Unknown status '{status}'")
        with storage_errors(db, "submission list"):
            query = db.query(Submission).filter(Submission.actor_token == actor_token)
            if status:
                query = query.filter(Submission.status == status)
            return query.order_by(Submission.created_at.desc()).limit(limit).all()

    @staticmethod
    def payloads(submission: Submission) -> tuple[dict[str, Any], dict[str, Any]]:
        return json.loads(submission.payload_old_json), json.loads(submission.payload_new_json)

    @staticmethod
    def to_dict(submission: Submission) -> dict:
        payload_old, payload_new = SubmissionService.payloads(submission)
        return {
            "id": submission.id,
            "submission_type": submission.submission_type,
            "subject_type": submission.subject_type,
            "subject_ref": submission.subject_ref,
            "actor_token": submission.actor_token,
            "payload_old": payload_old,
            "payload_new": payload_new,
            "lat": submission.lat,
            "lon": submission.lon,
            "notes": submission.submitter_notes,
            "status": submission.status,
            "created_at": submission.created_at,
            "reviewed_at": submission.reviewed_at,
            "reviewer_token": submission.reviewer_token,
            "review_notes": submission.review_notes,
        }


submission_service = SubmissionService()
