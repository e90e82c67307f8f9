"""Submission intake API router."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from catalog_moderation.api.deps import get_rate_limiter, get_request_meta
from catalog_moderation.core.config import settings
from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.core.security import get_current_actor
from catalog_moderation.db.session import get_db
from catalog_moderation.schemas.schemas import (
    SubmissionCreate, SubmissionOut, NearbyArtwork, FieldEditSubmission, ok,
)
from catalog_moderation.services.audit_service import RequestMeta
from catalog_moderation.services.intake_service import intake_service
from catalog_moderation.services.submission_service import submission_service

router = APIRouter(prefix="/submissions", tags=["submissions"])


def submission_out(submission) -> SubmissionOut:
    return SubmissionOut(**submission_service.to_dict(submission))


@router.post("", status_code=201)
async def create_submission(
    body: SubmissionCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
    rate_limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Submit a new catalog entry or an edit to an existing one."""
    is_edit = isinstance(body, FieldEditSubmission)
    result = intake_service.submit(
        db,
        rate_limiter,
        actor_token=actor,
        submission_type=body.submission_type,
        subject_type=body.subject_type,
        subject_ref=body.subject_ref if is_edit else None,
        payload_old=body.payload_old if is_edit else None,
        payload_new=body.payload_new,
        consent=body.consent.model_dump(),
        consent_version=body.consent_version,
        notes=body.notes,
        lat=body.lat,
        lon=body.lon,
        request_meta=meta,
    )
    return ok({
        "submission": submission_out(result.submission),
        "nearby": [NearbyArtwork(**n) for n in result.nearby],
        "consent_id": result.consent_id,
    })


@router.get("/pending")
async def pending_for_subject(
    subject_ref: str = Query(..., min_length=1),
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """The caller's pending submissions for one catalog record."""
    items = submission_service.get_pending_submissions(db, subject_ref, actor)
    return ok([submission_out(s) for s in items])


@router.get("/mine")
async def my_submissions(
    status: Optional[str] = Query(None),
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    items = submission_service.list_for_actor(db, actor, status)
    return ok([submission_out(s) for s in items])


@router.get("/rate-limit")
async def my_rate_limit(
    actor: str = Depends(get_current_actor),
    rate_limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
):
    """Remaining submission allowance for the current window."""
    limit = settings.RATE_LIMIT_SUBMISSIONS_PER_HOUR
    if rate_limiter is None:
        return ok({"limit": limit, "remaining": limit, "retry_after": 0})
    status = rate_limiter.status("submission", actor, limit)
    return ok({"limit": status.limit, "remaining": status.remaining, "retry_after": status.retry_after})
