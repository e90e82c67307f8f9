"""Moderation queue API router."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from catalog_moderation.api.deps import get_materializer, get_request_meta
from catalog_moderation.api.submissions import submission_out
from catalog_moderation.core.security import get_current_actor, require_reviewer
from catalog_moderation.db.session import get_db
from catalog_moderation.schemas.schemas import NearbyArtwork, ReviewRequest, ok, paginated
from catalog_moderation.services.audit_service import RequestMeta
from catalog_moderation.services.collaborators import CatalogMaterializer
from catalog_moderation.services.moderation_service import moderation_service, SubmissionFilter

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.get("/submissions")
async def list_queue(
    status: Optional[str] = Query(None),
    subject_type: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    issue_type: Optional[str] = Query(None),
    page: int = Query(1),
    per_page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    actor: str = Depends(require_reviewer),
):
    """Filtered, paginated moderation queue (reviewers only)."""
    filters = SubmissionFilter(
        status=status,
        subject_type=subject_type,
        submission_type=type or issue_type,
    )
    items, total, effective = moderation_service.list_submissions(
        db, filters, page, per_page if per_page is not None else limit,
    )
    return ok(paginated([submission_out(s) for s in items], total, page, effective))


@router.get("/submissions/{submission_id}")
async def get_submission(
    submission_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(require_reviewer),
):
    detail = moderation_service.get_for_review(db, submission_id)
    return ok({
        "submission": submission_out(detail["submission"]),
        "nearby": [NearbyArtwork(**n) for n in detail["nearby"]],
    })


@router.post("/submissions/{submission_id}/review")
async def review_submission(
    submission_id: str,
    body: ReviewRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
    materializer: Optional[CatalogMaterializer] = Depends(get_materializer),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Approve, reject or archive a pending submission."""
    submission = moderation_service.review_submission(
        db,
        submission_id,
        actor,
        body.action,
        notes=body.notes,
        request_meta=meta,
        materializer=materializer,
    )
    return ok(submission_out(submission))
