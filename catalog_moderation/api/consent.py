"""Consent API router."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from catalog_moderation.core.security import require_admin
from catalog_moderation.db.session import get_db
from catalog_moderation.schemas.schemas import ok
from catalog_moderation.services.consent_service import consent_service

router = APIRouter(prefix="/consent", tags=["consent"])


@router.get("/form")
async def consent_form():
    """Current consent version and the acknowledgements it requires."""
    return ok(consent_service.consent_form())


@router.get("/records")
async def consent_records(
    content_type: str = Query(...),
    content_ref: str = Query(...),
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    records = consent_service.get_consent_records(db, content_type, content_ref)
    return ok([
        {
            "id": r.id,
            "actor_token": r.actor_token,
            "consent_version": r.consent_version,
            "consent_text_hash": r.consent_text_hash,
            "recorded_at": r.recorded_at,
        }
        for r in records
    ])
