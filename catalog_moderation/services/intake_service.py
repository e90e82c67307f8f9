"""Submission intake: rate guard, nearby hints, consent, then store."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Mapping

from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.models.submission import Submission, new_submission_id
from catalog_moderation.services.audit_service import RequestMeta
from catalog_moderation.services.consent_service import consent_service
from catalog_moderation.services.nearby_service import nearby_service
from catalog_moderation.services.submission_service import submission_service

logger = logging.getLogger("catalog_moderation")


@dataclass
class IntakeResult:
    submission: Submission
    nearby: list[dict] = field(default_factory=list)
    consent_id: Optional[int] = None


class IntakeService:

    @staticmethod
    def submit(
        db: Session,
        rate_limiter: Optional[RateLimiter],
        actor_token: str,
        submission_type: str,
        subject_type: str,
        payload_new: dict,
        consent: Mapping[str, bool],
        subject_ref: Optional[str] = None,
        payload_old: Optional[dict] = None,
        notes: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        consent_version: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> IntakeResult:
        """Run one submission through the guard, consent ledger and store.

        The payload is validated before consent is recorded, so a rejected
        submission leaves no consent row. Consent is recorded against a
        pre-allocated submission id before the submission row is written.
        """
        if rate_limiter is not None:
            rate_limiter.check_submission(actor_token)

        consent_service.validate_consent_flags(consent)
        submission_service.validate_submission(
            db, submission_type, subject_type, subject_ref, actor_token,
            payload_old, payload_new, lat, lon,
        )

        nearby: list[dict] = []
        if lat is not None and lon is not None and subject_type == "artwork":
            nearby = nearby_service.find_nearby(db, lat, lon)

        submission_id = new_submission_id()
        record = consent_service.record_consent(
            db,
            actor_token=actor_token,
            content_type="submission",
            content_ref=submission_id,
            version=consent_version or settings.CONSENT_VERSION,
            ip_address=request_meta.ip_address if request_meta else None,
        )

        submission = submission_service.create_submission(
            db,
            submission_type=submission_type,
            subject_type=subject_type,
            subject_ref=subject_ref,
            actor_token=actor_token,
            payload_old=payload_old,
            payload_new=payload_new,
            notes=notes,
            lat=lat,
            lon=lon,
            submission_id=submission_id,
            request_meta=request_meta,
        )
        if nearby:
            logger.info("Submission %s has %d nearby artworks", submission.id, len(nearby))
        return IntakeResult(submission=submission, nearby=nearby, consent_id=record.id)


intake_service = IntakeService()
