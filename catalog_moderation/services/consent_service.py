"""Consent ledger: records which consent version an actor accepted."""

import logging
from typing import Optional, Mapping

from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.core.consent import (
    CONSENT_DESCRIPTIONS, CONSENT_ERRORS, CONSENT_TEXTS, REQUIRED_CONSENTS, consent_text_hash,
)
from catalog_moderation.core.exceptions import ValidationError
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.consent_record import ConsentRecord

logger = logging.getLogger("catalog_moderation")

CONTENT_TYPES = ("artwork", "artist", "submission")


class ConsentService:

    @staticmethod
    def validate_consent_flags(flags: Mapping[str, bool]) -> None:
        """All required acknowledgements must be true."""
        missing = [name for name in REQUIRED_CONSENTS if not flags.get(name)]
        if missing:
            raise ValidationError(
                "; ".join(CONSENT_ERRORS[name] for name in missing),
                details={"missing_consents": missing},
            )

    @staticmethod
    def consent_form() -> dict:
        return {
            "consent_version": settings.CONSENT_VERSION,
            "required_consents": list(REQUIRED_CONSENTS),
            "descriptions": dict(CONSENT_DESCRIPTIONS),
            "text": CONSENT_TEXTS[settings.CONSENT_VERSION],
        }

    @staticmethod
    def record_consent(
        db: Session,
        actor_token: str,
        content_type: str,
        content_ref: str,
        version: str,
        ip_address: Optional[str] = None,
    ) -> ConsentRecord:
        """Insert one immutable consent row.

        Not idempotent: calling twice for the same content stores two rows.
        """
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"Unknown content type '{content_type}'")
        if not content_ref:
            raise ValidationError("Content reference is required for consent")
        if version not in CONSENT_TEXTS:
            raise ValidationError(f"Unknown consent version '{version}'")

        record = ConsentRecord(
            actor_token=actor_token,
            content_type=content_type,
            content_ref=content_ref,
            consent_version=version,
            consent_text_hash=consent_text_hash(version),
            ip_address=ip_address,
        )
        with storage_errors(db, "consent record"):
            db.add(record)
            db.commit()
            db.refresh(record)
        logger.debug("Consent %s recorded for %s/%s", version, content_type, content_ref)
        return record

    @staticmethod
    def get_consent_records(db: Session, content_type: str, content_ref: str) -> list[ConsentRecord]:
        with storage_errors(db, "consent lookup"):
            return (
                db.query(ConsentRecord)
                .filter(
                    ConsentRecord.content_type == content_type,
                    ConsentRecord.content_ref == content_ref,
                )
                .order_by(ConsentRecord.recorded_at.asc(), ConsentRecord.id.asc())
                .all()
            )


consent_service = ConsentService()
