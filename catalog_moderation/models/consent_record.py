"""Consent record model: append-only."""

from sqlalchemy import Column, Integer, String, DateTime
from catalog_moderation.db.base import Base, utcnow


class ConsentRecord(Base):
    """Immutable proof that an actor accepted a consent version before contributing.

    Rows are inserted once and never updated or deleted.
    """
    __tablename__ = "consent_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_token = Column(String(255), nullable=False, index=True)
    content_type = Column(String(20), nullable=False)  # artwork | artist | submission
    content_ref = Column(String(64), nullable=False, index=True)
    consent_version = Column(String(50), nullable=False)
    consent_text_hash = Column(String(64), nullable=False)
    ip_address = Column(String(45), nullable=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)
