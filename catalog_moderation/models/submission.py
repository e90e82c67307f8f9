"""Submission model: proposed changes awaiting moderation."""

import uuid

from sqlalchemy import Column, String, Text, Float, DateTime, Index
from catalog_moderation.db.base import Base, utcnow


def new_submission_id() -> str:
    return str(uuid.uuid4())


class Submission(Base):
    """A proposed new catalog entry or edit to an existing artwork/artist.

    Payloads are stored as JSON text with field order preserved. While a
    submission is pending, ``pending_key`` holds "<subject_ref>:<actor>"
    so the unique index rejects a second pending row for the same subject and
    actor; it is cleared on every transition out of pending.
    """
    __tablename__ = "submissions"

    id = Column(String(36), primary_key=True, default=new_submission_id)
    submission_type = Column(String(20), nullable=False, index=True)  # new_entry | field_edit
    subject_type = Column(String(20), nullable=False, index=True)  # artwork | artist
    subject_ref = Column(String(64), nullable=True, index=True)
    actor_token = Column(String(255), nullable=False, index=True)
    payload_old_json = Column(Text, nullable=False, default="{}")
    payload_new_json = Column(Text, nullable=False, default="{}")
    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)
    submitter_notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    pending_key = Column(String(400), nullable=True, unique=True)
    reviewer_token = Column(String(255), nullable=True)
    review_notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    reviewed_at = Column(DateTime, nullable=True, index=True)

    __table_args__ = (
        Index("ix_submissions_subject_actor_status", "subject_ref", "actor_token", "status"),
    )
