"""Permission grant model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from catalog_moderation.db.base import Base, utcnow


class PermissionGrant(Base):
    """A capability held by an actor token. Revocation is a soft update."""
    __tablename__ = "permission_grants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_token = Column(String(255), nullable=False, index=True)
    capability = Column(String(50), nullable=False)  # admin, moderator, review, artwork.edit
    granted_by = Column(String(255), nullable=False)
    granted_at = Column(DateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_permission_grants_lookup", "actor_token", "capability", "is_active"),
    )
