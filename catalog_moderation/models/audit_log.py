"""Audit log model: append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from catalog_moderation.db.base import Base, utcnow


class AuditLog(Base):
    """Immutable audit trail for submission, review and permission mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(30), nullable=False, index=True)  # submission, permission, ...
    entity_id = Column(String(100), nullable=False)
    action = Column(String(20), nullable=False, index=True)  # create | update | delete
    actor_token = Column(String(255), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    old_data_json = Column(Text, nullable=True)
    new_data_json = Column(Text, nullable=True)
    metadata_json = Column(Text, nullable=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False, index=True)
