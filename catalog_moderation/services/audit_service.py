"""Audit service: append-only audit trail for all mutations."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.audit_log import AuditLog

logger = logging.getLogger("catalog_moderation")


@dataclass
class RequestMeta:
    """Caller network details captured at the HTTP boundary."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if not ip:
            ip = request.client.host if request.client else None
        ua = request.headers.get("user-agent", "")[:500]
        return cls(ip_address=ip or None, user_agent=ua or None)


def _dumps(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def _loads(raw: Optional[str]) -> Optional[Any]:
    if raw is None:
        return None
    return json.loads(raw)


class AuditService:
    """Records immutable audit log entries for moderation events."""

    @staticmethod
    def record(
        db: Session,
        entity_type: str,
        entity_id: str,
        action: str,
        actor_token: Optional[str],
        old_data: Optional[Any] = None,
        new_data: Optional[Any] = None,
        metadata: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Write a single audit log record.

        Commits immediately and independently of the mutation being audited.
        A failed write is rolled back, logged, and reported as None; the
        audited change has already been committed by its own call.
        """
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            actor_token=actor_token,
            old_data_json=_dumps(old_data),
            new_data_json=_dumps(new_data),
            metadata_json=_dumps(metadata),
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "Failed to write audit entry %s %s/%s", action, entity_type, entity_id
            )
            return None
        return entry

    @staticmethod
    def record_from_request(
        db: Session,
        request_meta: Optional[RequestMeta],
        entity_type: str,
        entity_id: str,
        action: str,
        actor_token: Optional[str],
        old_data: Optional[Any] = None,
        new_data: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        """Write audit log taking IP and user-agent from the captured request."""
        meta = request_meta or RequestMeta()
        return AuditService.record(
            db=db,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_token=actor_token,
            old_data=old_data,
            new_data=new_data,
            metadata=metadata,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

    @staticmethod
    def recent_for_actor(db: Session, actor_token: str, limit: int = 50) -> list[AuditLog]:
        with storage_errors(db, "audit lookup"):
            return (
                db.query(AuditLog)
                .filter(AuditLog.actor_token == actor_token)
                .order_by(AuditLog.recorded_at.desc(), AuditLog.id.desc())
                .limit(limit)
                .all()
            )

    @staticmethod
    def counts_by_action(db: Session, since: Optional[datetime] = None) -> dict[str, int]:
        with storage_errors(db, "audit counts"):
            query = db.query(AuditLog.action, func.count(AuditLog.id))
            if since is not None:
                query = query.filter(AuditLog.recorded_at >= since)
            rows = query.group_by(AuditLog.action).all()
        return {action: count for action, count in rows}

    @staticmethod
    def query_logs(
        db: Session,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        actor_token: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        per_page: int = 50,
    ):
        """Query audit logs with filters and pagination."""
        with storage_errors(db, "audit query"):
            query = db.query(AuditLog)

            if entity_type:
                query = query.filter(AuditLog.entity_type == entity_type)
            if action:
                query = query.filter(AuditLog.action == action)
            if actor_token:
                query = query.filter(AuditLog.actor_token == actor_token)
            if start:
                query = query.filter(AuditLog.recorded_at >= start)
            if end:
                query = query.filter(AuditLog.recorded_at <= end)

            total = query.count()
            logs = (
                query.order_by(AuditLog.recorded_at.desc(), AuditLog.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
                .all()
            )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "per_page": per_page,
        }

    @staticmethod
    def to_dict(entry: AuditLog) -> dict:
        return {
            "id": entry.id,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "action": entry.action,
            "actor_token": entry.actor_token,
            "ip_address": entry.ip_address,
            "user_agent": entry.user_agent,
            "old_data": _loads(entry.old_data_json),
            "new_data": _loads(entry.new_data_json),
            "metadata": _loads(entry.metadata_json),
            "recorded_at": entry.recorded_at,
        }


audit_service = AuditService()
