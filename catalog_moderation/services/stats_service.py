"""Moderation and admin activity statistics."""

from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from catalog_moderation.core.config import settings
from catalog_moderation.db.base import utcnow
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.audit_log import AuditLog
from catalog_moderation.models.submission import Submission


def clamp_window(window_days: Optional[int]) -> int:
    if window_days is None:
        return settings.STATS_DEFAULT_WINDOW_DAYS
    return max(1, min(settings.STATS_MAX_WINDOW_DAYS, window_days))


class StatsService:

    @staticmethod
    def get_statistics(db: Session, window_days: Optional[int] = None) -> dict:
        """Counts over the last ``window_days`` (clamped to 1..STATS_MAX_WINDOW_DAYS)."""
        days = clamp_window(window_days)
        since = utcnow() - timedelta(days=days)

        with storage_errors(db, "statistics"):
            decisions = dict(
                db.query(Submission.status, func.count(Submission.id))
                .filter(
                    Submission.reviewed_at.isnot(None),
                    Submission.reviewed_at >= since,
                )
                .group_by(Submission.status)
                .all()
            )

            permission_actions = dict(
                db.query(AuditLog.action, func.count(AuditLog.id))
                .filter(AuditLog.entity_type == "permission", AuditLog.recorded_at >= since)
                .group_by(AuditLog.action)
                .all()
            )

            by_status = dict(
                db.query(Submission.status, func.count(Submission.id))
                .filter(Submission.created_at >= since)
                .group_by(Submission.status)
                .all()
            )
            by_type = dict(
                db.query(Submission.submission_type, func.count(Submission.id))
                .filter(Submission.created_at >= since)
                .group_by(Submission.submission_type)
                .all()
            )

            day = func.date(AuditLog.recorded_at)
            activity = (
                db.query(day, AuditLog.entity_type, AuditLog.action, func.count(AuditLog.id))
                .filter(AuditLog.recorded_at >= since)
                .group_by(day, AuditLog.entity_type, AuditLog.action)
                .order_by(day.desc(), AuditLog.entity_type, AuditLog.action)
                .all()
            )

        approved = decisions.get("approved", 0)
        rejected = decisions.get("rejected", 0)
        archived = decisions.get("archived", 0)
        grants = permission_actions.get("create", 0)
        revokes = permission_actions.get("update", 0)

        return {
            "period_days": days,
            "moderationDecisions": {
                "total": approved + rejected + archived,
                "approved": approved,
                "rejected": rejected,
                "archived": archived,
            },
            "adminActions": {
                "total": grants + revokes,
                "permissionGrants": grants,
                "permissionRevokes": revokes,
            },
            "submissions": {
                "total": sum(by_status.values()),
                "byStatus": {s: by_status.get(s, 0) for s in ("pending", "approved", "rejected", "archived")},
                "byType": {t: by_type.get(t, 0) for t in ("new_entry", "field_edit")},
            },
            "recentActivity": [
                {"date": str(d), "entity_type": entity_type, "action": action, "count": count}
                for d, entity_type, action, count in activity
            ],
        }


stats_service = StatsService()
