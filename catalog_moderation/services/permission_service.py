"""Permission resolver and grant management."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from catalog_moderation.core.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, ValidationError,
)
from catalog_moderation.db.base import utcnow
from catalog_moderation.db.session import storage_errors
from catalog_moderation.models.permission import PermissionGrant
from catalog_moderation.services.audit_service import audit_service, RequestMeta

logger = logging.getLogger("catalog_moderation")

CAPABILITIES = ("admin", "moderator", "review", "artwork.edit")
REVIEW_CAPABILITIES = ("review", "moderator", "admin")

# Lower value wins when an actor holds several of the requested capabilities.
CAPABILITY_PRIORITY = {"admin": 0, "moderator": 1, "review": 1, "artwork.edit": 2}


@dataclass
class PermissionCheck:
    granted: bool
    capability: Optional[str] = None
    granted_at: Optional[datetime] = None
    granted_by: Optional[str] = None


class PermissionService:
    """Answers capability questions and manages grants."""

    @staticmethod
    def has_permission(db: Session, actor_token: str, capability: str) -> PermissionCheck:
        """Most recent active grant of ``capability``; missing grants are a plain denial."""
        with storage_errors(db, "permission lookup"):
            grant = (
                db.query(PermissionGrant)
                .filter(
                    PermissionGrant.actor_token == actor_token,
                    PermissionGrant.capability == capability,
                    PermissionGrant.is_active.is_(True),
                )
                .order_by(PermissionGrant.granted_at.desc(), PermissionGrant.id.desc())
                .first()
            )
        if grant is None:
            return PermissionCheck(granted=False)
        return PermissionCheck(
            granted=True,
            capability=grant.capability,
            granted_at=grant.granted_at,
            granted_by=grant.granted_by,
        )

    @staticmethod
    def has_any_permission(
        db: Session, actor_token: str, capabilities: Iterable[str]
    ) -> PermissionCheck:
        capabilities = list(capabilities)
        if not capabilities:
            return PermissionCheck(granted=False)
        with storage_errors(db, "permission lookup"):
            grants = (
                db.query(PermissionGrant)
                .filter(
                    PermissionGrant.actor_token == actor_token,
                    PermissionGrant.capability.in_(capabilities),
                    PermissionGrant.is_active.is_(True),
                )
                .all()
            )
        if not grants:
            return PermissionCheck(granted=False)
        best = sorted(
            grants,
            key=lambda g: (CAPABILITY_PRIORITY.get(g.capability, 9), -g.granted_at.timestamp()),
        )[0]
        return PermissionCheck(
            granted=True,
            capability=best.capability,
            granted_at=best.granted_at,
            granted_by=best.granted_by,
        )

    @staticmethod
    def can_review(db: Session, actor_token: str) -> bool:
        return PermissionService.has_any_permission(db, actor_token, REVIEW_CAPABILITIES).granted

    @staticmethod
    def is_admin(db: Session, actor_token: str) -> bool:
        return PermissionService.has_permission(db, actor_token, "admin").granted

    @staticmethod
    def list_grants(db: Session, capability: Optional[str] = None) -> list[dict]:
        """Active grants grouped per actor, for the admin permissions screen."""
        with storage_errors(db, "permission list"):
            query = db.query(PermissionGrant).filter(PermissionGrant.is_active.is_(True))
            if capability:
                query = query.filter(PermissionGrant.capability == capability)
            grants = query.order_by(
                PermissionGrant.actor_token, PermissionGrant.granted_at.desc()
            ).all()

        users: dict[str, dict] = {}
        for g in grants:
            entry = users.setdefault(g.actor_token, {"actor_token": g.actor_token, "permissions": []})
            entry["permissions"].append({
                "capability": g.capability,
                "granted_at": g.granted_at,
                "granted_by": g.granted_by,
                "notes": g.notes,
            })
        return list(users.values())

    @staticmethod
    def _validate_change(admin_token: str, target_token: str, capability: str) -> None:
        if not target_token or not target_token.strip():
            raise ValidationError("Target actor token is required")
        if capability not in CAPABILITIES:
            raise ValidationError(
                f"Unknown capability '{capability}'. Valid: {', '.join(CAPABILITIES)}"
            )
        if admin_token == target_token and capability == "admin":
            raise ValidationError("Administrators cannot modify their own admin permission")

    @staticmethod
    def grant_permission(
        db: Session,
        admin_token: str,
        target_token: str,
        capability: str,
        notes: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> PermissionGrant:
        """Grant ``capability`` to ``target_token`` on behalf of an admin."""
        if not PermissionService.is_admin(db, admin_token):
            raise AuthorizationError("Admin permission required")
        PermissionService._validate_change(admin_token, target_token, capability)

        if PermissionService.has_permission(db, target_token, capability).granted:
            raise ConflictError(f"Actor already has '{capability}' permission")

        grant, grant_id = PermissionService._insert_grant(
            db, target_token, capability, admin_token, notes
        )
        audit_service.record_from_request(
            db, request_meta,
            entity_type="permission",
            entity_id=str(grant_id),
            action="create",
            actor_token=admin_token,
            new_data={"actor_token": target_token, "capability": capability, "is_active": True},
            metadata={"action_type": "grant_permission", "notes": notes},
        )
        logger.info("Granted %s to %s (by %s)", capability, target_token, admin_token)
        PermissionService._reload(db, grant)
        return grant

    @staticmethod
    def revoke_permission(
        db: Session,
        admin_token: str,
        target_token: str,
        capability: str,
        reason: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> int:
        """Soft-revoke every active grant of ``capability``; returns rows changed."""
        if not PermissionService.is_admin(db, admin_token):
            raise AuthorizationError("Admin permission required")
        PermissionService._validate_change(admin_token, target_token, capability)

        values = {
            PermissionGrant.is_active: False,
            PermissionGrant.revoked_at: utcnow(),
            PermissionGrant.revoked_by: admin_token,
        }
        if reason:
            values[PermissionGrant.notes] = (
                func.coalesce(PermissionGrant.notes + " | ", "") + reason
            )

        with storage_errors(db, "permission revoke"):
            changed = (
                db.query(PermissionGrant)
                .filter(
                    PermissionGrant.actor_token == target_token,
                    PermissionGrant.capability == capability,
                    PermissionGrant.is_active.is_(True),
                )
                .update(values, synchronize_session=False)
            )
            db.commit()

        if changed == 0:
            raise NotFoundError(f"Actor has no active '{capability}' permission")

        audit_service.record_from_request(
            db, request_meta,
            entity_type="permission",
            entity_id=f"{target_token}:{capability}",
            action="update",
            actor_token=admin_token,
            old_data={"actor_token": target_token, "capability": capability, "is_active": True},
            new_data={"actor_token": target_token, "capability": capability, "is_active": False},
            metadata={"action_type": "revoke_permission", "reason": reason},
        )
        logger.info("Revoked %s from %s (by %s)", capability, target_token, admin_token)
        return changed

    @staticmethod
    def bootstrap_admin(db: Session, target_token: str, notes: Optional[str] = None) -> Optional[PermissionGrant]:
        """Grant ``admin`` without an existing admin; used by the CLI on first setup."""
        if PermissionService.is_admin(db, target_token):
            return None
        grant, grant_id = PermissionService._insert_grant(db, target_token, "admin", "system", notes)
        audit_service.record(
            db,
            entity_type="permission",
            entity_id=str(grant_id),
            action="create",
            actor_token="system",
            new_data={"actor_token": target_token, "capability": "admin", "is_active": True},
            metadata={"action_type": "grant_permission", "bootstrap": True},
        )
        PermissionService._reload(db, grant)
        return grant

    @staticmethod
    def _insert_grant(
        db: Session, target_token: str, capability: str, granted_by: str, notes: Optional[str]
    ) -> tuple[PermissionGrant, int]:
        grant = PermissionGrant(
            actor_token=target_token,
            capability=capability,
            granted_by=granted_by,
            notes=notes,
        )
        with storage_errors(db, "permission grant"):
            db.add(grant)
            db.flush()
            grant_id = grant.id
            db.commit()
        return grant, grant_id

    @staticmethod
    def _reload(db: Session, grant: PermissionGrant) -> None:
        with storage_errors(db, "permission reload"):
            db.refresh(grant)


permission_service = PermissionService()
