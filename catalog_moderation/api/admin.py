"""Admin API router: permissions, audit log, statistics."""

from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from catalog_moderation.api.deps import get_cache, get_rate_limiter, get_request_meta
from catalog_moderation.core.config import settings
from catalog_moderation.core.exceptions import ValidationError
from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.core.security import get_current_actor, require_admin
from catalog_moderation.db.session import get_db
from catalog_moderation.schemas.schemas import (
    AuditLogOut, PermissionChangeRequest, PermissionGrantOut, ok, paginated,
)
from catalog_moderation.services.audit_service import audit_service, RequestMeta
from catalog_moderation.services.cache_service import CacheService
from catalog_moderation.services.moderation_service import clamp_per_page
from catalog_moderation.services.permission_service import permission_service
from catalog_moderation.services.stats_service import stats_service, clamp_window

router = APIRouter(prefix="/admin", tags=["admin"])


def parse_iso_date(value: Optional[str], field: str) -> Optional[datetime]:
    """ISO-8601 string to naive UTC; 400 on anything unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {field} format. Use ISO 8601 format.")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@router.get("/permissions")
async def list_permissions(
    capability: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    """Active grants grouped by actor (admin only)."""
    users = permission_service.list_grants(db, capability)
    return ok({"users": users, "total": len(users)})


@router.post("/permissions/grant", status_code=201)
async def grant_permission(
    body: PermissionChangeRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
    meta: RequestMeta = Depends(get_request_meta),
):
    grant = permission_service.grant_permission(
        db, actor, body.actor_token, body.capability, body.notes, request_meta=meta,
    )
    return ok(PermissionGrantOut.model_validate(grant))


@router.post("/permissions/revoke")
async def revoke_permission(
    body: PermissionChangeRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db),
    meta: RequestMeta = Depends(get_request_meta),
):
    changed = permission_service.revoke_permission(
        db, actor, body.actor_token, body.capability, body.notes, request_meta=meta,
    )
    return ok({"actor_token": body.actor_token, "capability": body.capability, "revoked": changed})


@router.get("/audit")
async def get_audit_logs(
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    actor_token: Optional[str] = Query(None, alias="actor"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    if page < 1:
        raise ValidationError("Page must be 1 or greater")
    start = parse_iso_date(start_date, "startDate")
    end = parse_iso_date(end_date, "endDate")
    per_page = clamp_per_page(limit)
    result = audit_service.query_logs(
        db, entity_type, action, actor_token, start, end, page, per_page,
    )
    return ok(paginated(
        [AuditLogOut(**audit_service.to_dict(log)) for log in result["logs"]],
        result["total"],
        result["page"],
        result["per_page"],
    ))


@router.get("/statistics")
async def get_statistics(
    days: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    cache: Optional[CacheService] = Depends(get_cache),
    actor: str = Depends(require_admin),
):
    """Moderation and admin activity over the last ``days`` (cached briefly)."""
    window = clamp_window(days)
    cache_key = f"stats:{window}"
    if cache is not None:
        cached = cache.get_json(cache_key)
        if cached is not None:
            return ok(cached)

    stats = stats_service.get_statistics(db, window)
    stats["permissions"] = {
        "users": len(permission_service.list_grants(db)),
        "moderators": len(permission_service.list_grants(db, "moderator")),
        "admins": len(permission_service.list_grants(db, "admin")),
    }
    if cache is not None:
        cache.set_json(cache_key, stats, settings.STATS_CACHE_TTL_SECONDS)
    return ok(stats)


class RateLimitReset(BaseModel):
    scope: str
    key: str


@router.post("/rate-limits/reset")
async def reset_rate_limit(
    body: RateLimitReset,
    rate_limiter: Optional[RateLimiter] = Depends(get_rate_limiter),
    actor: str = Depends(require_admin),
):
    """Clear one rate-limit counter (e.g. after a false positive)."""
    if rate_limiter is not None:
        rate_limiter.reset(body.scope, body.key)
    return ok({"scope": body.scope, "key": body.key, "reset": rate_limiter is not None})
