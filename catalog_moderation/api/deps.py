"""Request-scoped dependencies for collaborators created at startup."""

from typing import Optional

from fastapi import Request

from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.services.audit_service import RequestMeta
from catalog_moderation.services.cache_service import CacheService
from catalog_moderation.services.collaborators import CatalogMaterializer


def get_rate_limiter(request: Request) -> Optional[RateLimiter]:
    return getattr(request.app.state, "rate_limiter", None)


def get_materializer(request: Request) -> Optional[CatalogMaterializer]:
    return getattr(request.app.state, "materializer", None)


def get_cache(request: Request) -> Optional[CacheService]:
    return getattr(request.app.state, "cache", None)


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta.from_request(request)
