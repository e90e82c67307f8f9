"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from catalog_moderation.core.config import settings
from catalog_moderation.core.middleware import setup_middleware
from catalog_moderation.core.rate_limiter import RateLimiter
from catalog_moderation.core.exceptions import ModerationError, RateLimitedError
from catalog_moderation.services.cache_service import CacheService
from catalog_moderation.services.collaborators import CatalogMaterializer, LoggingMaterializer

from catalog_moderation.api.submissions import router as submissions_router
from catalog_moderation.api.moderation import router as moderation_router
from catalog_moderation.api.admin import router as admin_router
from catalog_moderation.api.consent import router as consent_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("catalog_moderation")


def error_response(status_code: int, code: str, message: str,
                   details: Optional[dict] = None, headers: Optional[dict] = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API", settings.APP_NAME)
    if app.state.cache.health_check():
        logger.info("Redis connected")
    else:
        logger.warning("Redis not available; rate limits fail open and statistics are uncached")

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


def create_app(
    cache: Optional[CacheService] = None,
    rate_limiter: Optional[RateLimiter] = None,
    materializer: Optional[CatalogMaterializer] = None,
) -> FastAPI:
    """Build the app with its collaborators attached to ``app.state``."""
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Submission intake and moderation for the public-art catalog",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    cache = cache or CacheService()
    app.state.cache = cache
    app.state.rate_limiter = rate_limiter or RateLimiter(
        cache.client, enabled=settings.RATE_LIMITING_ENABLED,
    )
    app.state.materializer = materializer or LoggingMaterializer()

    # Middleware
    setup_middleware(app)

    @app.exception_handler(ModerationError)
    async def moderation_exception_handler(request: Request, exc: ModerationError):
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc.status_code, exc.code, exc.message, exc.details, headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]}
            for e in exc.errors()
        ]
        return error_response(400, "VALIDATION_ERROR", "Invalid request", {"errors": errors})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "INTERNAL_ERROR", "Internal server error")

    # Register routers
    app.include_router(submissions_router, prefix="/api")
    app.include_router(moderation_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(consent_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {"status": "ok", "redis": "ok" if app.state.cache.health_check() else "error"}

    return app


app = create_app()
