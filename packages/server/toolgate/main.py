"""
Toolgate API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from toolgate.core.audit import drain as drain_audit
from toolgate.core.config import get_settings
from toolgate.core.database import engine
from toolgate.core.errors import Upstream
from toolgate.core.logging import configure_logging
from toolgate.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from toolgate.core.redis import close_redis, get_redis
from toolgate.api.v1 import router as api_v1_router
from toolgate.api.v1.auth import router as auth_router

settings = get_settings()
log = structlog.get_logger()


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store failures surface as a generic 500; detail goes to the log only."""
    log.exception("db.error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=Upstream.status_code, content={"detail": Upstream.default_detail})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Toolgate",
        description="Access governance for internal tools: requests, reviews and audit.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )

    app.add_exception_handler(SQLAlchemyError, handle_database_error)

    # Auth routes (not org-scoped)
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: database and Redis must answer."""
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            redis = await get_redis()
            await redis.ping()
        except Exception:
            log.exception("readiness.failed")
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("toolgate.starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("toolgate.shutting_down")
        await drain_audit()
        await close_redis()

    return app


app = create_app()
