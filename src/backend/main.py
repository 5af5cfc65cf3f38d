"""
Flash Survey Backend Application

Short-lived anonymous surveys with one vote per IP per survey.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url

from api.deps import get_redis_service
from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from services.redis_service import RedisService, RedisUnavailableError

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Short-lived anonymous surveys with per-IP vote admission",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    # 1. Security headers - added to all responses
    application.add_middleware(SecurityHeadersMiddleware)

    # 2. Request id bound to the log context
    application.add_middleware(RequestContextMiddleware)

    # 3. CORS - restricted to specific methods and headers
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Request-ID",
        ],
        expose_headers=[
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-Request-ID",
        ],
    )

    # 4. GZip compression for responses
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed request bodies as 400 with the field errors."""
        logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request",
                "details": jsonable_encoder(exc.errors(), exclude={"input", "ctx", "url"}),
            },
        )

    # Add global exception handler to ensure CORS headers are present on error responses
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler to catch unhandled exceptions.

        Returns a structured JSON 500 so clients never see a bare error page.
        """
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
            },
        )

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "flash-survey-api"}


@app.get("/health/services", tags=["Health"])
async def service_status(redis: RedisService = Depends(get_redis_service)) -> dict:
    """
    Service status endpoint for deployment validation.

    Pings Redis and reports the database configuration. A Redis outage
    reports ``degraded``: submissions are still accepted, without the
    per-IP check.
    """
    try:
        latency_ms = await redis.ping()
        redis_status = {"available": True, "latency_ms": round(latency_ms, 2)}
    except RedisUnavailableError as e:
        logger.warning("redis_health_check_failed", error=str(e))
        redis_status = {"available": False, "latency_ms": None}

    database_url = make_url(settings.DATABASE_URL)
    services = {
        "redis": redis_status,
        "database": {
            "configured": bool(settings.DATABASE_URL),
            "details": {
                "host": database_url.host or "not set",
                "database": database_url.database,
            },
        },
    }

    healthy = redis_status["available"] and services["database"]["configured"]

    return {
        "status": "healthy" if healthy else "degraded",
        "services": services,
    }


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }
