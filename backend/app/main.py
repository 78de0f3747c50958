"""
Trade Card Builder - FastAPI Application

Main entry point for the backend API.
Provides billing, quota, product draft, magic fill, export and photo endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import (
    billing,
    export,
    magic_fill,
    process_photo,
    product_drafts,
    quota,
    subscription,
    webhooks,
)
from app.config.settings import settings
from app.infrastructure.db.database import close_db, init_db, ping
from app.infrastructure.exceptions import (
    NotFoundError,
    ProviderError,
    QuotaExceededError,
    TradeCardError,
    UnauthorizedError,
    ValidationError,
    WebhookVerificationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Trade Card Builder backend starting in {settings.environment} mode...")

    if settings.database_url:
        try:
            await init_db()
            logger.info("Database connection pool initialized")
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database initialization skipped: {e}")

    yield

    if settings.database_url:
        await close_db()
        logger.info("Database connection pool closed")

    logger.info("Trade Card Builder backend shutting down...")


app = FastAPI(
    title="Trade Card Builder",
    description="Marketplace listing builder with plan-based quotas",
    version=settings.app_version,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================
# Starlette picks the handler of the closest class in the MRO, so subclasses
# (NotFoundError, WebhookVerificationError) win over their parents.

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors (including unknown quota features)."""
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(UnauthorizedError)
async def unauthorized_error_handler(request: Request, exc: UnauthorizedError):
    return JSONResponse(
        status_code=401,
        content=exc.to_dict(),
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(WebhookVerificationError)
async def webhook_verification_error_handler(request: Request, exc: WebhookVerificationError):
    """Bad webhook signature."""
    logger.warning(f"Rejected webhook on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=403, content=exc.to_dict())


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    """Handle not found errors."""
    return JSONResponse(status_code=404, content=exc.to_dict())


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_error_handler(request: Request, exc: QuotaExceededError):
    """Handle exhausted monthly allowances."""
    return JSONResponse(status_code=429, content=exc.to_dict())


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    """Billing provider call failed upstream."""
    logger.error(f"Billing provider error: {exc.message} {exc.details}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.exception_handler(TradeCardError)
async def general_error_handler(request: Request, exc: TradeCardError):
    """Handle all other application errors."""
    logger.error(f"Unhandled application error: {exc.message}", exc_info=exc.original_error)
    return JSONResponse(status_code=500, content=exc.to_dict())


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Database connectivity plus which integrations are configured."""
    database = "not-configured"
    if settings.database_url:
        try:
            await ping()
            database = "connected"
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Health check database ping failed: {e}")
            database = "unreachable"

    healthy = database != "unreachable"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": "trade-card-builder",
            "version": settings.app_version,
            "database": database,
            "services": settings.service_status(),
        },
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Trade Card Builder API",
        "version": settings.app_version,
        "docs": "/docs",
    }


# ============================================================================
# Register routers
# ============================================================================

app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(billing.router, prefix="/api", tags=["Billing"])
app.include_router(subscription.router, prefix="/api", tags=["Subscription"])
app.include_router(quota.router, prefix="/api", tags=["Quota"])
app.include_router(product_drafts.router, prefix="/api", tags=["Product Drafts"])
app.include_router(magic_fill.router, prefix="/api", tags=["Magic Fill"])
app.include_router(export.router, prefix="/api", tags=["Export"])
app.include_router(process_photo.router, prefix="/api", tags=["Photos"])
