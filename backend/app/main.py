"""
HaircutFun - FastAPI Application

Main entry point for the backend API.
Provides endpoints for AI haircut try-on, subscriptions and the user gallery.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.infrastructure.exceptions import (
    HaircutFunError,
    ValidationError,
    NotFoundError,
    ConflictError,
    PaymentRequiredError,
    PermissionDeniedError,
    ContentBlockedError,
    UpstreamUnavailableError,
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
    logger.info(f"HaircutFun Backend starting in {settings.environment} mode...")

    if settings.database_url or settings.supabase_password:
        try:
            from app.infrastructure.db.database import init_db
            await init_db()
            logger.info("Database connection pool initialized")
        except Exception as e:
            logger.warning(f"Database initialization skipped: {e}")

    yield

    if settings.database_url or settings.supabase_password:
        try:
            from app.infrastructure.db.database import close_db
            await close_db()
            logger.info("Database connection pool closed")
        except Exception as e:
            logger.warning(f"Database shutdown error: {e}")

    logger.info("HaircutFun Backend shutting down...")


app = FastAPI(
    title="HaircutFun",
    description="AI hairstyle try-on with subscription billing",
    version="1.0.0",
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

ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (PaymentRequiredError, 402),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ContentBlockedError, 422),
    (UpstreamUnavailableError, 503),
]


def _status_for(exc: HaircutFunError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(HaircutFunError)
async def haircutfun_error_handler(request: Request, exc: HaircutFunError):
    """Map application errors to their HTTP status."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "haircutfun"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "HaircutFun API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from app.api.routes import (  # noqa: E402
    auth,
    checkout,
    generate,
    payment,
    subscriptions,
    user,
    user_images,
    webhooks,
)

app.include_router(generate.router, prefix="/api", tags=["Generation"])
app.include_router(user_images.router, prefix="/api", tags=["Gallery"])
app.include_router(checkout.router, prefix="/api", tags=["Checkout"])
app.include_router(payment.router, prefix="/api", tags=["Payments"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(user.router, prefix="/api", tags=["User"])
app.include_router(auth.router, prefix="/api", tags=["Auth"])
