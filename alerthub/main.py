"""
Scam Alert Hub - FastAPI Application Entry Point

Community scam reports, crowd verification, and proximity / identifier
alerts delivered over push, email and SMS.

DESIGN PRINCIPLES:
- Report submission never fails because enrichment or alerting failed
- Trust scores are always recomputable from stored votes
- One alert per (recipient, report, alert type), each channel sent at most once
"""

import logging
import sys
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alerthub.config.firebase import initialize_firestore
from alerthub.core.context import AppContext, LifecycleState, current_context, set_context
from alerthub.core.exceptions import (
    AlertHubError,
    AlertNotFoundError,
    ReportNotFoundError,
    ReportUpdateConflictError,
    UserNotFoundError,
)
from alerthub.core.settings import settings
from alerthub.routes import alerts, health, live, reports, users

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Community scam reports with crowd verification and proximity alerts",
    debug=settings.DEBUG
)


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Service errors that escaped a route's own handling
@app.exception_handler(AlertHubError)
async def service_exception_handler(request: Request, exc: AlertHubError):
    if isinstance(exc, (ReportNotFoundError, AlertNotFoundError, UserNotFoundError)):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})
    if isinstance(exc, ReportUpdateConflictError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)}
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log request validation errors and return them to the client."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()}
    )


# CORS: origins come from settings (comma-separated), never "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Build the application context: Firestore, channel senders, live feed,
    scorers and the alert dispatcher.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    existing = current_context()
    if existing is not None and existing.state == LifecycleState.READY:
        logger.info("Application context already installed, reusing it")
        return

    try:
        db = initialize_firestore()
    except Exception as e:
        logger.error(f"Firestore initialization failed: {e}")
        logger.error("The app will start but database operations will fail.")
        return
    set_context(AppContext(db=db).initialize())


@app.on_event("shutdown")
async def shutdown_event():
    """Close channel transports and drop live subscribers."""
    logger.info(f"Shutting down {settings.APP_NAME}")
    context = current_context()
    if context is not None:
        context.shutdown()
    set_context(None)


# Include routers
app.include_router(health.router)
app.include_router(reports.router)
app.include_router(alerts.router)
app.include_router(users.router)
app.include_router(live.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "live": "/live/ws?user_id={user_id}&lat={lat}&lng={lng}"
    }
