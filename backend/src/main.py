# pyright: reportMissingTypeStubs=false
"""
Booking Engine Backend API

A FastAPI application serving doctor availability and booking endpoints
for the healthcare marketplace.

Features:
- Bookable slot computation from weekly rules, exceptions and external calendars
- Booking creation with conflict arbitration
- Google Calendar connection and busy-time sync
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import availability, bookings, calendar, cron, schedule, webhooks
from api.errors import register_exception_handlers
from core.constants import CORS_ORIGINS
from services.booking_scheduler import start_booking_scheduler, stop_booking_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Booking Engine API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Booking Engine Backend API")

    # Note: Database sessions are created fresh for each scheduler run
    try:
        await start_booking_scheduler()
        logger.info("✅ Booking scheduler started")
    except Exception as e:
        logger.exception(f"❌ Failed to start booking scheduler: {e}")

    yield

    try:
        await stop_booking_scheduler()
        logger.info("🛑 Booking scheduler stopped")
    except Exception as e:
        logger.exception(f"❌ Error stopping booking scheduler: {e}")

    logger.info("🛑 Shutting down Booking Engine Backend API")


# Create FastAPI application
app = FastAPI(
    title="Booking Engine Backend",
    description="Doctor availability and booking conflict resolution",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(
    availability.router,
    prefix="/api",
    tags=["availability"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    bookings.router,
    prefix="/api",
    tags=["bookings"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    schedule.router,
    prefix="/api",
    tags=["schedule"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    calendar.router,
    prefix="/api",
    tags=["calendar"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        502: {"description": "Calendar provider error"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    webhooks.router,
    prefix="/api/webhooks",
    tags=["webhooks"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
    },
)
app.include_router(
    cron.router,
    prefix="/api/cron",
    tags=["cron"],
    responses={
        401: {"description": "Unauthorized"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Booking Engine Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )
