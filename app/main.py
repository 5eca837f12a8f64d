# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the StudySpark API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    StudySparkException,
    studyspark_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    ai,
    billing,
    gamification,
    health,
    notifications,
    reminders,
    subscriptions,
    tasks,
)
from app.auth import routes as auth_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs which integrations are configured so a missing key shows up at
    startup rather than on the first request that needs it.
    """
    logger.info(f"Starting StudySpark API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.paystack_enabled:
        logger.warning("PAYSTACK_SECRET_KEY not set: billing endpoints will fail")
    if not settings.onesignal_enabled:
        logger.warning("OneSignal not configured: push notifications will fail")
    if not settings.openai_enabled:
        logger.info("OPENAI_API_KEY not set: AI suggestions use rule-based output only")

    yield

    logger.info("Shutting down StudySpark API")


# Create FastAPI application
app = FastAPI(
    title="StudySpark API",
    description="""
## Student Productivity Backend

Tasks and reminders, a gamification layer (coins, streaks, achievements,
reward shop), tier-gated AI suggestions, push notifications, and
subscription billing.

### Tiers

| Tier | AI requests/day | AI requests/month |
|------|-----------------|-------------------|
| **free** | 10 | 300 |
| **premium** | 100 | 3000 |
| **enterprise** | unlimited | unlimited |

### Authentication

Send a Clerk session token as `Authorization: Bearer <token>`.
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "The authenticated caller's profile"},
        {"name": "AI", "description": "Tier-gated AI suggestions and usage"},
        {"name": "Subscriptions", "description": "Tiers, limits and the caller's subscription"},
        {"name": "Billing", "description": "Paystack checkout, webhooks and refunds"},
        {"name": "Gamification", "description": "Coins, reward shop, streaks and achievements"},
        {"name": "Notifications", "description": "Push subscriptions, delivery and streak reminders"},
        {"name": "Reminders", "description": "Reminder CRUD"},
        {"name": "Tasks", "description": "Task CRUD, recurrence and completion"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(StudySparkException)
async def handle_studyspark_exception(request: Request, exc: StudySparkException):
    """Handle domain exceptions raised by services."""
    return await studyspark_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(auth_routes.router, prefix="/api/v1", tags=["Auth"])

# Health check endpoints
app.include_router(health.router, prefix="/api/v1", tags=["Health"])

# AI suggestion endpoints
app.include_router(ai.router, prefix="/api/v1/ai", tags=["AI"])

# Subscription endpoints
app.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["Subscriptions"])

# Billing endpoints (includes the Paystack webhook)
app.include_router(billing.router, prefix="/api/v1/billing", tags=["Billing"])

# Coins, shop, streaks, achievements
app.include_router(gamification.router, prefix="/api/v1/gamification", tags=["Gamification"])

# Push notification endpoints
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])

# Reminder endpoints
app.include_router(reminders.router, prefix="/api/v1/reminders", tags=["Reminders"])

# Task endpoints
app.include_router(tasks.router, prefix="/api/v1/tasks", tags=["Tasks"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "StudySpark API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
