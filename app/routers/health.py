# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# /health for load balancers, /health/ready for deploy gates (Supabase and
# the Redis broker must answer), /health/live for process supervisors.
# =============================================================================

from typing import Callable

import redis
from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from lib.supabase_client import SupabaseClient
from lib.utils import utcnow

router = APIRouter()

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    database: str
    redis: str


class ProvidersResponse(BaseModel):
    """Which optional integrations have credentials configured."""
    paystack: bool
    onesignal: bool
    openai: bool


class ReadinessResponse(BaseModel):
    status: str
    checks: ChecksResponse
    providers: ProvidersResponse
    timestamp: str


class LivenessResponse(BaseModel):
    status: str
    timestamp: str


def _run_check(check: Callable[[], object]) -> str:
    """Run a connectivity check and describe the outcome."""
    try:
        check()
    except Exception as e:
        return f"unhealthy: {str(e)[:50]}"
    return "healthy"


def _ping_database() -> None:
    SupabaseClient.get_client().table("subscription_tiers").select("id").limit(1).execute()


def _ping_redis() -> None:
    redis.Redis.from_url(settings.REDIS_URL, socket_connect_timeout=2).ping()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(
        status="healthy",
        timestamp=utcnow().isoformat(),
        environment=settings.ENVIRONMENT,
        version=API_VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Check Supabase and Redis connectivity.

    Reports `degraded` if either is unreachable. Missing provider
    credentials are reported but don't affect the status.
    """
    checks = ChecksResponse(database=_run_check(_ping_database), redis=_run_check(_ping_redis))
    ready = checks.database == "healthy" and checks.redis == "healthy"

    return ReadinessResponse(
        status="ready" if ready else "degraded",
        checks=checks,
        providers=ProvidersResponse(
            paystack=settings.paystack_enabled,
            onesignal=settings.onesignal_enabled,
            openai=settings.openai_enabled,
        ),
        timestamp=utcnow().isoformat(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    return LivenessResponse(status="alive", timestamp=utcnow().isoformat())
