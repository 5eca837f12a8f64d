# =============================================================================
# app/routers/ai.py - AI Suggestion Endpoints
# =============================================================================
# Tier- and quota-gated AI features. The heavy lifting (limits, tier checks,
# processors) lives in AISuggestionService.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth import get_current_user, AuthUser
from app.exceptions import ValidationFailedError
from core.models.ai import AISuggestionRequest, AISuggestionResponse
from core.models.subscription import SubscriptionCheckResult, UsageLimits
from core.services.ai_suggestion_service import AISuggestionService
from core.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/suggestions", response_model=AISuggestionResponse)
async def create_suggestions(
    request: AISuggestionRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Run an AI feature over the caller's tasks.

    Returns 403 when the daily/monthly quota is used up or the tier is too
    low for the feature, and 400 for a missing or unknown feature. Usage is
    only counted when the feature succeeds.
    """
    if not request.feature or not request.feature.strip():
        raise ValidationFailedError("Feature is required", field="feature")

    return AISuggestionService.process_request(
        user_id=user.id,
        feature=request.feature.strip(),
        tasks=request.tasks,
        context=request.context,
    )


@router.get("/usage", response_model=UsageLimits)
async def get_usage(user: AuthUser = Depends(get_current_user)):
    """Today's and this month's AI request counts against the caller's limits."""
    return SubscriptionService.get_limits(user.id)


@router.get("/check", response_model=SubscriptionCheckResult)
async def check_feature(
    feature: Annotated[str, Query(min_length=1, description="Feature the client is about to request")],
    user: AuthUser = Depends(get_current_user),
):
    """Whether the caller can run the feature now, for gating UI before a request."""
    return SubscriptionService.can_user_make_ai_request(user.id, feature.strip())
