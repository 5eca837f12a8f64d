# =============================================================================
# app/routers/subscriptions.py - Subscription Endpoints
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.auth import get_current_user, AuthUser
from core.models.subscription import SubscriptionOverview, TierConfig, UserSubscription
from core.services.subscription_service import SubscriptionService

router = APIRouter()


class CancelResponse(BaseModel):
    success: bool = True
    message: str
    subscription: UserSubscription


@router.get("/tiers", response_model=list[TierConfig])
async def list_tiers():
    """Available tiers with prices, quotas and feature flags. Public."""
    return SubscriptionService.get_available_tiers()


@router.get("/me", response_model=SubscriptionOverview)
async def get_my_subscription(user: AuthUser = Depends(get_current_user)):
    """The caller's tier, subscription row, limits and per-feature usage."""
    return SubscriptionService.get_overview(user.id)


@router.post("/cancel", response_model=CancelResponse)
async def cancel_subscription(
    user: AuthUser = Depends(get_current_user),
    immediate: Annotated[bool, Query(description="End access now instead of at period end")] = False,
):
    """
    Cancel the active subscription.

    Access continues until the end of the current billing period unless
    `immediate` is set.
    """
    subscription = SubscriptionService.cancel_user_subscription(user.id, immediate=immediate)
    message = (
        "Subscription cancelled. Access has ended"
        if immediate
        else "Subscription cancelled. Access continues until the end of the billing period"
    )
    return CancelResponse(message=message, subscription=UserSubscription(**subscription))
