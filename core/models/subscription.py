# =============================================================================
# core/models/subscription.py - Subscription & Usage Schemas
# =============================================================================
# These models describe subscription tiers and AI usage quotas:
# - SubscriptionTier: enum of tier names, ordered free < premium < enterprise
# - TierConfig: limits, prices and feature flags for one tier
# - UsageLimits: a user's quota state for today and this month
# - SubscriptionCheckResult: answer to "can this user make an AI request?"
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

UNLIMITED = -1


class SubscriptionTier(str, Enum):
    """
    Subscription levels gating AI features and quotas.

    Hierarchy: free (0) < premium (1) < enterprise (2)
    """
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return TIER_HIERARCHY[self.value]

    @classmethod
    def from_value(cls, value: str | None) -> "SubscriptionTier":
        """Parse a tier name, treating unknown/missing values as free."""
        try:
            return cls(value) if value else cls.FREE
        except ValueError:
            return cls.FREE


TIER_HIERARCHY = {
    "free": 0,
    "premium": 1,
    "enterprise": 2,
}


class SubscriptionStatus(str, Enum):
    """Lifecycle of a user_subscriptions row."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class BillingPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TierConfig(BaseModel):
    """
    Limits and pricing for one tier.

    A limit of -1 means unlimited.
    """

    id: SubscriptionTier
    display_name: str
    ai_requests_per_day: int = Field(..., ge=UNLIMITED)
    ai_requests_per_month: int = Field(..., ge=UNLIMITED)

    # Prices are in major currency units (GHS)
    price_monthly: float = Field(default=0.0, ge=0)
    price_yearly: float = Field(default=0.0, ge=0)

    # Feature flags, e.g. {"basic_ai": true, "study_planning": false}
    features: dict[str, bool] = Field(default_factory=dict)

    def price_for(self, period: BillingPeriod | str) -> float:
        period = BillingPeriod(period)
        return self.price_yearly if period == BillingPeriod.YEARLY else self.price_monthly


class UsageLimits(BaseModel):
    """
    A user's AI quota state.

    Remaining counts are None for unlimited tiers.
    """

    tier: SubscriptionTier
    daily_limit: int
    monthly_limit: int
    daily_used: int = Field(default=0, ge=0)
    monthly_used: int = Field(default=0, ge=0)
    daily_remaining: int | None = None
    monthly_remaining: int | None = None
    can_use_ai: bool
    days_until_reset: int = 1


class SubscriptionCheckResult(BaseModel):
    """Answer to whether a user may make one more AI request for a feature."""

    can_proceed: bool
    tier: SubscriptionTier
    remaining_requests: int | None = None
    limit_type: Literal["daily", "monthly", "none"] = "none"
    upgrade_required: bool = False
    message: str = ""


class UserSubscription(BaseModel):
    """Row from user_subscriptions."""

    id: str | None = None
    clerk_user_id: str
    tier_id: SubscriptionTier = SubscriptionTier.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    billing_period: BillingPeriod | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False
    paystack_customer_id: str | None = None
    paystack_subscription_code: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SubscriptionOverview(BaseModel):
    """GET /subscriptions/me response."""

    tier: SubscriptionTier
    subscription: UserSubscription | None = None
    limits: UsageLimits
    feature_usage: dict[str, int] = Field(default_factory=dict)
