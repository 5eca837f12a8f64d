# =============================================================================
# core/services/subscription_service.py - Tiers, Quotas & Subscriptions
# =============================================================================
# Decides what a user may do with AI features:
# - which tier they're on (active subscription, else free)
# - how many AI requests they've made today / this month
# - whether a feature is available on their tier
#
# Also owns the subscription lifecycle (activate, extend, cancel) used by
# billing. Usage is counted in ai_usage_tracking, one row per user per day.
# =============================================================================

import logging
from datetime import date, datetime
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import add_billing_period, today_utc, utcnow
from core.models.subscription import (
    UNLIMITED,
    BillingPeriod,
    SubscriptionCheckResult,
    SubscriptionOverview,
    SubscriptionStatus,
    SubscriptionTier,
    TierConfig,
    UsageLimits,
    UserSubscription,
)
from app.exceptions import SubscriptionNotFoundError, TierNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# Tier Catalogue
# =============================================================================

_FREE_FEATURES = {
    "basic_ai": True,
    "task_suggestions": True,
    "study_planning": False,
    "voice_notes": False,
    "premium_features": False,
    "priority_support": False,
    "analytics": False,
    "unlimited_ai": False,
}

DEFAULT_TIER_CONFIGS: dict[SubscriptionTier, TierConfig] = {
    SubscriptionTier.FREE: TierConfig(
        id=SubscriptionTier.FREE,
        display_name="Free",
        ai_requests_per_day=10,
        ai_requests_per_month=300,
        price_monthly=0,
        price_yearly=0,
        features=_FREE_FEATURES,
    ),
    SubscriptionTier.PREMIUM: TierConfig(
        id=SubscriptionTier.PREMIUM,
        display_name="Premium",
        ai_requests_per_day=100,
        ai_requests_per_month=3000,
        price_monthly=20.00,
        price_yearly=212.00,
        features={
            **_FREE_FEATURES,
            "study_planning": True,
            "voice_notes": True,
            "premium_features": True,
            "priority_support": True,
        },
    ),
    SubscriptionTier.ENTERPRISE: TierConfig(
        id=SubscriptionTier.ENTERPRISE,
        display_name="Enterprise",
        ai_requests_per_day=UNLIMITED,
        ai_requests_per_month=UNLIMITED,
        price_monthly=29.99,
        price_yearly=299.99,
        features={key: True for key in _FREE_FEATURES},
    ),
}

# Minimum tier per AI feature. Features not listed require premium.
FEATURE_REQUIREMENTS: dict[str, SubscriptionTier] = {
    "basic_suggestions": SubscriptionTier.FREE,
    "advanced_suggestions": SubscriptionTier.PREMIUM,
    "study_planning": SubscriptionTier.PREMIUM,
    "voice_processing": SubscriptionTier.PREMIUM,
    "stu_personality": SubscriptionTier.PREMIUM,
    "ml_predictions": SubscriptionTier.PREMIUM,
    "collaborative_filtering": SubscriptionTier.PREMIUM,
    "premium_analytics": SubscriptionTier.ENTERPRISE,
}


# =============================================================================
# Pure Helpers
# =============================================================================

def required_tier_for(feature: str) -> SubscriptionTier:
    return FEATURE_REQUIREMENTS.get(feature, SubscriptionTier.PREMIUM)


def check_feature_access(
    tier: SubscriptionTier,
    feature: str,
) -> tuple[bool, SubscriptionTier]:
    """
    Check whether a tier may use a feature.

    Returns:
        (allowed, required_tier)
    """
    required = required_tier_for(feature)
    return tier.rank >= required.rank, required


def _remaining(limit: int, used: int) -> int | None:
    if limit == UNLIMITED:
        return None
    return max(0, limit - used)


def calculate_limits(
    config: TierConfig,
    daily_used: int,
    monthly_used: int,
) -> UsageLimits:
    """
    Compute a user's quota state from their tier and counters.

    A limit of -1 is unlimited; any other limit allows requests while
    used < limit.
    """
    daily_ok = config.ai_requests_per_day == UNLIMITED or daily_used < config.ai_requests_per_day
    monthly_ok = config.ai_requests_per_month == UNLIMITED or monthly_used < config.ai_requests_per_month

    return UsageLimits(
        tier=config.id,
        daily_limit=config.ai_requests_per_day,
        monthly_limit=config.ai_requests_per_month,
        daily_used=daily_used,
        monthly_used=monthly_used,
        daily_remaining=_remaining(config.ai_requests_per_day, daily_used),
        monthly_remaining=_remaining(config.ai_requests_per_month, monthly_used),
        can_use_ai=daily_ok and monthly_ok,
        days_until_reset=1,
    )


def _tier_from_row(row: dict[str, Any]) -> TierConfig | None:
    """Build a TierConfig from a subscription_tiers row, or None if unusable."""
    tier_name = row.get("id") or row.get("name")
    try:
        tier = SubscriptionTier(tier_name)
    except ValueError:
        logger.warning(f"Ignoring unknown subscription tier row: {tier_name}")
        return None

    default = DEFAULT_TIER_CONFIGS[tier]
    features = row.get("features") or default.features
    if isinstance(features, list):
        features = {name: True for name in features}

    return TierConfig(
        id=tier,
        display_name=row.get("display_name") or default.display_name,
        ai_requests_per_day=row.get("ai_requests_per_day", default.ai_requests_per_day),
        ai_requests_per_month=row.get("ai_requests_per_month", default.ai_requests_per_month),
        price_monthly=float(row.get("price_monthly") or 0),
        price_yearly=float(row.get("price_yearly") or 0),
        features=features,
    )


# =============================================================================
# Service
# =============================================================================

class SubscriptionService:
    """
    Subscription tiers, AI quotas, and subscription lifecycle.
    """

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    @staticmethod
    def get_available_tiers() -> list[TierConfig]:
        """
        List tiers from subscription_tiers, falling back to the built-in
        catalogue when the table is empty or unreachable.
        """
        try:
            rows = SupabaseClient.select_many("subscription_tiers", order_by="price_monthly")
        except SupabaseClientError as e:
            logger.warning(f"Falling back to default tiers: {e}")
            rows = []

        tiers = [t for t in (_tier_from_row(r) for r in rows) if t is not None]
        return tiers or list(DEFAULT_TIER_CONFIGS.values())

    @staticmethod
    def get_tier_config(tier_id: SubscriptionTier | str) -> TierConfig:
        """
        Raises:
            TierNotFoundError: If tier_id isn't a known tier
        """
        try:
            tier = SubscriptionTier(tier_id)
        except ValueError:
            raise TierNotFoundError(str(tier_id))

        for config in SubscriptionService.get_available_tiers():
            if config.id == tier:
                return config
        return DEFAULT_TIER_CONFIGS[tier]

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    @staticmethod
    def get_user_subscription(user_id: str) -> dict[str, Any] | None:
        """Most recent active subscription row, or None."""
        return SupabaseClient.select_one(
            "user_subscriptions",
            {"clerk_user_id": user_id, "status": SubscriptionStatus.ACTIVE.value},
            order_by="created_at",
            desc=True,
        )

    @staticmethod
    def get_user_tier(user_id: str) -> SubscriptionTier:
        """
        The user's current tier. Lookup failures degrade to free so the
        basic features keep working when the database hiccups.
        """
        try:
            subscription = SubscriptionService.get_user_subscription(user_id)
        except SupabaseClientError as e:
            logger.warning(f"Tier lookup failed for {user_id}, defaulting to free: {e}")
            return SubscriptionTier.FREE

        if not subscription:
            return SubscriptionTier.FREE
        return SubscriptionTier.from_value(subscription.get("tier_id"))

    @staticmethod
    def ensure_subscription(user_id: str) -> dict[str, Any]:
        """Return the active subscription, creating a free one if none exists."""
        subscription = SubscriptionService.get_user_subscription(user_id)
        if subscription:
            return subscription

        now = utcnow()
        subscription = SupabaseClient.insert(
            "user_subscriptions",
            {
                "clerk_user_id": user_id,
                "tier_id": SubscriptionTier.FREE.value,
                "status": SubscriptionStatus.ACTIVE.value,
                "current_period_start": now.isoformat(),
                "current_period_end": add_billing_period(now, BillingPeriod.MONTHLY.value).isoformat(),
                "cancel_at_period_end": False,
            },
        )
        logger.info(f"Created free subscription for {user_id}")
        return subscription

    @staticmethod
    def update_user_subscription(
        user_id: str,
        tier_id: SubscriptionTier | str,
        billing_period: BillingPeriod | str,
        metadata: dict[str, Any] | None = None,
        start: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Activate or extend a paid subscription for one billing period.

        If the user already has an active subscription it is updated in
        place; otherwise a new row is inserted.
        """
        tier = SubscriptionTier(tier_id)
        period = BillingPeriod(billing_period)
        start = start or utcnow()
        end = add_billing_period(start, period.value)

        values = {
            "tier_id": tier.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "billing_period": period.value,
            "current_period_start": start.isoformat(),
            "current_period_end": end.isoformat(),
            "cancel_at_period_end": False,
            "updated_at": utcnow().isoformat(),
        }
        if metadata:
            values["metadata"] = metadata

        existing = SubscriptionService.get_user_subscription(user_id)
        if existing:
            rows = SupabaseClient.update("user_subscriptions", values, {"id": existing["id"]})
            subscription = rows[0] if rows else {**existing, **values}
        else:
            subscription = SupabaseClient.insert(
                "user_subscriptions",
                {"clerk_user_id": user_id, **values},
            )

        logger.info(f"Subscription for {user_id} set to {tier.value} ({period.value}) until {end.date()}")
        return subscription

    @staticmethod
    def cancel_user_subscription(user_id: str, immediate: bool = False) -> dict[str, Any]:
        """
        Cancel the active subscription.

        By default the row stays active with cancel_at_period_end set, so
        the user keeps their tier until current_period_end; renewals skip
        it and expire_ended_subscriptions closes it afterwards. With
        immediate=True the subscription ends now and the user drops to free.

        Raises:
            SubscriptionNotFoundError: If there's no active subscription
        """
        subscription = SubscriptionService.get_user_subscription(user_id)
        if not subscription:
            raise SubscriptionNotFoundError(user_id)

        now = utcnow()
        if immediate:
            values = {
                "status": SubscriptionStatus.CANCELLED.value,
                "cancel_at_period_end": False,
                "current_period_end": now.isoformat(),
                "updated_at": now.isoformat(),
            }
        else:
            values = {"cancel_at_period_end": True, "updated_at": now.isoformat()}

        rows = SupabaseClient.update("user_subscriptions", values, {"id": subscription["id"]})
        when = "now" if immediate else f"at {subscription.get('current_period_end')}"
        logger.info(f"Cancelled subscription {subscription['id']} for {user_id}, ending {when}")
        return rows[0] if rows else {**subscription, **values}

    @staticmethod
    def expire_ended_subscriptions(now: datetime | None = None) -> int:
        """Close subscriptions cancelled at period end whose period is over."""
        now = now or utcnow()
        ended = SupabaseClient.select_many(
            "user_subscriptions",
            {"status": SubscriptionStatus.ACTIVE.value, "cancel_at_period_end": True},
            columns="id,clerk_user_id",
            lt={"current_period_end": now.isoformat()},
        )
        for row in ended:
            SupabaseClient.update(
                "user_subscriptions",
                {"status": SubscriptionStatus.CANCELLED.value, "updated_at": now.isoformat()},
                {"id": row["id"]},
            )
            logger.info(f"Subscription {row['id']} for {row['clerk_user_id']} reached period end")
        return len(ended)

    @staticmethod
    def set_status_by_code(subscription_code: str, status: SubscriptionStatus) -> int:
        """Update a subscription by its Paystack subscription code (webhooks)."""
        rows = SupabaseClient.update(
            "user_subscriptions",
            {"status": status.value, "updated_at": utcnow().isoformat()},
            {"paystack_subscription_code": subscription_code},
        )
        logger.info(f"Set {len(rows)} subscription(s) with code {subscription_code} to {status.value}")
        return len(rows)

    @staticmethod
    def set_status_for_user(user_id: str, status: SubscriptionStatus) -> int:
        rows = SupabaseClient.update(
            "user_subscriptions",
            {"status": status.value, "updated_at": utcnow().isoformat()},
            {"clerk_user_id": user_id, "status": SubscriptionStatus.ACTIVE.value},
        )
        logger.info(f"Set active subscription for {user_id} to {status.value}")
        return len(rows)

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    @staticmethod
    def get_usage(user_id: str, on_date: date | None = None) -> dict[str, Any]:
        """
        Usage counters for a day and its calendar month.

        Returns:
            Dict with daily_used, monthly_used, feature_usage (today's per-feature counts)
        """
        on_date = on_date or today_utc()
        month_start = on_date.replace(day=1)

        rows = SupabaseClient.select_many(
            "ai_usage_tracking",
            {"clerk_user_id": user_id},
            gte={"usage_date": month_start.isoformat()},
            lte={"usage_date": on_date.isoformat()},
        )

        today_row = next((r for r in rows if str(r.get("usage_date")) == on_date.isoformat()), None)
        return {
            "daily_used": (today_row or {}).get("ai_requests_count", 0) or 0,
            "monthly_used": sum(r.get("ai_requests_count", 0) or 0 for r in rows),
            "feature_usage": (today_row or {}).get("feature_usage") or {},
        }

    @staticmethod
    def get_limits(
        user_id: str,
        tier: SubscriptionTier | None = None,
        on_date: date | None = None,
    ) -> UsageLimits:
        tier = tier or SubscriptionService.get_user_tier(user_id)
        usage = SubscriptionService.get_usage(user_id, on_date)
        config = SubscriptionService.get_tier_config(tier)
        return calculate_limits(config, usage["daily_used"], usage["monthly_used"])

    @staticmethod
    def can_user_make_ai_request(user_id: str, feature: str) -> SubscriptionCheckResult:
        """
        Check tier access and quota for one more AI request.

        Never raises: any failure is reported as can_proceed=False on the
        free tier.
        """
        try:
            tier = SubscriptionService.get_user_tier(user_id)
            allowed, required = check_feature_access(tier, feature)
            if not allowed:
                return SubscriptionCheckResult(
                    can_proceed=False,
                    tier=tier,
                    upgrade_required=True,
                    message=f"{feature} requires {required.value} tier or higher",
                )

            limits = SubscriptionService.get_limits(user_id, tier=tier)
            if limits.daily_remaining is not None and limits.daily_remaining <= 0:
                return SubscriptionCheckResult(
                    can_proceed=False,
                    tier=tier,
                    remaining_requests=0,
                    limit_type="daily",
                    upgrade_required=tier == SubscriptionTier.FREE,
                    message="Daily AI request limit reached",
                )
            if limits.monthly_remaining is not None and limits.monthly_remaining <= 0:
                return SubscriptionCheckResult(
                    can_proceed=False,
                    tier=tier,
                    remaining_requests=0,
                    limit_type="monthly",
                    upgrade_required=tier == SubscriptionTier.FREE,
                    message="Monthly AI request limit reached",
                )

            remaining = [r for r in (limits.daily_remaining, limits.monthly_remaining) if r is not None]
            return SubscriptionCheckResult(
                can_proceed=True,
                tier=tier,
                remaining_requests=min(remaining) if remaining else None,
                limit_type="daily" if limits.daily_remaining is not None else "none",
                message="OK",
            )

        except Exception as e:
            logger.error(f"Subscription check failed for {user_id}: {e}")
            return SubscriptionCheckResult(
                can_proceed=False,
                tier=SubscriptionTier.FREE,
                message="Unable to verify subscription. Please try again.",
            )

    @staticmethod
    def record_usage(user_id: str, feature: str, on_date: date | None = None) -> dict[str, Any]:
        """
        Count one successful AI request.

        Increments the day's ai_requests_count by 1 and feature_usage[feature]
        by 1, creating the day's row on first use.
        """
        on_date = on_date or today_utc()
        filters = {"clerk_user_id": user_id, "usage_date": on_date.isoformat()}
        existing = SupabaseClient.select_one("ai_usage_tracking", filters)

        if existing:
            feature_usage = dict(existing.get("feature_usage") or {})
            feature_usage[feature] = feature_usage.get(feature, 0) + 1
            values = {
                "ai_requests_count": (existing.get("ai_requests_count") or 0) + 1,
                "feature_usage": feature_usage,
                "updated_at": utcnow().isoformat(),
            }
            rows = SupabaseClient.update("ai_usage_tracking", values, {"id": existing["id"]})
            record = rows[0] if rows else {**existing, **values}
        else:
            record = SupabaseClient.insert(
                "ai_usage_tracking",
                {
                    **filters,
                    "ai_requests_count": 1,
                    "feature_usage": {feature: 1},
                    "reset_at": utcnow().isoformat(),
                },
            )

        logger.debug(f"Recorded {feature} usage for {user_id}: {record.get('ai_requests_count')} today")
        return record

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    @staticmethod
    def get_overview(user_id: str) -> SubscriptionOverview:
        """The caller's subscription, creating a free one on first visit."""
        subscription = SubscriptionService.ensure_subscription(user_id)
        tier = SubscriptionTier.from_value((subscription or {}).get("tier_id"))
        usage = SubscriptionService.get_usage(user_id)
        config = SubscriptionService.get_tier_config(tier)

        return SubscriptionOverview(
            tier=tier,
            subscription=UserSubscription(**subscription) if subscription else None,
            limits=calculate_limits(config, usage["daily_used"], usage["monthly_used"]),
            feature_usage=usage["feature_usage"],
        )
