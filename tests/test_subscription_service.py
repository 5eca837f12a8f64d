# =============================================================================
# tests/test_subscription_service.py - Tier & Quota Tests
# =============================================================================
# Tests for quota arithmetic, feature gating, and usage bookkeeping.
# Supabase is mocked at the service module boundary.
# =============================================================================

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from core.models.subscription import UNLIMITED, SubscriptionTier
from core.services.subscription_service import (
    DEFAULT_TIER_CONFIGS,
    SubscriptionService,
    calculate_limits,
    check_feature_access,
)
from lib.supabase_client import SupabaseClientError
from app.exceptions import SubscriptionNotFoundError, TierNotFoundError


@pytest.fixture
def mock_db():
    with patch("core.services.subscription_service.SupabaseClient") as mock:
        mock.select_many.return_value = []
        mock.select_one.return_value = None
        mock.insert.side_effect = lambda table, data: {"id": "new-row", **data}
        yield mock


# =============================================================================
# calculate_limits
# =============================================================================

class TestCalculateLimits:
    """Tests for the pure quota calculation."""

    def test_free_tier_under_limit(self):
        """A free user with 3 requests today has 7 left."""
        limits = calculate_limits(DEFAULT_TIER_CONFIGS[SubscriptionTier.FREE], 3, 40)

        assert limits.can_use_ai is True
        assert limits.daily_remaining == 7
        assert limits.monthly_remaining == 260

    def test_daily_limit_reached(self):
        limits = calculate_limits(DEFAULT_TIER_CONFIGS[SubscriptionTier.FREE], 10, 10)

        assert limits.can_use_ai is False
        assert limits.daily_remaining == 0

    def test_monthly_limit_reached(self):
        limits = calculate_limits(DEFAULT_TIER_CONFIGS[SubscriptionTier.PREMIUM], 0, 3000)

        assert limits.can_use_ai is False
        assert limits.monthly_remaining == 0

    def test_unlimited_tier_has_no_remaining(self):
        """Enterprise limits are -1, reported as None remaining."""
        limits = calculate_limits(DEFAULT_TIER_CONFIGS[SubscriptionTier.ENTERPRISE], 5000, 90000)

        assert limits.daily_limit == UNLIMITED
        assert limits.daily_remaining is None
        assert limits.monthly_remaining is None
        assert limits.can_use_ai is True

    def test_zero_limit_blocks(self):
        """A limit of 0 is a hard block, not unlimited."""
        config = DEFAULT_TIER_CONFIGS[SubscriptionTier.FREE].model_copy(
            update={"ai_requests_per_day": 0}
        )

        limits = calculate_limits(config, 0, 0)

        assert limits.can_use_ai is False
        assert limits.daily_remaining == 0


# =============================================================================
# Feature Access
# =============================================================================

class TestFeatureAccess:
    """Tests for the tier hierarchy gate."""

    def test_free_can_use_basic(self):
        allowed, required = check_feature_access(SubscriptionTier.FREE, "basic_suggestions")

        assert allowed is True
        assert required == SubscriptionTier.FREE

    def test_free_cannot_use_study_planning(self):
        allowed, required = check_feature_access(SubscriptionTier.FREE, "study_planning")

        assert allowed is False
        assert required == SubscriptionTier.PREMIUM

    def test_premium_cannot_use_analytics(self):
        allowed, required = check_feature_access(SubscriptionTier.PREMIUM, "premium_analytics")

        assert allowed is False
        assert required == SubscriptionTier.ENTERPRISE

    def test_unknown_feature_requires_premium(self):
        allowed, required = check_feature_access(SubscriptionTier.FREE, "telepathy")

        assert allowed is False
        assert required == SubscriptionTier.PREMIUM

    def test_enterprise_can_use_everything(self):
        for feature in ("basic_suggestions", "study_planning", "premium_analytics"):
            assert check_feature_access(SubscriptionTier.ENTERPRISE, feature)[0] is True


# =============================================================================
# Tiers and Subscriptions
# =============================================================================

class TestTiers:
    """Tests for tier lookups."""

    def test_falls_back_to_defaults_when_table_empty(self, mock_db):
        tiers = SubscriptionService.get_available_tiers()

        assert [t.id for t in tiers] == [
            SubscriptionTier.FREE,
            SubscriptionTier.PREMIUM,
            SubscriptionTier.ENTERPRISE,
        ]

    def test_falls_back_to_defaults_on_db_error(self, mock_db):
        mock_db.select_many.side_effect = SupabaseClientError("down")

        tiers = SubscriptionService.get_available_tiers()

        assert len(tiers) == 3

    def test_reads_rows_and_skips_unknown_tiers(self, mock_db):
        mock_db.select_many.return_value = [
            {"id": "free", "ai_requests_per_day": 5, "ai_requests_per_month": 100,
             "features": ["basic_ai"]},
            {"id": "platinum", "ai_requests_per_day": 1000},
        ]

        tiers = SubscriptionService.get_available_tiers()

        assert len(tiers) == 1
        assert tiers[0].ai_requests_per_day == 5
        assert tiers[0].features == {"basic_ai": True}

    def test_unknown_tier_raises(self, mock_db):
        with pytest.raises(TierNotFoundError):
            SubscriptionService.get_tier_config("platinum")

    def test_user_without_subscription_is_free(self, mock_db):
        assert SubscriptionService.get_user_tier("user_123") == SubscriptionTier.FREE

    def test_tier_lookup_failure_degrades_to_free(self, mock_db):
        mock_db.select_one.side_effect = SupabaseClientError("timeout")

        assert SubscriptionService.get_user_tier("user_123") == SubscriptionTier.FREE

    def test_active_subscription_tier(self, mock_db):
        mock_db.select_one.return_value = {"id": "s1", "tier_id": "premium", "status": "active"}

        assert SubscriptionService.get_user_tier("user_123") == SubscriptionTier.PREMIUM

    def test_update_extends_existing_subscription(self, mock_db):
        """An existing active row is updated in place, not duplicated."""
        # Arrange
        mock_db.select_one.return_value = {"id": "s1", "tier_id": "free", "status": "active"}
        mock_db.update.side_effect = lambda table, values, filters: [{"id": "s1", **values}]

        # Act
        result = SubscriptionService.update_user_subscription("user_123", "premium", "monthly")

        # Assert
        mock_db.insert.assert_not_called()
        assert result["tier_id"] == "premium"
        assert result["billing_period"] == "monthly"
        assert result["status"] == "active"

    def test_update_inserts_when_none_active(self, mock_db):
        result = SubscriptionService.update_user_subscription("user_123", "premium", "yearly")

        assert result["clerk_user_id"] == "user_123"
        assert result["billing_period"] == "yearly"

    def test_cancel_without_subscription_raises(self, mock_db):
        with pytest.raises(SubscriptionNotFoundError):
            SubscriptionService.cancel_user_subscription("user_123")

    def test_cancel_keeps_tier_until_period_end(self, mock_db):
        # Arrange
        row = {"id": "s1", "tier_id": "premium", "status": "active",
               "current_period_end": "2025-04-12T00:00:00+00:00"}
        mock_db.select_one.return_value = row
        mock_db.update.side_effect = lambda table, values, filters: [{**row, **values}]

        # Act
        result = SubscriptionService.cancel_user_subscription("user_123")

        # Assert: still active and premium, flagged to end with the period
        values = mock_db.update.call_args.args[1]
        assert "status" not in values
        assert result["status"] == "active"
        assert result["cancel_at_period_end"] is True
        mock_db.select_one.return_value = result
        assert SubscriptionService.get_user_tier("user_123") == SubscriptionTier.PREMIUM

    def test_cancel_immediately(self, mock_db):
        mock_db.select_one.return_value = {"id": "s1", "tier_id": "premium", "status": "active"}
        mock_db.update.return_value = []

        result = SubscriptionService.cancel_user_subscription("user_123", immediate=True)

        assert result["status"] == "cancelled"
        assert result["cancel_at_period_end"] is False
        assert mock_db.update.call_args.args[2] == {"id": "s1"}

    def test_expire_ended_subscriptions(self, mock_db):
        now = datetime(2025, 4, 12, 0, 5, tzinfo=timezone.utc)
        mock_db.select_many.return_value = [{"id": "s1", "clerk_user_id": "user_123"}]

        assert SubscriptionService.expire_ended_subscriptions(now) == 1

        select = mock_db.select_many.call_args
        assert select.args[1] == {"status": "active", "cancel_at_period_end": True}
        assert select.kwargs["lt"] == {"current_period_end": now.isoformat()}
        assert mock_db.update.call_args.args[1]["status"] == "cancelled"
        assert mock_db.update.call_args.args[2] == {"id": "s1"}

    def test_overview_creates_free_subscription(self, mock_db):
        overview = SubscriptionService.get_overview("user_123")

        inserted = mock_db.insert.call_args.args[1]
        assert inserted["tier_id"] == "free"
        assert inserted["clerk_user_id"] == "user_123"
        assert overview.tier == SubscriptionTier.FREE
        assert overview.subscription.clerk_user_id == "user_123"

# =============================================================================
# Usage
# =============================================================================

class TestUsage:
    """Tests for reading and recording AI usage."""

    def test_get_usage_sums_month(self, mock_db):
        mock_db.select_many.return_value = [
            {"usage_date": "2025-03-01", "ai_requests_count": 4},
            {"usage_date": "2025-03-12", "ai_requests_count": 2,
             "feature_usage": {"basic_suggestions": 2}},
        ]

        usage = SubscriptionService.get_usage("user_123", date(2025, 3, 12))

        assert usage["daily_used"] == 2
        assert usage["monthly_used"] == 6
        assert usage["feature_usage"] == {"basic_suggestions": 2}

    def test_record_usage_creates_row(self, mock_db):
        record = SubscriptionService.record_usage("user_123", "basic_suggestions", date(2025, 3, 12))

        assert record["ai_requests_count"] == 1
        assert record["feature_usage"] == {"basic_suggestions": 1}
        assert record["usage_date"] == "2025-03-12"

    def test_record_usage_increments_existing(self, mock_db):
        # Arrange
        mock_db.select_one.return_value = {
            "id": "u1",
            "ai_requests_count": 3,
            "feature_usage": {"basic_suggestions": 3},
        }
        mock_db.update.side_effect = lambda table, values, filters: [{"id": "u1", **values}]

        # Act
        record = SubscriptionService.record_usage("user_123", "study_planning")

        # Assert
        assert record["ai_requests_count"] == 4
        assert record["feature_usage"] == {"basic_suggestions": 3, "study_planning": 1}


# =============================================================================
# can_user_make_ai_request
# =============================================================================

class TestCanUserMakeAIRequest:
    """Tests for the combined tier and quota check."""

    def test_free_user_under_quota(self, mock_db):
        result = SubscriptionService.can_user_make_ai_request("user_123", "basic_suggestions")

        assert result.can_proceed is True
        assert result.remaining_requests == 10

    def test_gated_feature(self, mock_db):
        result = SubscriptionService.can_user_make_ai_request("user_123", "study_planning")

        assert result.can_proceed is False
        assert result.upgrade_required is True

    def test_daily_exhausted(self, mock_db):
        mock_db.select_many.side_effect = lambda table, *args, **kwargs: (
            [{"usage_date": date.today().isoformat(), "ai_requests_count": 10}]
            if table == "ai_usage_tracking" else []
        )

        with patch("core.services.subscription_service.today_utc", return_value=date.today()):
            result = SubscriptionService.can_user_make_ai_request("user_123", "basic_suggestions")

        assert result.can_proceed is False
        assert result.limit_type == "daily"

    def test_failure_reports_cannot_proceed(self, mock_db):
        """Unexpected errors never escape the check."""
        with patch.object(SubscriptionService, "get_limits", side_effect=RuntimeError("boom")):
            result = SubscriptionService.can_user_make_ai_request("user_123", "basic_suggestions")

        assert result.can_proceed is False
        assert result.tier == SubscriptionTier.FREE
