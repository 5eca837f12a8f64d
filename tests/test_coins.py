# =============================================================================
# tests/test_coins.py - Coin Economy & Reward Shop Tests
# =============================================================================
# Tests for earning/spending, penalties, analytics, and shop purchases.
# =============================================================================

from datetime import date
from unittest.mock import patch

import pytest

from core.models.coins import ShopItemCreate, TransactionType
from core.services.coin_service import (
    CoinService,
    base_earning,
    calculate_streak_penalty,
    summarize_transactions,
)
from core.services.shop_service import ShopService, slugify, to_shop_item
from app.exceptions import (
    InsufficientCoinsError,
    InvalidAmountError,
    ItemAlreadyOwnedError,
    ShopItemNotFoundError,
)


@pytest.fixture
def coin_db():
    with patch("core.services.coin_service.SupabaseClient") as mock:
        mock.select_one.return_value = {"user_id": "user_123", "current_balance": 100, "lifetime_earned": 400}
        mock.select_many.return_value = []
        mock.insert.side_effect = lambda table, data: {"id": "tx-1", **data}
        mock.upsert.side_effect = lambda table, data, on_conflict=None: data
        yield mock


@pytest.fixture
def shop_db(coin_db):
    with patch("core.services.shop_service.SupabaseClient") as mock:
        mock.insert.side_effect = lambda table, data: {"id": data.get("id", "row-1"), **data}
        yield mock


# =============================================================================
# Earning Rules
# =============================================================================

class TestEarningRules:
    """Tests for the pure earning and penalty rules."""

    def test_known_sources(self):
        assert base_earning("task_completion") == 10
        assert base_earning("achievement_unlock") == 25

    def test_unknown_source_defaults(self):
        assert base_earning("helping_a_friend") == 5

    @pytest.mark.parametrize(
        "streak,balance,expected",
        [
            (13, 1000, 0),
            (14, 1000, 25),
            (21, 1000, 35),
            (30, 1000, 50),
            (30, 100, 25),
            (30, 19, 0),
        ],
    )
    def test_streak_penalty(self, streak, balance, expected):
        assert calculate_streak_penalty(streak, balance) == expected

    def test_summarize_transactions(self):
        rows = [
            {"amount": 10, "source": "task_completion"},
            {"amount": 10, "source": "task_completion"},
            {"amount": 5, "source": "daily_login"},
            {"amount": -30, "source": "shop_purchase"},
        ]

        analytics = summarize_transactions(rows)

        assert analytics.total_earned == 25
        assert analytics.total_spent == 30
        assert analytics.net == -5
        assert analytics.most_common_earning_source == "task_completion"
        assert analytics.most_common_spending_source == "shop_purchase"

    def test_summarize_empty(self):
        analytics = summarize_transactions([])

        assert analytics.transaction_count == 0
        assert analytics.most_common_earning_source is None


# =============================================================================
# CoinService
# =============================================================================

class TestCoinService:
    """Tests for balance changes against a mocked database."""

    def test_balance_defaults_to_zero(self, coin_db):
        coin_db.select_one.return_value = None

        balance = CoinService.get_balance("user_123")

        assert balance.current_balance == 0
        assert balance.lifetime_earned == 0

    def test_earn_uses_base_amount(self, coin_db):
        # Act
        result = CoinService.earn_coins("user_123", "task_completion")

        # Assert
        assert result.amount == 10
        assert result.new_balance == 110
        upserted = coin_db.upsert.call_args.args[1]
        assert upserted["current_balance"] == 110
        assert upserted["lifetime_earned"] == 410
        assert result.transaction.transaction_type == TransactionType.EARNED

    def test_earn_rejects_non_positive(self, coin_db):
        with pytest.raises(InvalidAmountError):
            CoinService.earn_coins("user_123", "study_session", amount=0)

        coin_db.insert.assert_not_called()

    def test_spend_writes_negative_amount(self, coin_db):
        result = CoinService.spend_coins("user_123", 40, "shop_purchase")

        assert result.amount == -40
        assert result.new_balance == 60
        # Spending never raises lifetime earnings
        assert coin_db.upsert.call_args.args[1]["lifetime_earned"] == 400

    def test_spend_more_than_balance(self, coin_db):
        with pytest.raises(InsufficientCoinsError) as exc_info:
            CoinService.spend_coins("user_123", 150, "shop_purchase")

        assert exc_info.value.details == {"required": 150, "current": 100}
        coin_db.insert.assert_not_called()

    def test_daily_login_bonus_once_per_day(self, coin_db):
        coin_db.select_many.return_value = [{"id": "tx-0"}]

        assert CoinService.award_daily_login_bonus("user_123", date(2025, 3, 12)) is None

    def test_daily_login_bonus_first_time(self, coin_db):
        result = CoinService.award_daily_login_bonus("user_123", date(2025, 3, 12))

        assert result.amount == 5
        assert result.transaction.transaction_type == TransactionType.BONUS

    def test_streak_bonus_needs_seven_days(self, coin_db):
        assert CoinService.award_streak_bonus("user_123", 6) is None
        assert CoinService.award_streak_bonus("user_123", 7).amount == 5

    def test_milestone_bonus_only_on_milestones(self, coin_db):
        assert CoinService.award_milestone_bonus("user_123", 8) is None
        assert CoinService.award_milestone_bonus("user_123", 30).amount == 25

    def test_streak_loss_penalty(self, coin_db):
        result = CoinService.apply_streak_loss_penalty("user_123", 30)

        # 50 is capped at a quarter of 100
        assert result.amount == -25
        assert result.transaction.transaction_type == TransactionType.PENALTY

    def test_no_penalty_for_short_streak(self, coin_db):
        assert CoinService.apply_streak_loss_penalty("user_123", 5) is None

    def test_earning_summary(self, coin_db):
        coin_db.select_many.return_value = [
            {"amount": 10, "created_at": "2025-03-12T08:00:00+00:00"},
            {"amount": 5, "created_at": "2025-03-10T08:00:00+00:00"},
            {"amount": -20, "created_at": "2025-03-12T09:00:00+00:00"},
        ]

        summary = CoinService.get_earning_summary("user_123", date(2025, 3, 12))

        assert summary.today == 10
        assert summary.last_7_days == 15
        assert summary.current_balance == 100


# =============================================================================
# ShopService
# =============================================================================

class TestShop:
    """Tests for listing, creating and buying shop items."""

    def test_slugify(self):
        assert slugify("  Ocean Breeze ") == "ocean-breeze"

    def test_to_shop_item(self, sample_shop_row):
        item = to_shop_item(sample_shop_row)

        assert item.item_name == "Ocean Breeze"
        assert item.cost == 100
        assert item.category_name == "theme"

    def test_list_filters_by_category(self, shop_db, sample_shop_row):
        shop_db.select_many.return_value = [
            sample_shop_row,
            {**sample_shop_row, "id": "hint", "metadata": {"category": "power_up"}},
        ]

        assert len(ShopService.list_items()) == 2
        assert [i.id for i in ShopService.list_items("power_up")] == ["hint"]

    def test_create_item_slugifies_name(self, shop_db):
        item = ShopService.create_item(ShopItemCreate(name="Sunset Glow", base_cost=150, rarity="epic"))

        assert item.id == "sunset-glow"
        assert item.metadata["rarity"] == "epic"

    def test_inactive_item_not_found(self, shop_db, sample_shop_row):
        shop_db.select_one.return_value = {**sample_shop_row, "is_active": False}

        with pytest.raises(ShopItemNotFoundError):
            ShopService.get_item("ocean-breeze")

    def test_purchase_theme(self, shop_db, coin_db, sample_shop_row):
        # Arrange
        shop_db.select_one.side_effect = [sample_shop_row, None]

        # Act
        result = ShopService.purchase_item("user_123", "ocean-breeze")

        # Assert
        assert result.cost == 100
        assert result.new_balance == 0
        owned = shop_db.insert.call_args.args
        assert owned[0] == "user_purchased_themes"
        assert owned[1]["theme_id"] == "ocean"

    def test_purchase_owned_theme(self, shop_db, coin_db, sample_shop_row):
        shop_db.select_one.side_effect = [sample_shop_row, {"id": "owned-1"}]

        with pytest.raises(ItemAlreadyOwnedError):
            ShopService.purchase_item("user_123", "ocean-breeze")

        coin_db.insert.assert_not_called()

    def test_purchase_without_enough_coins(self, shop_db, coin_db, sample_shop_row):
        shop_db.select_one.return_value = {**sample_shop_row, "base_cost": 500}

        with pytest.raises(InsufficientCoinsError):
            ShopService.purchase_item("user_123", "ocean-breeze")

    def test_free_item_skips_ledger(self, shop_db, coin_db, sample_shop_row):
        shop_db.select_one.return_value = {
            **sample_shop_row,
            "base_cost": 0,
            "metadata": {"category": "badge"},
        }

        result = ShopService.purchase_item("user_123", "ocean-breeze")

        assert result.new_balance == 100
        coin_db.insert.assert_not_called()
