# =============================================================================
# core/services/coin_service.py - Coin Economy
# =============================================================================
# Users earn coins for engagement (tasks, logins, streaks, achievements) and
# spend them in the reward shop or on streak recovery.
#
# Every balance change writes two rows:
# - coin_transactions: append-only ledger, signed amount
# - coin_balances: running balance + lifetime earnings
# =============================================================================

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import to_date, today_utc, utcnow
from core.models.coins import (
    CoinAnalytics,
    CoinBalance,
    CoinTransaction,
    CoinTransactionResult,
    EarningSummary,
    TransactionType,
)
from app.exceptions import InsufficientCoinsError, InvalidAmountError

logger = logging.getLogger(__name__)


# =============================================================================
# Earning Rules
# =============================================================================

BASE_EARNINGS: dict[str, int] = {
    "task_completion": 10,
    "daily_login": 5,
    "achievement_unlock": 25,
    "daily_streak": 5,
    "streak_milestone": 25,
    "study_session": 8,
    "quiz_completion": 12,
    "goal_achievement": 20,
    "social_interaction": 3,
}
DEFAULT_EARNING = 5

DAILY_LOGIN_SOURCE = "first_login_daily"
DAILY_LOGIN_BONUS = 5

STREAK_BONUS = 5
STREAK_BONUS_MIN_DAYS = 7

MILESTONE_BONUS = 25
COIN_MILESTONES = (7, 14, 30, 60, 100, 200, 365)

MIN_PENALTY_STREAK = 14
MIN_BALANCE_FOR_PENALTY = 20
MAX_PENALTY_FRACTION = 0.25


def base_earning(source: str) -> int:
    return BASE_EARNINGS.get(source, DEFAULT_EARNING)


def calculate_streak_penalty(lost_streak: int, balance: int) -> int:
    """
    Coins lost when a streak breaks.

    Only streaks of 14+ days are penalised: 25 coins, 35 from 21 days,
    50 from 30 days. The penalty never exceeds a quarter of the balance
    and is waived entirely below a balance of 20.

    Example:
        calculate_streak_penalty(30, 1000)  # 50
        calculate_streak_penalty(30, 100)   # 25 (capped)
        calculate_streak_penalty(13, 1000)  # 0
    """
    if lost_streak < MIN_PENALTY_STREAK or balance < MIN_BALANCE_FOR_PENALTY:
        return 0

    if lost_streak >= 30:
        penalty = 50
    elif lost_streak >= 21:
        penalty = 35
    else:
        penalty = 25

    penalty = min(penalty, int(balance * MAX_PENALTY_FRACTION))
    return max(penalty, 0)


def summarize_transactions(transactions: list[dict[str, Any]]) -> CoinAnalytics:
    """Aggregate a list of ledger rows into earned/spent totals and top sources."""
    earned = [t for t in transactions if (t.get("amount") or 0) > 0]
    spent = [t for t in transactions if (t.get("amount") or 0) < 0]

    total_earned = sum(t["amount"] for t in earned)
    total_spent = sum(abs(t["amount"]) for t in spent)

    def most_common(rows: list[dict[str, Any]]) -> str | None:
        counts = Counter(r.get("source") for r in rows if r.get("source"))
        return counts.most_common(1)[0][0] if counts else None

    return CoinAnalytics(
        total_earned=total_earned,
        total_spent=total_spent,
        net=total_earned - total_spent,
        transaction_count=len(transactions),
        most_common_earning_source=most_common(earned),
        most_common_spending_source=most_common(spent),
    )


def _start_of_day(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=timezone.utc).isoformat()


# =============================================================================
# Service
# =============================================================================

class CoinService:
    """
    Coin balance and ledger operations.
    """

    # -------------------------------------------------------------------------
    # Balance
    # -------------------------------------------------------------------------

    @staticmethod
    def get_balance(user_id: str) -> CoinBalance:
        """A user with no balance row has 0 coins."""
        row = SupabaseClient.select_one("coin_balances", {"user_id": user_id})
        if not row:
            return CoinBalance(user_id=user_id)
        return CoinBalance(**row)

    @staticmethod
    def _write(
        user_id: str,
        amount: int,
        transaction_type: TransactionType,
        source: str,
        description: str | None,
        metadata: dict[str, Any] | None,
        balance: CoinBalance,
    ) -> CoinTransactionResult:
        new_balance = balance.current_balance + amount
        lifetime = balance.lifetime_earned + max(amount, 0)
        now = utcnow().isoformat()

        transaction = SupabaseClient.insert(
            "coin_transactions",
            {
                "user_id": user_id,
                "amount": amount,
                "transaction_type": transaction_type.value,
                "source": source,
                "description": description,
                "metadata": metadata or {},
                "created_at": now,
            },
        )
        SupabaseClient.upsert(
            "coin_balances",
            {
                "user_id": user_id,
                "current_balance": new_balance,
                "lifetime_earned": lifetime,
                "last_updated": now,
            },
            on_conflict="user_id",
        )

        return CoinTransactionResult(
            amount=amount,
            new_balance=new_balance,
            transaction=CoinTransaction(**transaction),
        )

    # -------------------------------------------------------------------------
    # Earn / Spend
    # -------------------------------------------------------------------------

    @staticmethod
    def earn_coins(
        user_id: str,
        source: str,
        amount: int | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        transaction_type: TransactionType = TransactionType.EARNED,
    ) -> CoinTransactionResult:
        """
        Credit coins to a user.

        Args:
            user_id: Clerk user ID
            source: What the coins are for, e.g. "task_completion"
            amount: Coins to add; defaults to the source's base earning

        Raises:
            InvalidAmountError: If amount is not positive
        """
        amount = base_earning(source) if amount is None else amount
        if amount <= 0:
            raise InvalidAmountError(amount)

        balance = CoinService.get_balance(user_id)
        result = CoinService._write(
            user_id,
            amount,
            transaction_type,
            source,
            description or f"Earned {amount} coins from {source.replace('_', ' ')}",
            metadata,
            balance,
        )
        logger.info(f"User {user_id} earned {amount} coins ({source}), balance {result.new_balance}")
        return result

    @staticmethod
    def spend_coins(
        user_id: str,
        amount: int,
        source: str,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CoinTransactionResult:
        """
        Debit coins from a user.

        Raises:
            InvalidAmountError: If amount is not positive
            InsufficientCoinsError: If the balance is lower than amount
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        balance = CoinService.get_balance(user_id)
        if balance.current_balance < amount:
            raise InsufficientCoinsError(required=amount, current=balance.current_balance)

        result = CoinService._write(
            user_id,
            -amount,
            TransactionType.SPENT,
            source,
            description or f"Spent {amount} coins on {source.replace('_', ' ')}",
            metadata,
            balance,
        )
        logger.info(f"User {user_id} spent {amount} coins ({source}), balance {result.new_balance}")
        return result

    # -------------------------------------------------------------------------
    # Bonuses and Penalties
    # -------------------------------------------------------------------------

    @staticmethod
    def award_daily_login_bonus(user_id: str, today: date | None = None) -> CoinTransactionResult | None:
        """Award the first-login bonus once per calendar day. None if already given."""
        today = today or today_utc()
        already = SupabaseClient.select_many(
            "coin_transactions",
            {"user_id": user_id, "source": DAILY_LOGIN_SOURCE},
            gte={"created_at": _start_of_day(today)},
            lt={"created_at": _start_of_day(today + timedelta(days=1))},
            limit=1,
        )
        if already:
            return None

        return CoinService.earn_coins(
            user_id,
            DAILY_LOGIN_SOURCE,
            amount=DAILY_LOGIN_BONUS,
            description="Daily login bonus",
            transaction_type=TransactionType.BONUS,
        )

    @staticmethod
    def award_streak_bonus(user_id: str, streak: int) -> CoinTransactionResult | None:
        if streak < STREAK_BONUS_MIN_DAYS:
            return None
        return CoinService.earn_coins(
            user_id,
            "daily_streak",
            amount=STREAK_BONUS,
            description=f"{streak}-day streak bonus",
            metadata={"streak": streak},
            transaction_type=TransactionType.BONUS,
        )

    @staticmethod
    def award_milestone_bonus(user_id: str, streak: int) -> CoinTransactionResult | None:
        if streak not in COIN_MILESTONES:
            return None
        return CoinService.earn_coins(
            user_id,
            "streak_milestone",
            amount=MILESTONE_BONUS,
            description=f"Reached a {streak}-day streak milestone",
            metadata={"milestone": streak},
            transaction_type=TransactionType.BONUS,
        )

    @staticmethod
    def apply_streak_loss_penalty(user_id: str, lost_streak: int) -> CoinTransactionResult | None:
        """Deduct the streak-loss penalty, if any applies."""
        balance = CoinService.get_balance(user_id)
        penalty = calculate_streak_penalty(lost_streak, balance.current_balance)
        if penalty <= 0:
            return None

        result = CoinService._write(
            user_id,
            -penalty,
            TransactionType.PENALTY,
            "streak_loss",
            f"Lost a {lost_streak}-day streak",
            {"lost_streak": lost_streak},
            balance,
        )
        logger.info(f"User {user_id} lost {penalty} coins for breaking a {lost_streak}-day streak")
        return result

    # -------------------------------------------------------------------------
    # History and Analytics
    # -------------------------------------------------------------------------

    @staticmethod
    def get_transactions(
        user_id: str,
        limit: int = 50,
        transaction_type: TransactionType | None = None,
    ) -> list[dict[str, Any]]:
        """Ledger rows, newest first."""
        filters: dict[str, Any] = {"user_id": user_id}
        if transaction_type:
            filters["transaction_type"] = transaction_type.value
        return SupabaseClient.select_many(
            "coin_transactions",
            filters,
            order_by="created_at",
            desc=True,
            limit=limit,
        )

    @staticmethod
    def get_analytics(user_id: str, days: int | None = None) -> CoinAnalytics:
        """Earned/spent totals over the last `days` days, or all time."""
        gte = None
        if days:
            gte = {"created_at": _start_of_day(today_utc() - timedelta(days=days - 1))}

        rows = SupabaseClient.select_many("coin_transactions", {"user_id": user_id}, gte=gte)
        analytics = summarize_transactions(rows)
        analytics.period_days = days
        return analytics

    @staticmethod
    def get_earning_summary(user_id: str, today: date | None = None) -> EarningSummary:
        """Coins earned today and over the last 7 days (including today)."""
        today = today or today_utc()
        rows = SupabaseClient.select_many(
            "coin_transactions",
            {"user_id": user_id},
            gte={"created_at": _start_of_day(today - timedelta(days=6))},
        )
        positive = [r for r in rows if (r.get("amount") or 0) > 0]

        return EarningSummary(
            today=sum(r["amount"] for r in positive if r.get("created_at") and to_date(r["created_at"]) == today),
            last_7_days=sum(r["amount"] for r in positive),
            current_balance=CoinService.get_balance(user_id).current_balance,
        )
