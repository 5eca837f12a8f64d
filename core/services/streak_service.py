# =============================================================================
# core/services/streak_service.py - Daily Streak Tracking
# =============================================================================
# A streak is the number of consecutive completed days ending today (or
# yesterday, if today isn't done yet). Days live in daily_streaks, one row
# per user per date; user_stats caches current/longest streak and points.
#
# The pure helpers at the top work on any list of {date, completed} records
# and hold all of the date logic; StreakService wires them to the database
# and the coin economy.
# =============================================================================

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable

from lib.supabase_client import SupabaseClient
from lib.utils import to_date, today_utc, utcnow
from core.models.streak import (
    Milestone,
    RecoveryOption,
    StreakAnalytics,
    StreakSummary,
    StreakTrend,
    StreakUpdate,
)
from core.services.coin_service import COIN_MILESTONES, CoinService
from app.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (7, 14, 21, 30, 50, 75, 100, 150, 200, 365, 500, 1000)
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
TREND_WINDOW = 7
TREND_THRESHOLD = 0.1
POINTS_PER_LEVEL = 1000

RECOVERY_OPTIONS = {
    "freeze": ("Streak Freeze", "Protect yesterday so your streak survives one missed day", 50),
    "extend": ("Streak Extend", "Restore the last two missed days", 100),
    "bonus_day": ("Bonus Day", "Count yesterday as a completed day", 75),
}


# =============================================================================
# Pure Helpers
# =============================================================================

def _completed_dates(records: Iterable[dict[str, Any]]) -> set[date]:
    return {to_date(r["date"]) for r in records if r.get("completed")}


def calculate_current_streak(records: Iterable[dict[str, Any]], today: date) -> int:
    """
    Consecutive completed days counting back from today.

    An unfinished today doesn't break the streak (the user still has time),
    so counting then starts from yesterday. Any missed earlier day ends it.
    """
    completed = _completed_dates(records)
    day = today if today in completed else today - timedelta(days=1)

    streak = 0
    while day in completed:
        streak += 1
        day -= timedelta(days=1)
    return streak


def _runs(completed: set[date]) -> list[int]:
    """Lengths of each run of consecutive completed days."""
    runs: list[int] = []
    previous: date | None = None
    for day in sorted(completed):
        if previous is not None and day - previous == timedelta(days=1):
            runs[-1] += 1
        else:
            runs.append(1)
        previous = day
    return runs


def calculate_longest_streak(records: Iterable[dict[str, Any]]) -> int:
    return max(_runs(_completed_dates(records)), default=0)


def _completion_ratio(records: list[dict[str, Any]]) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.get("completed")) / len(records)


def calculate_trend(records: list[dict[str, Any]]) -> StreakTrend:
    """
    Compare the last 7 records with the 7 before them.

    Needs at least 14 records; fewer is "stable".
    """
    if len(records) < TREND_WINDOW * 2:
        return StreakTrend.STABLE

    ordered = sorted(records, key=lambda r: to_date(r["date"]), reverse=True)
    recent = _completion_ratio(ordered[:TREND_WINDOW])
    previous = _completion_ratio(ordered[TREND_WINDOW:TREND_WINDOW * 2])
    difference = recent - previous

    if difference > TREND_THRESHOLD:
        return StreakTrend.IMPROVING
    if difference < -TREND_THRESHOLD:
        return StreakTrend.DECLINING
    return StreakTrend.STABLE


def _best_and_worst_weekday(records: list[dict[str, Any]]) -> tuple[str, str]:
    totals: dict[int, int] = defaultdict(int)
    completed: dict[int, int] = defaultdict(int)
    for record in records:
        weekday = to_date(record["date"]).weekday()
        totals[weekday] += 1
        if record.get("completed"):
            completed[weekday] += 1

    if not totals:
        return "monday", "monday"

    ratios = {day: completed[day] / totals[day] for day in sorted(totals)}
    best = max(ratios, key=ratios.get)
    worst = min(ratios, key=ratios.get)
    return WEEKDAYS[best], WEEKDAYS[worst]


def calculate_streak_analytics(records: list[dict[str, Any]], today: date) -> StreakAnalytics:
    completed = _completed_dates(records)
    runs = _runs(completed)
    best_day, worst_day = _best_and_worst_weekday(records)
    total = len(records)

    return StreakAnalytics(
        current_streak=calculate_current_streak(records, today),
        longest_streak=max(runs, default=0),
        total_days=total,
        completed_days=len(completed),
        completion_rate=round(len(completed) / total * 100, 2) if total else 0.0,
        average_streak_length=round(sum(runs) / len(runs), 1) if runs else 0.0,
        best_day=best_day,
        worst_day=worst_day,
        streak_trend=calculate_trend(records),
    )


def next_milestone(streak: int) -> Milestone:
    """First milestone above the streak; past 1000 it's every 100 days."""
    target = next((m for m in STREAK_MILESTONES if m > streak), streak + 100)
    return Milestone(target=target, days_to_milestone=target - streak)


def level_for_points(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


# =============================================================================
# Service
# =============================================================================

class StreakService:
    """Daily completion tracking and streak maintenance."""

    @staticmethod
    def _get_records(user_id: str) -> list[dict[str, Any]]:
        return SupabaseClient.select_many("daily_streaks", {"user_id": user_id}, order_by="date")

    @staticmethod
    def get_user_stats(user_id: str) -> dict[str, Any]:
        row = SupabaseClient.select_one("user_stats", {"user_id": user_id})
        return row or {
            "user_id": user_id,
            "total_points": 0,
            "current_streak": 0,
            "longest_streak": 0,
            "level": 1,
        }

    @staticmethod
    def save_stats(user_id: str, stats: dict[str, Any], **changes) -> dict[str, Any]:
        values = {**stats, **changes, "user_id": user_id, "updated_at": utcnow().isoformat()}
        values["level"] = level_for_points(values.get("total_points") or 0)
        return SupabaseClient.upsert("user_stats", values, on_conflict="user_id")

    @staticmethod
    def _upsert_day(
        user_id: str,
        day: date,
        existing: dict[str, Any] | None,
        tasks_completed: int,
        points_earned: int,
        metadata: dict[str, Any] | None = None,
        count_activity: bool = True,
    ) -> dict[str, Any]:
        existing = existing or {}
        row = {
            "user_id": user_id,
            "date": day.isoformat(),
            "completed": True,
            "tasks_completed": (existing.get("tasks_completed") or 0) + tasks_completed,
            "points_earned": (existing.get("points_earned") or 0) + points_earned,
            "activity_count": (existing.get("activity_count") or 0) + (1 if count_activity else 0),
        }
        if metadata:
            row["metadata"] = {**(existing.get("metadata") or {}), **metadata}
        SupabaseClient.upsert("daily_streaks", row, on_conflict="user_id,date")
        return row

    @staticmethod
    def _records_with(user_id: str, new_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Stored records with freshly written rows overlaid by date."""
        replaced = {to_date(r["date"]) for r in new_rows}
        stored = [r for r in StreakService._get_records(user_id) if to_date(r["date"]) not in replaced]
        return stored + new_rows

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    @staticmethod
    def mark_daily_completion(
        user_id: str,
        tasks_completed: int = 1,
        points_earned: int = 10,
        on_date: date | None = None,
    ) -> StreakUpdate:
        """
        Record activity for a day and refresh the user's streak.

        Coins (streak bonus, milestone bonus) are only awarded the first time
        a day becomes completed, so repeated activity on one day can't farm
        them.
        """
        on_date = on_date or today_utc()
        existing = SupabaseClient.select_one(
            "daily_streaks",
            {"user_id": user_id, "date": on_date.isoformat()},
        )
        first_completion = not (existing and existing.get("completed"))

        row = StreakService._upsert_day(user_id, on_date, existing, tasks_completed, points_earned)
        records = StreakService._records_with(user_id, [row])

        stats = StreakService.get_user_stats(user_id)
        previous_streak = stats.get("current_streak") or 0
        current = calculate_current_streak(records, on_date)
        longest = max(calculate_longest_streak(records), stats.get("longest_streak") or 0)

        StreakService.save_stats(
            user_id,
            stats,
            current_streak=current,
            longest_streak=longest,
            total_points=(stats.get("total_points") or 0) + points_earned,
        )

        coins = 0
        milestone = None
        if first_completion and current > previous_streak:
            bonus = CoinService.award_streak_bonus(user_id, current)
            coins += bonus.amount if bonus else 0
            if current in COIN_MILESTONES:
                milestone = current
                reward = CoinService.award_milestone_bonus(user_id, current)
                coins += reward.amount if reward else 0

        logger.info(f"User {user_id} completed {on_date}: streak {previous_streak} -> {current}")
        return StreakUpdate(
            date=on_date,
            current_streak=current,
            longest_streak=longest,
            streak_increased=current > previous_streak,
            milestone_reached=milestone,
            coins_awarded=coins,
        )

    @staticmethod
    def auto_checkin(user_id: str, today: date | None = None) -> StreakUpdate | None:
        """Check the user in for today. None if they're already checked in."""
        today = today or today_utc()
        existing = SupabaseClient.select_one(
            "daily_streaks",
            {"user_id": user_id, "date": today.isoformat()},
        )
        if existing and existing.get("completed"):
            return None
        return StreakService.mark_daily_completion(user_id, tasks_completed=1, points_earned=5, on_date=today)

    @staticmethod
    def handle_streak_break(user_id: str, today: date | None = None) -> dict[str, Any] | None:
        """
        Reset a broken streak and apply the streak-loss penalty.

        Returns:
            {"lost_streak", "penalty"} if the streak was broken, else None
        """
        today = today or today_utc()
        stats = StreakService.get_user_stats(user_id)
        stored_streak = stats.get("current_streak") or 0
        if stored_streak <= 0:
            return None

        if calculate_current_streak(StreakService._get_records(user_id), today) > 0:
            return None

        StreakService.save_stats(user_id, stats, current_streak=0)
        penalty = CoinService.apply_streak_loss_penalty(user_id, stored_streak)
        logger.info(f"User {user_id} lost a {stored_streak}-day streak")
        return {
            "lost_streak": stored_streak,
            "penalty": abs(penalty.amount) if penalty else 0,
        }

    # -------------------------------------------------------------------------
    # Summary & Recovery
    # -------------------------------------------------------------------------

    @staticmethod
    def get_recovery_options(user_id: str) -> list[RecoveryOption]:
        balance = CoinService.get_balance(user_id).current_balance
        return [
            RecoveryOption(
                id=option_id,
                name=name,
                description=description,
                cost=cost,
                affordable=balance >= cost,
            )
            for option_id, (name, description, cost) in RECOVERY_OPTIONS.items()
        ]

    @staticmethod
    def get_streak_summary(user_id: str, today: date | None = None) -> StreakSummary:
        today = today or today_utc()
        analytics = calculate_streak_analytics(StreakService._get_records(user_id), today)
        return StreakSummary(
            analytics=analytics,
            next_milestone=next_milestone(analytics.current_streak),
            recovery_options=StreakService.get_recovery_options(user_id),
        )

    @staticmethod
    def recover_streak(user_id: str, option: str, today: date | None = None) -> StreakUpdate:
        """
        Pay coins to fill missed days.

        freeze and bonus_day fill yesterday; extend fills the two days
        before today. Days already completed are left untouched, and an
        option that would fill nothing is refused before any coins are spent.

        Raises:
            ValidationFailedError: Unknown option, or no missed day to fill
            InsufficientCoinsError: Balance below the option's cost
        """
        if option not in RECOVERY_OPTIONS:
            raise ValidationFailedError(
                f"Unknown recovery option '{option}'. Choose one of: {', '.join(RECOVERY_OPTIONS)}",
                field="option",
            )

        today = today or today_utc()
        name, _, cost = RECOVERY_OPTIONS[option]

        stored = StreakService._get_records(user_id)
        by_date = {to_date(r["date"]): r for r in stored}
        days_back = 2 if option == "extend" else 1
        missed = [
            day
            for day in (today - timedelta(days=offset) for offset in range(1, days_back + 1))
            if not (by_date.get(day) or {}).get("completed")
        ]
        if not missed:
            raise ValidationFailedError(
                f"Nothing to recover: the days {name} covers are already completed",
                field="option",
            )

        CoinService.spend_coins(
            user_id,
            cost,
            source="streak_recovery",
            description=f"{name} used",
            metadata={"option": option},
        )

        rows = [
            StreakService._upsert_day(
                user_id,
                day,
                by_date.get(day),
                tasks_completed=0,
                points_earned=0,
                metadata={"recovered_with": option},
                count_activity=False,
            )
            for day in missed
        ]

        records = [r for r in stored if to_date(r["date"]) not in set(missed)] + rows
        stats = StreakService.get_user_stats(user_id)
        current = calculate_current_streak(records, today)
        longest = max(calculate_longest_streak(records), stats.get("longest_streak") or 0)
        StreakService.save_stats(user_id, stats, current_streak=current, longest_streak=longest)

        logger.info(f"User {user_id} recovered streak with {option}: now {current}")
        return StreakUpdate(
            date=today,
            current_streak=current,
            longest_streak=longest,
            streak_increased=current > (stats.get("current_streak") or 0),
        )
