# =============================================================================
# core/services/achievement_service.py - Achievements
# =============================================================================
# Achievements unlock once per user. Each has a type and criteria:
#
#   task_completion  {"tasks": N}    completed tasks >= N
#   streak           {"days": N}     current streak >= N
#   points_earned    {"points": N}   total points >= N
#   social/wellness  {"action": a}   triggered by action a
#   tutorial         {"step": s}     triggered by tutorial step s
#
# Unlocking adds points_reward to user_stats, pays coins and pushes a
# notification. A failed push is logged and never undoes the unlock.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import utcnow
from core.models.streak import (
    Achievement,
    AchievementProgress,
    AchievementTrigger,
    AchievementType,
    UserStats,
)
from core.services.coin_service import CoinService, base_earning
from core.services.notification_service import NotificationService
from core.services.streak_service import StreakService
from app.exceptions import NotificationDeliveryError, PushSubscriptionNotFoundError

logger = logging.getLogger(__name__)

# (days, name, points)
STREAK_ACHIEVEMENTS = (
    (1, "First Steps", 10),
    (3, "Getting Started", 25),
    (7, "Week Warrior", 50),
    (14, "Two Week Champion", 100),
    (21, "Three Week Master", 150),
    (30, "Monthly Milestone", 250),
    (60, "Double Down", 400),
    (90, "Quarter Century", 600),
    (100, "Centurion", 1000),
    (180, "Half Year Hero", 1500),
    (365, "Annual Legend", 3000),
    (500, "Beyond Human", 5000),
    (1000, "Immortal", 10000),
)

# Types whose criteria is a numeric threshold, and the criteria key for each
THRESHOLD_KEYS = {
    AchievementType.TASK_COMPLETION: "tasks",
    AchievementType.STREAK: "days",
    AchievementType.POINTS_EARNED: "points",
}


def builtin_streak_achievements() -> list[Achievement]:
    return [
        Achievement(
            id=f"streak_{days}",
            name=name,
            description=f"Keep a {days}-day streak",
            type=AchievementType.STREAK,
            criteria={"days": days},
            points_reward=points,
        )
        for days, name, points in STREAK_ACHIEVEMENTS
    ]


def achievement_progress(
    achievement: Achievement,
    stats: dict[str, Any],
    tasks_completed: int,
    trigger: AchievementTrigger | None = None,
) -> tuple[int, bool]:
    """
    How far the user is towards an achievement, and whether it's met.

    Threshold types compare a stat against the criteria; a trigger of the
    same type may report a fresher value than what's stored. Action and
    tutorial types only unlock from a matching trigger.
    """
    key = THRESHOLD_KEYS.get(achievement.type)
    if key:
        target = int(achievement.criteria.get(key) or 0)
        current = {
            AchievementType.TASK_COMPLETION: tasks_completed,
            AchievementType.STREAK: stats.get("current_streak") or 0,
            AchievementType.POINTS_EARNED: stats.get("total_points") or 0,
        }[achievement.type]
        if trigger and trigger.action == achievement.type.value and trigger.value is not None:
            current = max(current, trigger.value)
        return current, target > 0 and current >= target

    if trigger is None:
        return 0, False

    if achievement.type == AchievementType.TUTORIAL:
        met = trigger.step is not None and achievement.criteria.get("step") == trigger.step
    else:
        met = achievement.criteria.get("action") == trigger.action
    return int(met), met


class AchievementService:
    """Achievement catalogue and unlock checks."""

    @staticmethod
    def get_catalogue() -> list[Achievement]:
        """Achievements from the table, with built-in streak ones if it has none."""
        rows = SupabaseClient.select_many("achievements", order_by="points_reward")
        achievements = [Achievement(**row) for row in rows]
        if not any(a.type == AchievementType.STREAK for a in achievements):
            achievements.extend(builtin_streak_achievements())
        return achievements

    @staticmethod
    def _unlocked_rows(user_id: str) -> dict[str, dict[str, Any]]:
        rows = SupabaseClient.select_many("user_achievements", {"user_id": user_id})
        return {str(r["achievement_id"]): r for r in rows}

    @staticmethod
    def _tasks_completed(user_id: str) -> int:
        return SupabaseClient.count("tasks", {"user_id": user_id, "completed": True})

    @staticmethod
    def list_achievements(user_id: str) -> dict[str, Any]:
        catalogue = AchievementService.get_catalogue()
        unlocked = AchievementService._unlocked_rows(user_id)
        stats = StreakService.get_user_stats(user_id)
        tasks_completed = AchievementService._tasks_completed(user_id)

        achievements = []
        for achievement in catalogue:
            row = unlocked.get(achievement.id)
            progress, _ = achievement_progress(achievement, stats, tasks_completed)
            achievements.append(
                AchievementProgress(
                    **achievement.model_dump(),
                    unlocked=row is not None,
                    unlocked_at=row.get("unlocked_at") if row else None,
                    user_progress=progress,
                )
            )

        unlocked_count = sum(1 for a in achievements if a.unlocked)
        return {
            "achievements": achievements,
            "stats": {
                "total": len(achievements),
                "unlocked": unlocked_count,
                "remaining": len(achievements) - unlocked_count,
            },
        }

    @staticmethod
    def check_achievements(user_id: str, trigger: AchievementTrigger) -> list[AchievementProgress]:
        """
        Unlock every achievement the user now qualifies for.

        Returns:
            The newly unlocked achievements (empty if none)
        """
        catalogue = AchievementService.get_catalogue()
        unlocked = AchievementService._unlocked_rows(user_id)
        stats = StreakService.get_user_stats(user_id)
        tasks_completed = AchievementService._tasks_completed(user_id)

        newly_unlocked: list[AchievementProgress] = []
        for achievement in catalogue:
            if achievement.id in unlocked:
                continue

            progress, met = achievement_progress(achievement, stats, tasks_completed, trigger)
            if not met:
                continue

            now = utcnow()
            SupabaseClient.insert(
                "user_achievements",
                {
                    "user_id": user_id,
                    "achievement_id": achievement.id,
                    "unlocked_at": now.isoformat(),
                    "progress": progress,
                },
            )
            CoinService.earn_coins(
                user_id,
                "achievement_unlock",
                amount=achievement.coin_reward or base_earning("achievement_unlock"),
                description=f"Unlocked achievement: {achievement.name}",
                metadata={"achievement_id": achievement.id},
            )
            newly_unlocked.append(
                AchievementProgress(
                    **achievement.model_dump(),
                    unlocked=True,
                    unlocked_at=now,
                    user_progress=progress,
                )
            )
            logger.info(f"User {user_id} unlocked achievement {achievement.id}")

        if newly_unlocked:
            points = sum(a.points_reward for a in newly_unlocked)
            StreakService.save_stats(
                user_id,
                stats,
                total_points=(stats.get("total_points") or 0) + points,
            )

        for achievement in newly_unlocked:
            AchievementService._notify_unlock(user_id, achievement)

        return newly_unlocked

    @staticmethod
    def _notify_unlock(user_id: str, achievement: AchievementProgress) -> None:
        try:
            NotificationService.send_achievement_notification(user_id, achievement.model_dump())
        except (PushSubscriptionNotFoundError, NotificationDeliveryError) as e:
            logger.warning(f"Achievement {achievement.id} push to {user_id} not sent: {e.message}")

    @staticmethod
    def recalculate_points(user_id: str) -> UserStats:
        """Rebuild total_points from the rewards of unlocked achievements."""
        rewards = {a.id: a.points_reward for a in AchievementService.get_catalogue()}
        unlocked = AchievementService._unlocked_rows(user_id)
        total = sum(rewards.get(achievement_id, 0) for achievement_id in unlocked)

        stats = StreakService.get_user_stats(user_id)
        saved = StreakService.save_stats(user_id, stats, total_points=total)
        logger.info(f"Recalculated points for {user_id}: {total}")
        return UserStats(**{k: v for k, v in saved.items() if k in UserStats.model_fields})
