# =============================================================================
# tests/test_achievements.py - Achievement Tests
# =============================================================================

from unittest.mock import patch

import pytest

from app.exceptions import PushSubscriptionNotFoundError
from core.models.streak import Achievement, AchievementTrigger, AchievementType
from core.services.achievement_service import (
    STREAK_ACHIEVEMENTS,
    AchievementService,
    achievement_progress,
    builtin_streak_achievements,
)


def _achievement(id, type, criteria, points=10, coins=None):
    return Achievement(id=id, name=id.title(), type=type, criteria=criteria,
                       points_reward=points, coin_reward=coins)


# =============================================================================
# achievement_progress
# =============================================================================

class TestAchievementProgress:
    """Tests for the per-type unlock rules."""

    def test_task_threshold(self):
        achievement = _achievement("ten_tasks", AchievementType.TASK_COMPLETION, {"tasks": 10})

        assert achievement_progress(achievement, {}, 9) == (9, False)
        assert achievement_progress(achievement, {}, 10) == (10, True)

    def test_streak_threshold_reads_stats(self):
        achievement = _achievement("week", AchievementType.STREAK, {"days": 7})

        assert achievement_progress(achievement, {"current_streak": 8}, 0) == (8, True)

    def test_trigger_value_can_be_fresher(self):
        """A trigger reporting a higher value than stored stats wins."""
        achievement = _achievement("thousand", AchievementType.POINTS_EARNED, {"points": 1000})
        trigger = AchievementTrigger(action="points_earned", value=1200)

        assert achievement_progress(achievement, {"total_points": 900}, 0, trigger) == (1200, True)

    def test_zero_target_never_unlocks(self):
        achievement = _achievement("broken", AchievementType.STREAK, {})

        assert achievement_progress(achievement, {"current_streak": 50}, 0)[1] is False

    def test_action_needs_matching_trigger(self):
        achievement = _achievement("sharer", AchievementType.SOCIAL, {"action": "share_progress"})

        assert achievement_progress(achievement, {}, 0) == (0, False)
        assert achievement_progress(
            achievement, {}, 0, AchievementTrigger(action="share_progress")
        ) == (1, True)
        assert achievement_progress(
            achievement, {}, 0, AchievementTrigger(action="drink_water")
        )[1] is False

    def test_tutorial_step(self):
        achievement = _achievement("first", AchievementType.TUTORIAL, {"step": "first_task"})
        trigger = AchievementTrigger(action="tutorial", step="first_task")

        assert achievement_progress(achievement, {}, 0, trigger) == (1, True)
        assert achievement_progress(achievement, {}, 0, AchievementTrigger(action="tutorial"))[1] is False

    def test_builtin_catalogue(self):
        builtins = builtin_streak_achievements()

        assert len(builtins) == len(STREAK_ACHIEVEMENTS)
        assert builtins[2].id == "streak_7"
        assert builtins[2].name == "Week Warrior"


# =============================================================================
# AchievementService
# =============================================================================

@pytest.fixture
def achievement_db():
    catalogue = [
        {"id": "five_tasks", "name": "Five Tasks", "type": "task_completion",
         "criteria": {"tasks": 5}, "points_reward": 50, "coin_reward": 40},
        {"id": "week", "name": "Week", "type": "streak", "criteria": {"days": 7}, "points_reward": 100},
        {"id": "sharer", "name": "Sharer", "type": "social",
         "criteria": {"action": "share_progress"}, "points_reward": 20},
    ]
    state = {"catalogue": catalogue, "unlocked": []}

    def select_many(table, *args, **kwargs):
        return state["catalogue"] if table == "achievements" else state["unlocked"]

    with patch("core.services.achievement_service.SupabaseClient") as mock:
        mock.select_many.side_effect = select_many
        mock.count.return_value = 6
        mock.insert.side_effect = lambda table, data: {"id": "ua-1", **data}
        mock.state = state
        yield mock


@pytest.fixture
def stats_and_coins():
    with patch("core.services.achievement_service.StreakService") as streaks, \
         patch("core.services.achievement_service.CoinService") as coins:
        streaks.get_user_stats.return_value = {"user_id": "user_123", "total_points": 100,
                                               "current_streak": 3}
        streaks.save_stats.side_effect = lambda user_id, stats, **changes: {**stats, **changes}
        yield streaks, coins


@pytest.fixture(autouse=True)
def notifier():
    with patch("core.services.achievement_service.NotificationService") as mock:
        yield mock


class TestAchievementService:
    """Tests for listing and unlocking achievements."""

    def test_catalogue_adds_builtin_streaks_when_missing(self, achievement_db):
        achievement_db.state["catalogue"] = []

        catalogue = AchievementService.get_catalogue()

        assert len(catalogue) == len(STREAK_ACHIEVEMENTS)

    def test_catalogue_keeps_table_streaks(self, achievement_db):
        assert [a.id for a in AchievementService.get_catalogue()] == ["five_tasks", "week", "sharer"]

    def test_list_achievements(self, achievement_db, stats_and_coins):
        achievement_db.state["unlocked"] = [{"achievement_id": "five_tasks",
                                             "unlocked_at": "2025-03-01T10:00:00+00:00"}]

        result = AchievementService.list_achievements("user_123")

        assert result["stats"] == {"total": 3, "unlocked": 1, "remaining": 2}
        by_id = {a.id: a for a in result["achievements"]}
        assert by_id["five_tasks"].unlocked is True
        assert by_id["week"].user_progress == 3

    def test_check_unlocks_and_pays(self, achievement_db, stats_and_coins):
        streaks, coins = stats_and_coins

        # Act
        unlocked = AchievementService.check_achievements(
            "user_123", AchievementTrigger(action="task_completion")
        )

        # Assert: six tasks unlock five_tasks, streak of 3 doesn't unlock week
        assert [a.id for a in unlocked] == ["five_tasks"]
        assert coins.earn_coins.call_args.kwargs["amount"] == 40
        assert streaks.save_stats.call_args.kwargs["total_points"] == 150
        inserted = achievement_db.insert.call_args.args[1]
        assert inserted["achievement_id"] == "five_tasks"

    def test_check_skips_already_unlocked(self, achievement_db, stats_and_coins):
        streaks, coins = stats_and_coins
        achievement_db.state["unlocked"] = [{"achievement_id": "five_tasks"}]

        assert AchievementService.check_achievements(
            "user_123", AchievementTrigger(action="task_completion")
        ) == []
        coins.earn_coins.assert_not_called()
        streaks.save_stats.assert_not_called()

    def test_default_coin_reward(self, achievement_db, stats_and_coins):
        _, coins = stats_and_coins
        achievement_db.count.return_value = 0

        unlocked = AchievementService.check_achievements(
            "user_123", AchievementTrigger(action="share_progress")
        )

        assert [a.id for a in unlocked] == ["sharer"]
        assert coins.earn_coins.call_args.kwargs["amount"] == 25

    def test_unlock_pushes_notification(self, achievement_db, stats_and_coins, notifier):
        AchievementService.check_achievements("user_123", AchievementTrigger(action="task_completion"))

        notifier.send_achievement_notification.assert_called_once()
        user_id, achievement = notifier.send_achievement_notification.call_args.args
        assert user_id == "user_123"
        assert (achievement["id"], achievement["points_reward"]) == ("five_tasks", 50)

    def test_unlock_survives_user_without_devices(self, achievement_db, stats_and_coins, notifier):
        streaks, _ = stats_and_coins
        notifier.send_achievement_notification.side_effect = PushSubscriptionNotFoundError("user_123")

        unlocked = AchievementService.check_achievements(
            "user_123", AchievementTrigger(action="task_completion")
        )

        assert [a.id for a in unlocked] == ["five_tasks"]
        streaks.save_stats.assert_called_once()

    def test_no_unlock_no_notification(self, achievement_db, stats_and_coins, notifier):
        achievement_db.state["unlocked"] = [{"achievement_id": "five_tasks"}]

        AchievementService.check_achievements("user_123", AchievementTrigger(action="task_completion"))

        notifier.send_achievement_notification.assert_not_called()

    def test_recalculate_points(self, achievement_db, stats_and_coins):
        achievement_db.state["unlocked"] = [{"achievement_id": "five_tasks"},
                                            {"achievement_id": "week"},
                                            {"achievement_id": "retired"}]

        stats = AchievementService.recalculate_points("user_123")

        assert stats.total_points == 150
