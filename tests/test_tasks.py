# =============================================================================
# tests/test_tasks.py - Task & Reminder Service Tests
# =============================================================================

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from core.models.streak import StreakUpdate
from core.models.task import (
    Priority,
    RecurrenceSettings,
    ReminderCreate,
    ReminderUpdate,
    TaskCreate,
    TaskUpdate,
)
from core.services.reminder_service import ReminderService
from core.services.task_service import TaskService
from app.exceptions import (
    InvalidRecurrenceRuleError,
    ReminderNotFoundError,
    TaskNotFoundError,
)

UTC = timezone.utc
DUE = datetime(2025, 3, 14, 9, 0, tzinfo=UTC)


@pytest.fixture
def task_db():
    with patch("core.services.task_service.SupabaseClient") as db:
        db.select_one.return_value = None
        db.select_many.return_value = []
        db.insert.side_effect = lambda table, data: {"id": "task-1", **data}
        db.update.side_effect = lambda table, values, filters: [{**filters, **values}]
        yield db


@pytest.fixture
def reminder_db():
    with patch("core.services.reminder_service.SupabaseClient") as db:
        db.select_one.return_value = None
        db.insert.side_effect = lambda table, data: {"id": "rem-1", **data}
        db.update.side_effect = lambda table, values, filters: [{**filters, **values}]
        yield db


@pytest.fixture
def gamification():
    """Mocks for the services toggle_completion calls."""
    with patch("core.services.task_service.CoinService") as coins, \
         patch("core.services.task_service.StreakService") as streaks, \
         patch("core.services.task_service.AchievementService") as achievements:
        coins.earn_coins.return_value = MagicMock(amount=10)
        streaks.mark_daily_completion.return_value = StreakUpdate(
            date=DUE.date(), current_streak=7, longest_streak=7,
            streak_increased=True, milestone_reached=7, coins_awarded=30,
        )
        achievements.check_achievements.return_value = []
        yield coins, streaks, achievements


# =============================================================================
# Tasks
# =============================================================================

class TestTaskCrud:
    """Tests for creating, reading, updating and deleting tasks."""

    def test_create_plain_task(self, task_db):
        row = TaskService.create_task("user_123", TaskCreate(title="Essay draft", due_date=DUE))

        assert row["priority"] == "medium"
        assert row["type"] == "academic"
        assert row["recurrence_rule"] is None
        assert row["reminder_settings"] == {"enabled": False, "offset_minutes": 15, "type": "notification"}

    def test_create_with_recurrence_settings(self, task_db):
        data = TaskCreate(
            title="Group study",
            due_date=DUE,
            recurrence=RecurrenceSettings(frequency="weekly", by_weekday=["FR"], count=4),
        )

        row = TaskService.create_task("user_123", data)

        assert row["recurrence_rule"] == "FREQ=WEEKLY;BYDAY=FR;COUNT=4"

    def test_create_with_bad_rule(self, task_db):
        with pytest.raises(InvalidRecurrenceRuleError):
            TaskService.create_task("user_123", TaskCreate(title="x", recurrence_rule="FREQ=SOMETIMES"))

        task_db.insert.assert_not_called()

    def test_get_missing_task(self, task_db):
        with pytest.raises(TaskNotFoundError):
            TaskService.get_task("user_123", "nope")

    def test_get_recurring_task_has_next_due_date(self, task_db, sample_task_row):
        task_db.select_one.return_value = {
            **sample_task_row, "due_date": "2025-03-03T09:00:00+00:00", "recurrence_rule": "FREQ=WEEKLY",
        }

        with patch("core.services.task_service.utcnow", return_value=datetime(2025, 3, 12, tzinfo=UTC)):
            row = TaskService.get_task("user_123", "task-1")

        assert row["next_due_date"] == datetime(2025, 3, 17, 9, 0, tzinfo=UTC).isoformat()

    def test_get_recurring_task_after_rule_ends(self, task_db, sample_task_row):
        task_db.select_one.return_value = {
            **sample_task_row, "due_date": "2025-03-03T09:00:00+00:00", "recurrence_rule": "FREQ=DAILY;COUNT=2",
        }

        with patch("core.services.task_service.utcnow", return_value=datetime(2025, 3, 12, tzinfo=UTC)):
            row = TaskService.get_task("user_123", "task-1")

        assert row["next_due_date"] is None

    def test_get_plain_task_unchanged(self, task_db, sample_task_row):
        task_db.select_one.return_value = sample_task_row

        assert "next_due_date" not in TaskService.get_task("user_123", "task-1")

    def test_update_only_sent_fields(self, task_db, sample_task_row):
        task_db.select_one.return_value = sample_task_row

        row = TaskService.update_task("user_123", "task-1", TaskUpdate(priority=Priority.HIGH))

        values = task_db.update.call_args.args[1]
        assert values["priority"] == "high"
        assert "title" not in values
        assert row["priority"] == "high"

    def test_empty_update_returns_existing(self, task_db, sample_task_row):
        task_db.select_one.return_value = sample_task_row

        assert TaskService.update_task("user_123", "task-1", TaskUpdate()) == sample_task_row
        task_db.update.assert_not_called()

    def test_delete_missing(self, task_db):
        task_db.delete.return_value = 0

        with pytest.raises(TaskNotFoundError):
            TaskService.delete_task("user_123", "nope")

    def test_list_expands_recurring(self, task_db, sample_task_row):
        task_db.select_many.return_value = [
            {**sample_task_row, "recurrence_rule": "FREQ=DAILY"},
        ]

        tasks = TaskService.list_tasks(
            "user_123",
            expand=True,
            range_start=datetime(2025, 3, 12, tzinfo=UTC),
            range_end=datetime(2025, 3, 15, tzinfo=UTC),
        )

        assert len(tasks) == 3
        assert all(t["master_task_id"] == "task-1" for t in tasks)

    def test_list_filters(self, task_db):
        TaskService.list_tasks("user_123", completed=False, priority=Priority.HIGH)

        filters = task_db.select_many.call_args.args[1]
        assert filters == {"user_id": "user_123", "completed": False, "priority": "high"}

    def test_dashboard_counts(self, task_db):
        task_db.count.side_effect = [12, 5]

        counts = TaskService.dashboard_counts("user_123")

        assert (counts.total, counts.completed, counts.pending) == (12, 5, 7)


class TestToggleCompletion:
    """Tests for the completion flow into gamification."""

    def test_completing_runs_gamification(self, task_db, gamification, sample_task_row):
        # Arrange
        coins, streaks, achievements = gamification
        task_db.select_one.return_value = sample_task_row

        # Act
        result = TaskService.toggle_completion("user_123", "task-1")

        # Assert
        assert result.completed is True
        assert result.coins_awarded == 40
        assert result.streak["current_streak"] == 7
        coins.earn_coins.assert_called_once()
        assert coins.earn_coins.call_args.args[1] == "task_completion"
        streaks.mark_daily_completion.assert_called_once_with(
            "user_123", tasks_completed=1, points_earned=10
        )
        assert achievements.check_achievements.call_args.args[1].action == "task_completion"

    def test_uncompleting_awards_nothing(self, task_db, gamification, sample_task_row):
        coins, streaks, achievements = gamification
        task_db.select_one.return_value = {**sample_task_row, "completed": True}

        result = TaskService.toggle_completion("user_123", "task-1")

        assert result.completed is False
        assert result.coins_awarded == 0
        coins.earn_coins.assert_not_called()
        streaks.mark_daily_completion.assert_not_called()
        assert task_db.update.call_args.args[1]["completed_at"] is None


# =============================================================================
# Reminders
# =============================================================================

class TestReminders:
    """Tests for reminder CRUD and the due-window query."""

    def test_defaults(self, reminder_db):
        row = ReminderService.create_reminder("user_123", ReminderCreate(title="Exam", due_date=DUE))

        assert row["description"] == "Reminder: Exam"
        assert row["reminder_time"] == (DUE - timedelta(hours=1)).isoformat()
        assert row["completed"] is False

    def test_explicit_reminder_time(self, reminder_db):
        at = DUE - timedelta(days=1)

        row = ReminderService.create_reminder(
            "user_123", ReminderCreate(title="Exam", due_date=DUE, reminder_time=at, description="Bring ID")
        )

        assert row["reminder_time"] == at.isoformat()
        assert row["description"] == "Bring ID"

    def test_missing_reminder(self, reminder_db):
        with pytest.raises(ReminderNotFoundError):
            ReminderService.get_reminder("user_123", "rem-9")

    def test_update_scoped_to_owner(self, reminder_db):
        reminder_db.select_one.return_value = {"id": "rem-1", "user_id": "user_123", "title": "Exam"}

        ReminderService.update_reminder("user_123", "rem-1", ReminderUpdate(completed=True))

        assert reminder_db.update.call_args.args[2] == {"id": "rem-1", "user_id": "user_123"}

    def test_delete_missing(self, reminder_db):
        reminder_db.delete.return_value = 0

        with pytest.raises(ReminderNotFoundError):
            ReminderService.delete_reminder("user_123", "rem-9")

    def test_due_window(self, reminder_db):
        now = datetime(2025, 3, 12, 8, 0, tzinfo=UTC)
        reminder_db.select_many.return_value = []

        ReminderService.due_reminders(now, window_minutes=5)

        filters = reminder_db.select_many.call_args.args[1]
        kwargs = reminder_db.select_many.call_args.kwargs
        assert filters == {"completed": False, "notified_at": None}
        assert kwargs["lt"] == {"reminder_time": (now + timedelta(minutes=5)).isoformat()}
        assert "gte" not in kwargs

    def test_overdue_reminder_is_still_due(self, reminder_db):
        now = datetime(2025, 3, 12, 8, 0, tzinfo=UTC)
        overdue = {"id": "rem-1", "reminder_time": (now - timedelta(hours=2)).isoformat(), "notified_at": None}
        reminder_db.select_many.return_value = [overdue]

        assert ReminderService.due_reminders(now) == [overdue]

    def test_mark_notified(self, reminder_db):
        now = datetime(2025, 3, 12, 8, 0, tzinfo=UTC)

        ReminderService.mark_notified("rem-1", now)

        reminder_db.update.assert_called_once_with("reminders", {"notified_at": now.isoformat()}, {"id": "rem-1"})

    def test_reschedule_clears_notified(self, reminder_db):
        reminder_db.select_one.return_value = {"id": "rem-1", "user_id": "user_123", "notified_at": "2025-03-12T07:00:00+00:00"}

        ReminderService.update_reminder("user_123", "rem-1", ReminderUpdate(reminder_time=DUE))

        assert reminder_db.update.call_args.args[1]["notified_at"] is None

    def test_create_is_not_notified(self, reminder_db):
        row = ReminderService.create_reminder("user_123", ReminderCreate(title="Exam", due_date=DUE))

        assert row["notified_at"] is None
