# =============================================================================
# tests/test_notifications.py - Push Notification Tests
# =============================================================================

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from app.config import settings
from core.models.notification import NotificationStatus
from core.services.notification_service import (
    NotificationService,
    next_reminder_at,
    personalized_streak_message,
)
from lib.onesignal_client import OneSignalClient, OneSignalError
from app.exceptions import (
    NotificationDeliveryError,
    PushSubscriptionNotFoundError,
    ScheduledNotificationNotFoundError,
    ValidationFailedError,
)

NOW = datetime(2025, 3, 12, 18, 30, tzinfo=timezone.utc)


@pytest.fixture
def notify_db():
    with patch("core.services.notification_service.SupabaseClient") as db, \
         patch("core.services.notification_service.OneSignalClient") as onesignal:
        db.select_many.return_value = [{"onesignal_player_id": "p1"}, {"onesignal_player_id": "p2"}]
        db.select_one.return_value = None
        db.insert.side_effect = lambda table, data: {"id": "row-1", **data}
        db.upsert.side_effect = lambda table, data, on_conflict=None: data
        db.update.side_effect = lambda table, values, filters: [{**filters, **values}]
        onesignal.send_notification.return_value = {"id": "os-1", "recipients": 2}
        yield db, onesignal


# =============================================================================
# Pure Helpers
# =============================================================================

class TestHelpers:
    """Tests for message bands, reminder times and the OneSignal payload."""

    @pytest.mark.parametrize(
        "streak,fragment",
        [(0, "Start your first streak"), (3, "1-week milestone"),
         (12, "Keep the momentum"), (45, "Legendary 45-day")],
    )
    def test_streak_message_bands(self, streak, fragment):
        assert fragment in personalized_streak_message(streak)

    def test_next_reminder_later_today(self):
        assert next_reminder_at("20:00", NOW) == datetime(2025, 3, 12, 20, 0, tzinfo=timezone.utc)

    def test_next_reminder_rolls_to_tomorrow(self):
        assert next_reminder_at("08:15", NOW) == datetime(2025, 3, 13, 8, 15, tzinfo=timezone.utc)

    def test_payload_defaults(self):
        payload = OneSignalClient.build_payload(["p1"], "Time to study!")

        assert payload["app_id"] == settings.ONESIGNAL_APP_ID
        assert payload["include_player_ids"] == ["p1"]
        assert payload["contents"] == {"en": "Time to study!"}
        assert payload["headings"] == {"en": "MemoSpark"}
        assert payload["priority"] == 5
        assert payload["ttl"] == 259200
        assert "url" not in payload
        assert "send_after" not in payload

    def test_payload_schedules(self):
        payload = OneSignalClient.build_payload(["p1"], "Hi", heading="Hey", url="/tasks", send_after=NOW)

        assert payload["headings"] == {"en": "Hey"}
        assert payload["url"] == "/tasks"
        assert payload["send_after"] == NOW.isoformat()


# =============================================================================
# Subscriptions and Delivery
# =============================================================================

class TestDelivery:
    """Tests for device registration and sending."""

    def test_register_upserts_active(self, notify_db):
        db, _ = notify_db

        row = NotificationService.register_subscription("user_123", "p1", "ios")

        assert row["is_active"] is True
        assert db.upsert.call_args.kwargs["on_conflict"] == "onesignal_player_id"

    def test_remove_nothing_active(self, notify_db):
        db, _ = notify_db
        db.update.side_effect = None
        db.update.return_value = []

        with pytest.raises(PushSubscriptionNotFoundError):
            NotificationService.remove_subscription("user_123", "p9")

    def test_remove_one_device(self, notify_db):
        db, _ = notify_db

        assert NotificationService.remove_subscription("user_123", "p1") == 1
        assert db.update.call_args.args[2]["onesignal_player_id"] == "p1"

    def test_send_logs_sent_row(self, notify_db):
        # Arrange
        db, onesignal = notify_db

        # Act
        result = NotificationService.send_to_user("user_123", "Hi", "Time to study", category="general")

        # Assert
        assert result.notification_id == "os-1"
        assert result.recipients == 2
        assert result.status == NotificationStatus.SENT
        assert onesignal.send_notification.call_args.args[0] == ["p1", "p2"]
        queued = db.insert.call_args.args[1]
        assert queued["status"] == "sent"
        assert queued["onesignal_id"] == "os-1"

    def test_send_after_is_scheduled(self, notify_db):
        db, _ = notify_db

        result = NotificationService.send_to_user("user_123", None, "Later", send_after=NOW)

        assert result.status == NotificationStatus.SCHEDULED
        assert db.insert.call_args.args[1]["send_after"] == NOW.isoformat()

    def test_send_without_devices(self, notify_db):
        db, onesignal = notify_db
        db.select_many.return_value = []

        with pytest.raises(PushSubscriptionNotFoundError):
            NotificationService.send_to_user("user_123", "Hi", "Hello")

        onesignal.send_notification.assert_not_called()

    def test_provider_failure_logs_failed_row(self, notify_db):
        db, onesignal = notify_db
        onesignal.send_notification.side_effect = OneSignalError("OneSignal returned 400")

        with pytest.raises(NotificationDeliveryError):
            NotificationService.send_to_user("user_123", "Hi", "Hello")

        queued = db.insert.call_args.args[1]
        assert queued["status"] == "failed"
        assert queued["error"] == "OneSignal returned 400"

    def test_task_reminder_message(self, notify_db):
        _, onesignal = notify_db

        NotificationService.send_task_reminder(
            "user_123", {"id": "t1", "title": "Essay", "due_date": "2025-03-14T09:00:00+00:00"}
        )

        assert onesignal.send_notification.call_args.args[1] == "Don't forget: Essay (due Mar 14, 09:00)"
        assert onesignal.send_notification.call_args.kwargs["data"]["category"] == "task_reminder"

    def test_achievement_message(self, notify_db):
        _, onesignal = notify_db

        NotificationService.send_achievement_notification(
            "user_123", {"id": "streak_7", "name": "Week Warrior", "points_reward": 50}
        )

        assert onesignal.send_notification.call_args.args[1] == (
            "You unlocked 'Week Warrior' and earned 50 points!"
        )

    def test_study_break_message(self, notify_db):
        _, onesignal = notify_db

        NotificationService.send_study_break_reminder("user_123", minutes=50)

        assert "studying for 50 minutes" in onesignal.send_notification.call_args.args[1]
        assert onesignal.send_notification.call_args.kwargs["data"]["category"] == "study_break"

    def test_cancel_scheduled(self, notify_db):
        db, onesignal = notify_db
        db.select_one.return_value = {"id": "row-7", "onesignal_id": "os-9", "status": "scheduled"}

        row = NotificationService.cancel_scheduled("user_123", "os-9")

        onesignal.cancel_notification.assert_called_once_with("os-9")
        assert db.select_one.call_args.args[1]["status"] == "scheduled"
        assert db.update.call_args.args[1:] == ({"status": "cancelled"}, {"id": "row-7"})
        assert row["status"] == "cancelled"

    def test_cancel_unknown_scheduled(self, notify_db):
        db, onesignal = notify_db

        with pytest.raises(ScheduledNotificationNotFoundError):
            NotificationService.cancel_scheduled("user_123", "os-404")

        onesignal.cancel_notification.assert_not_called()

    def test_cancel_rejected_by_provider(self, notify_db):
        db, onesignal = notify_db
        db.select_one.return_value = {"id": "row-7", "onesignal_id": "os-9", "status": "scheduled"}
        onesignal.cancel_notification.side_effect = OneSignalError("Failed to cancel notification os-9")

        with pytest.raises(NotificationDeliveryError):
            NotificationService.cancel_scheduled("user_123", "os-9")

        db.update.assert_not_called()

    def test_track_event(self, notify_db):
        row = NotificationService.track_event("user_123", "os-1", "opened")

        assert row["event"] == "opened"

    def test_track_unknown_event(self, notify_db):
        with pytest.raises(ValidationFailedError):
            NotificationService.track_event("user_123", "os-1", "exploded")


# =============================================================================
# Daily Streak Reminders
# =============================================================================

class TestStreakReminders:
    """Tests for scheduling and delivering daily streak reminders."""

    def test_enable_sets_next_time(self, notify_db):
        preference, message = NotificationService.schedule_daily_streak_reminders(
            "user_123", "enable", "20:00", now=NOW
        )

        assert preference.enabled is True
        assert preference.next_reminder_at == datetime(2025, 3, 12, 20, 0, tzinfo=timezone.utc)
        assert message == "Daily streak reminders enabled"

    def test_disable_keeps_time(self, notify_db):
        db, _ = notify_db
        db.select_one.return_value = {"enabled": True, "reminder_time": "07:30"}

        preference, _ = NotificationService.schedule_daily_streak_reminders(
            "user_123", "disable", now=NOW
        )

        assert preference.enabled is False
        assert preference.reminder_time == "07:30"
        assert preference.next_reminder_at is None

    def test_update_keeps_disabled_state(self, notify_db):
        db, _ = notify_db
        db.select_one.return_value = {"enabled": False, "reminder_time": "07:30"}

        preference, message = NotificationService.schedule_daily_streak_reminders(
            "user_123", "update", "09:00", now=NOW
        )

        assert preference.enabled is False
        assert preference.reminder_time == "09:00"
        assert "updated" in message

    def test_invalid_action(self, notify_db):
        with pytest.raises(ValidationFailedError):
            NotificationService.schedule_daily_streak_reminders("user_123", "snooze", now=NOW)

    def test_deliver_advances_to_tomorrow(self, notify_db):
        # Arrange
        db, onesignal = notify_db
        db.select_one.return_value = {"current_streak": 12}
        preference = {"user_id": "user_123", "reminder_time": "18:00"}

        # Act
        sent = NotificationService.deliver_streak_reminder(preference, now=NOW)

        # Assert
        assert sent is True
        assert "12-day streak" in onesignal.send_notification.call_args.args[1]
        advanced = db.update.call_args.args[1]
        assert advanced["next_reminder_at"] == datetime(2025, 3, 13, 18, 0, tzinfo=timezone.utc).isoformat()
        assert advanced["last_sent_at"] == NOW.isoformat()

    def test_deliver_without_devices_still_advances(self, notify_db):
        db, onesignal = notify_db
        db.select_many.return_value = []

        sent = NotificationService.deliver_streak_reminder({"user_id": "user_123"}, now=NOW)

        assert sent is False
        onesignal.send_notification.assert_not_called()
        assert db.update.call_args.args[1]["next_reminder_at"] is not None
