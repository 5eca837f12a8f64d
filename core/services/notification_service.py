# =============================================================================
# core/services/notification_service.py - Push Notifications
# =============================================================================
# Users register OneSignal player IDs (one per device) in push_subscriptions.
# Every notification sent is logged to notification_queue so the history
# endpoint and analytics have something to join against.
#
# Daily streak reminders are a per-user preference in daily_streak_reminders;
# the Celery beat job picks up due ones via due_streak_reminders().
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any

from lib.onesignal_client import OneSignalClient, OneSignalError
from lib.supabase_client import SupabaseClient
from lib.utils import to_datetime, utcnow
from core.models.notification import (
    NotificationEvent,
    NotificationResult,
    NotificationStatus,
    StreakReminderAction,
    StreakReminderPreference,
)
from app.exceptions import (
    NotificationDeliveryError,
    PushSubscriptionNotFoundError,
    ScheduledNotificationNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_TIME = "20:00"


def personalized_streak_message(streak: int) -> str:
    if streak == 0:
        return "Start your first streak today! Daily reminders will help you build the habit."
    if streak < 7:
        return f"Great {streak}-day streak! Check in today to reach the 1-week milestone."
    if streak < 30:
        return f"Amazing {streak}-day streak! Keep the momentum going with today's check-in."
    return f"Legendary {streak}-day streak! Don't let this incredible run end today."


def next_reminder_at(reminder_time: str, now: datetime) -> datetime:
    """Today at reminder_time (UTC), or tomorrow if that's already passed."""
    hour, minute = (int(part) for part in reminder_time.split(":"))
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class NotificationService:
    """Push subscriptions, delivery, and streak reminder scheduling."""

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    @staticmethod
    def register_subscription(user_id: str, player_id: str, device_type: str = "web") -> dict[str, Any]:
        row = SupabaseClient.upsert(
            "push_subscriptions",
            {
                "external_user_id": user_id,
                "onesignal_player_id": player_id,
                "device_type": device_type,
                "is_active": True,
                "updated_at": utcnow().isoformat(),
            },
            on_conflict="onesignal_player_id",
        )
        logger.info(f"Registered push subscription {player_id} for {user_id}")
        return row

    @staticmethod
    def remove_subscription(user_id: str, player_id: str | None = None) -> int:
        """
        Deactivate one device, or all of the user's devices.

        Raises:
            PushSubscriptionNotFoundError: Nothing active matched
        """
        filters: dict[str, Any] = {"external_user_id": user_id, "is_active": True}
        if player_id:
            filters["onesignal_player_id"] = player_id

        rows = SupabaseClient.update(
            "push_subscriptions",
            {"is_active": False, "updated_at": utcnow().isoformat()},
            filters,
        )
        if not rows:
            raise PushSubscriptionNotFoundError(user_id)

        logger.info(f"Deactivated {len(rows)} push subscription(s) for {user_id}")
        return len(rows)

    @staticmethod
    def get_player_ids(user_id: str) -> list[str]:
        rows = SupabaseClient.select_many(
            "push_subscriptions",
            {"external_user_id": user_id, "is_active": True},
        )
        return [r["onesignal_player_id"] for r in rows if r.get("onesignal_player_id")]

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    @staticmethod
    def send_to_user(
        user_id: str,
        title: str | None,
        message: str,
        data: dict[str, Any] | None = None,
        url: str | None = None,
        category: str = "general",
        send_after: datetime | None = None,
    ) -> NotificationResult:
        """
        Push a notification to all of a user's devices.

        Raises:
            PushSubscriptionNotFoundError: The user has no active devices
            NotificationDeliveryError: OneSignal rejected the notification
        """
        player_ids = NotificationService.get_player_ids(user_id)
        if not player_ids:
            raise PushSubscriptionNotFoundError(user_id)

        payload_data = {**(data or {}), "category": category}
        queue_row = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "category": category,
            "data": payload_data,
            "send_after": send_after.isoformat() if send_after else None,
            "created_at": utcnow().isoformat(),
        }

        try:
            result = OneSignalClient.send_notification(
                player_ids,
                message,
                heading=title,
                data=payload_data,
                url=url,
                send_after=send_after,
            )
        except OneSignalError as e:
            SupabaseClient.insert(
                "notification_queue",
                {**queue_row, "status": NotificationStatus.FAILED.value, "error": e.message},
            )
            logger.error(f"Notification to {user_id} failed: {e.message}")
            raise NotificationDeliveryError(e.message)

        status = NotificationStatus.SCHEDULED if send_after else NotificationStatus.SENT
        SupabaseClient.insert(
            "notification_queue",
            {**queue_row, "status": status.value, "onesignal_id": result.get("id")},
        )

        logger.info(f"Notification {result.get('id')} {status.value} to {user_id} ({category})")
        return NotificationResult(
            success=True,
            notification_id=result.get("id"),
            recipients=result.get("recipients", len(player_ids)),
            status=status,
        )

    @staticmethod
    def send_task_reminder(user_id: str, task: dict[str, Any]) -> NotificationResult:
        message = f"Don't forget: {task['title']}"
        if task.get("due_date"):
            message += f" (due {to_datetime(task['due_date']).strftime('%b %d, %H:%M')})"
        return NotificationService.send_to_user(
            user_id,
            "Task Reminder",
            message,
            data={"type": "task_reminder", "task_id": task.get("id")},
            category="task_reminder",
        )

    @staticmethod
    def send_achievement_notification(user_id: str, achievement: dict[str, Any]) -> NotificationResult:
        message = f"You unlocked '{achievement['name']}'"
        if achievement.get("points_reward"):
            message += f" and earned {achievement['points_reward']} points"
        return NotificationService.send_to_user(
            user_id,
            "Achievement Unlocked!",
            message + "!",
            data={"type": "achievement", "achievement_id": achievement.get("id")},
            category="achievement",
        )

    @staticmethod
    def send_study_break_reminder(user_id: str, minutes: int = 25) -> NotificationResult:
        return NotificationService.send_to_user(
            user_id,
            "Time for a break",
            f"You've been studying for {minutes} minutes. Take a 5-minute break to recharge.",
            data={"type": "study_break", "minutes": minutes},
            category="study_break",
        )

    @staticmethod
    def send_streak_reminder(user_id: str, streak: int) -> NotificationResult:
        return NotificationService.send_to_user(
            user_id,
            "Keep your streak alive",
            personalized_streak_message(streak),
            data={"type": "streak_reminder", "streak": streak},
            url="/dashboard",
            category="streak_reminder",
        )

    @staticmethod
    def cancel_scheduled(user_id: str, notification_id: str) -> dict[str, Any]:
        """
        Cancel one of the user's scheduled notifications before it goes out.

        Raises:
            ScheduledNotificationNotFoundError: No scheduled notification with this OneSignal ID
            NotificationDeliveryError: OneSignal refused the cancellation
        """
        row = SupabaseClient.select_one(
            "notification_queue",
            {
                "user_id": user_id,
                "onesignal_id": notification_id,
                "status": NotificationStatus.SCHEDULED.value,
            },
        )
        if not row:
            raise ScheduledNotificationNotFoundError(notification_id)

        try:
            OneSignalClient.cancel_notification(notification_id)
        except OneSignalError as e:
            logger.error(f"Cancelling notification {notification_id} failed: {e.message}")
            raise NotificationDeliveryError(e.message)

        rows = SupabaseClient.update(
            "notification_queue",
            {"status": NotificationStatus.CANCELLED.value},
            {"id": row["id"]},
        )
        logger.info(f"Cancelled scheduled notification {notification_id} for {user_id}")
        return rows[0] if rows else {**row, "status": NotificationStatus.CANCELLED.value}

    # -------------------------------------------------------------------------
    # Analytics & History
    # -------------------------------------------------------------------------

    @staticmethod
    def track_event(user_id: str, notification_id: str, event: NotificationEvent | str) -> dict[str, Any]:
        try:
            event = NotificationEvent(event)
        except ValueError:
            raise ValidationFailedError(
                f"Unknown event '{event}'. Use one of: {', '.join(e.value for e in NotificationEvent)}",
                field="event",
            )

        return SupabaseClient.insert(
            "notification_analytics",
            {
                "user_id": user_id,
                "notification_id": notification_id,
                "event": event.value,
                "occurred_at": utcnow().isoformat(),
            },
        )

    @staticmethod
    def list_history(user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return SupabaseClient.select_many(
            "notification_queue",
            {"user_id": user_id},
            order_by="created_at",
            desc=True,
            limit=limit,
        )

    # -------------------------------------------------------------------------
    # Daily Streak Reminders
    # -------------------------------------------------------------------------

    @staticmethod
    def schedule_daily_streak_reminders(
        user_id: str,
        action: StreakReminderAction | str,
        reminder_time: str = DEFAULT_REMINDER_TIME,
        now: datetime | None = None,
    ) -> tuple[StreakReminderPreference, str]:
        """
        Enable, update or disable the user's daily streak reminder.

        Returns:
            (stored preference, human-readable confirmation)

        Raises:
            ValidationFailedError: Unknown action
        """
        try:
            action = StreakReminderAction(action)
        except ValueError:
            raise ValidationFailedError(
                f"Invalid action '{action}'. Use enable, update or disable",
                field="action",
            )

        now = now or utcnow()
        existing = SupabaseClient.select_one("daily_streak_reminders", {"user_id": user_id})

        if action in (StreakReminderAction.DISABLE, StreakReminderAction.CANCEL):
            values = {
                "enabled": False,
                "reminder_time": (existing or {}).get("reminder_time") or reminder_time,
                "next_reminder_at": None,
            }
            message = "Daily streak reminders disabled"
        else:
            enabled = True
            if action == StreakReminderAction.UPDATE and existing is not None:
                enabled = bool(existing.get("enabled"))
            values = {
                "enabled": enabled,
                "reminder_time": reminder_time,
                "next_reminder_at": next_reminder_at(reminder_time, now).isoformat() if enabled else None,
            }
            message = (
                "Daily streak reminder preferences updated"
                if action == StreakReminderAction.UPDATE
                else "Daily streak reminders enabled"
            )

        row = SupabaseClient.upsert(
            "daily_streak_reminders",
            {"user_id": user_id, **values, "updated_at": now.isoformat()},
            on_conflict="user_id",
        )
        logger.info(f"Streak reminders for {user_id}: {action.value} at {values['reminder_time']}")
        return StreakReminderPreference(
            user_id=user_id,
            enabled=row.get("enabled", values["enabled"]),
            reminder_time=row.get("reminder_time") or values["reminder_time"],
            next_reminder_at=row.get("next_reminder_at"),
        ), message

    @staticmethod
    def due_streak_reminders(now: datetime | None = None) -> list[dict[str, Any]]:
        now = now or utcnow()
        return SupabaseClient.select_many(
            "daily_streak_reminders",
            {"enabled": True},
            lte={"next_reminder_at": now.isoformat()},
        )

    @staticmethod
    def deliver_streak_reminder(preference: dict[str, Any], now: datetime | None = None) -> bool:
        """
        Send one due streak reminder and move it to the next day.

        The reminder is advanced even when delivery fails so a user without
        devices isn't retried every few minutes.

        Returns:
            True if a notification went out
        """
        now = now or utcnow()
        user_id = preference["user_id"]
        stats = SupabaseClient.select_one("user_stats", {"user_id": user_id}) or {}

        sent = False
        try:
            NotificationService.send_streak_reminder(user_id, stats.get("current_streak") or 0)
            sent = True
        except (PushSubscriptionNotFoundError, NotificationDeliveryError) as e:
            logger.warning(f"Streak reminder for {user_id} not delivered: {e.message}")

        SupabaseClient.update(
            "daily_streak_reminders",
            {
                "next_reminder_at": next_reminder_at(
                    preference.get("reminder_time") or DEFAULT_REMINDER_TIME, now
                ).isoformat(),
                "last_sent_at": now.isoformat() if sent else preference.get("last_sent_at"),
            },
            {"user_id": user_id},
        )
        return sent
