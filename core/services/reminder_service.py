# =============================================================================
# core/services/reminder_service.py - Reminders
# =============================================================================
# Standalone reminders (separate from task reminder_settings). The worker
# polls due_reminders(), pushes a notification for each and marks it notified.
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import to_datetime, utcnow
from core.models.task import Priority, ReminderCreate, ReminderUpdate
from app.exceptions import ReminderNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME = timedelta(hours=1)


class ReminderService:

    @staticmethod
    def create_reminder(user_id: str, data: ReminderCreate) -> dict[str, Any]:
        due_date = to_datetime(data.due_date)
        reminder_time = to_datetime(data.reminder_time) if data.reminder_time else due_date - DEFAULT_LEAD_TIME

        row = SupabaseClient.insert(
            "reminders",
            {
                "user_id": user_id,
                "title": data.title,
                "description": data.description or f"Reminder: {data.title}",
                "due_date": due_date.isoformat(),
                "reminder_time": reminder_time.isoformat(),
                "priority": data.priority.value,
                "completed": False,
                "notified_at": None,
                "created_at": utcnow().isoformat(),
            },
        )
        logger.info(f"Created reminder {row.get('id')} for {user_id}")
        return row

    @staticmethod
    def list_reminders(
        user_id: str,
        completed: bool | None = None,
        priority: Priority | None = None,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
    ) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"user_id": user_id}
        if completed is not None:
            filters["completed"] = completed
        if priority:
            filters["priority"] = priority.value

        return SupabaseClient.select_many(
            "reminders",
            filters,
            gte={"due_date": due_after.isoformat()} if due_after else None,
            lte={"due_date": due_before.isoformat()} if due_before else None,
            order_by="due_date",
        )

    @staticmethod
    def get_reminder(user_id: str, reminder_id: str) -> dict[str, Any]:
        """
        Raises:
            ReminderNotFoundError: Missing or owned by someone else
        """
        row = SupabaseClient.select_one("reminders", {"id": reminder_id, "user_id": user_id})
        if not row:
            raise ReminderNotFoundError(reminder_id)
        return row

    @staticmethod
    def update_reminder(user_id: str, reminder_id: str, data: ReminderUpdate) -> dict[str, Any]:
        existing = ReminderService.get_reminder(user_id, reminder_id)

        values = data.model_dump(exclude_unset=True, mode="json")
        if not values:
            return existing
        if "reminder_time" in values:
            values["notified_at"] = None

        rows = SupabaseClient.update(
            "reminders",
            {**values, "updated_at": utcnow().isoformat()},
            {"id": reminder_id, "user_id": user_id},
        )
        return rows[0] if rows else {**existing, **values}

    @staticmethod
    def delete_reminder(user_id: str, reminder_id: str) -> None:
        deleted = SupabaseClient.delete("reminders", {"id": reminder_id, "user_id": user_id})
        if not deleted:
            raise ReminderNotFoundError(reminder_id)
        logger.info(f"Deleted reminder {reminder_id} for {user_id}")

    @staticmethod
    def due_reminders(now: datetime | None = None, window_minutes: int = 5) -> list[dict[str, Any]]:
        """
        Uncompleted, not yet notified reminders with reminder_time before now + window.

        Overdue reminders stay due until mark_notified() records a delivery, so
        a late or skipped sweep still picks them up.
        """
        now = now or utcnow()
        return SupabaseClient.select_many(
            "reminders",
            {"completed": False, "notified_at": None},
            lt={"reminder_time": (now + timedelta(minutes=window_minutes)).isoformat()},
            order_by="reminder_time",
        )

    @staticmethod
    def mark_notified(reminder_id: str, now: datetime | None = None) -> None:
        now = now or utcnow()
        SupabaseClient.update("reminders", {"notified_at": now.isoformat()}, {"id": reminder_id})
