# =============================================================================
# core/services/task_service.py - Tasks
# =============================================================================
# CRUD for tasks plus the completion flow that feeds gamification:
#
#   toggle (incomplete -> complete)
#     -> earn task_completion coins
#     -> mark today complete for the streak
#     -> check achievements
#
# Recurring tasks are stored once (the master, with an RRULE) and expanded
# into instances on read.
# =============================================================================

import logging
from datetime import datetime, timedelta
from typing import Any

from lib.recurrence import (
    build_rrule,
    expand_recurring_tasks,
    is_master_recurring_task,
    next_occurrence,
    validate_rrule,
)
from lib.supabase_client import SupabaseClient
from lib.utils import to_datetime, utcnow
from core.models.streak import AchievementTrigger
from core.models.task import (
    DashboardCounts,
    Priority,
    TaskCreate,
    TaskToggleResult,
    TaskType,
    TaskUpdate,
)
from core.services.achievement_service import AchievementService
from core.services.coin_service import CoinService
from core.services.streak_service import StreakService
from app.exceptions import TaskNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_EXPANSION_WINDOW = timedelta(days=30)
TASK_COMPLETION_POINTS = 10


class TaskService:
    """Task CRUD and completion."""

    @staticmethod
    def create_task(user_id: str, data: TaskCreate) -> dict[str, Any]:
        """
        Raises:
            InvalidRecurrenceRuleError: Bad recurrence settings or RRULE
        """
        rule = data.recurrence_rule
        if data.recurrence:
            rule = build_rrule(
                data.recurrence.frequency,
                interval=data.recurrence.interval,
                by_weekday=data.recurrence.by_weekday,
                count=data.recurrence.count,
                until=data.recurrence.until,
            )
        if rule:
            validate_rrule(rule, to_datetime(data.due_date) if data.due_date else utcnow())

        row = SupabaseClient.insert(
            "tasks",
            {
                "user_id": user_id,
                "title": data.title,
                "description": data.description,
                "due_date": data.due_date.isoformat() if data.due_date else None,
                "priority": data.priority.value,
                "type": data.type.value,
                "subject": data.subject,
                "completed": False,
                "reminder_settings": data.reminder_settings.model_dump(),
                "recurrence_rule": rule,
                "created_at": utcnow().isoformat(),
            },
        )
        logger.info(f"Created task {row.get('id')} for {user_id}{' (recurring)' if rule else ''}")
        return row

    @staticmethod
    def list_tasks(
        user_id: str,
        completed: bool | None = None,
        priority: Priority | None = None,
        task_type: TaskType | None = None,
        due_before: datetime | None = None,
        due_after: datetime | None = None,
        expand: bool = False,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """
        List the user's tasks.

        With expand=True, recurring tasks are replaced by their occurrences
        between range_start (default now) and range_end (default +30 days).
        """
        filters: dict[str, Any] = {"user_id": user_id}
        if completed is not None:
            filters["completed"] = completed
        if priority:
            filters["priority"] = priority.value
        if task_type:
            filters["type"] = task_type.value

        rows = SupabaseClient.select_many(
            "tasks",
            filters,
            gte={"due_date": due_after.isoformat()} if due_after else None,
            lte={"due_date": due_before.isoformat()} if due_before else None,
            order_by="due_date",
        )
        if not expand:
            return rows

        start = to_datetime(range_start) if range_start else utcnow()
        end = to_datetime(range_end) if range_end else start + DEFAULT_EXPANSION_WINDOW
        return expand_recurring_tasks(rows, start, end)

    @staticmethod
    def get_task(user_id: str, task_id: str) -> dict[str, Any]:
        """A stored task. Recurring masters also get next_due_date, the next occurrence from now."""
        row = SupabaseClient.select_one("tasks", {"id": task_id, "user_id": user_id})
        if not row:
            raise TaskNotFoundError(task_id)
        if is_master_recurring_task(row) and row.get("due_date"):
            upcoming = next_occurrence(row["recurrence_rule"], row["due_date"], utcnow())
            row = {**row, "next_due_date": upcoming.isoformat() if upcoming else None}
        return row

    @staticmethod
    def update_task(user_id: str, task_id: str, data: TaskUpdate) -> dict[str, Any]:
        existing = TaskService.get_task(user_id, task_id)

        values = data.model_dump(exclude_unset=True, mode="json")
        if not values:
            return existing

        if values.get("recurrence_rule"):
            due = values.get("due_date") or existing.get("due_date")
            validate_rrule(values["recurrence_rule"], to_datetime(due) if due else utcnow())

        rows = SupabaseClient.update(
            "tasks",
            {**values, "updated_at": utcnow().isoformat()},
            {"id": task_id, "user_id": user_id},
        )
        return rows[0] if rows else {**existing, **values}

    @staticmethod
    def delete_task(user_id: str, task_id: str) -> None:
        deleted = SupabaseClient.delete("tasks", {"id": task_id, "user_id": user_id})
        if not deleted:
            raise TaskNotFoundError(task_id)
        logger.info(f"Deleted task {task_id} for {user_id}")

    @staticmethod
    def toggle_completion(user_id: str, task_id: str) -> TaskToggleResult:
        """
        Flip a task's completed flag.

        Completing a task pays coins, counts today toward the streak, and
        checks achievements. Un-completing it gives nothing back or away.
        """
        task = TaskService.get_task(user_id, task_id)
        completed = not task.get("completed")

        rows = SupabaseClient.update(
            "tasks",
            {
                "completed": completed,
                "completed_at": utcnow().isoformat() if completed else None,
                "updated_at": utcnow().isoformat(),
            },
            {"id": task_id, "user_id": user_id},
        )
        updated = rows[0] if rows else {**task, "completed": completed}

        if not completed:
            return TaskToggleResult(task=updated, completed=False)

        coins = CoinService.earn_coins(
            user_id,
            "task_completion",
            description=f"Completed task: {task['title']}",
            metadata={"task_id": task_id},
        )
        streak = StreakService.mark_daily_completion(
            user_id,
            tasks_completed=1,
            points_earned=TASK_COMPLETION_POINTS,
        )
        unlocked = AchievementService.check_achievements(
            user_id,
            AchievementTrigger(action="task_completion"),
        )

        logger.info(f"User {user_id} completed task {task_id}")
        return TaskToggleResult(
            task=updated,
            completed=True,
            coins_awarded=coins.amount + streak.coins_awarded,
            streak=streak.model_dump(mode="json"),
            achievements_unlocked=[a.model_dump(mode="json") for a in unlocked],
        )

    @staticmethod
    def dashboard_counts(user_id: str) -> DashboardCounts:
        total = SupabaseClient.count("tasks", {"user_id": user_id})
        completed = SupabaseClient.count("tasks", {"user_id": user_id, "completed": True})
        return DashboardCounts(total=total, completed=completed, pending=total - completed)
