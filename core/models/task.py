# =============================================================================
# core/models/task.py - Task & Reminder Schemas
# =============================================================================
# Tasks may recur: a master task stores an RRULE in `recurrence_rule` and the
# list endpoint can expand it into instances for a date range.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskType(str, Enum):
    ACADEMIC = "academic"
    PERSONAL = "personal"
    EVENT = "event"


class ReminderSettings(BaseModel):
    enabled: bool = False
    offset_minutes: int = Field(default=15, ge=0)
    type: str = "notification"


class RecurrenceSettings(BaseModel):
    """Friendly recurrence input, converted to an RRULE by the service."""

    frequency: str = Field(..., examples=["weekly"])
    interval: int = Field(default=1, ge=1)
    by_weekday: list[str] | None = None
    count: int | None = Field(default=None, ge=1)
    until: datetime | None = None


# =============================================================================
# Tasks
# =============================================================================

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.ACADEMIC
    subject: str | None = None
    reminder_settings: ReminderSettings = Field(default_factory=ReminderSettings)
    # Either a raw RRULE or friendly settings; recurrence wins if both are set
    recurrence_rule: str | None = None
    recurrence: RecurrenceSettings | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    due_date: datetime | None = None
    priority: Priority | None = None
    type: TaskType | None = None
    subject: str | None = None
    completed: bool | None = None
    reminder_settings: ReminderSettings | None = None
    recurrence_rule: str | None = None


class Task(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None = None
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.ACADEMIC
    subject: str | None = None
    completed: bool = False
    reminder_settings: ReminderSettings | None = None
    recurrence_rule: str | None = None
    original_due_date: datetime | None = None
    is_recurring_instance: bool = False
    master_task_id: str | None = None
    next_due_date: datetime | None = None
    created_at: datetime | None = None


class TaskToggleResult(BaseModel):
    task: dict[str, Any]
    completed: bool
    coins_awarded: int = 0
    streak: dict[str, Any] | None = None
    achievements_unlocked: list[dict[str, Any]] = Field(default_factory=list)


class DashboardCounts(BaseModel):
    total: int = 0
    completed: int = 0
    pending: int = 0


# =============================================================================
# Reminders
# =============================================================================

class ReminderCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    due_date: datetime
    description: str | None = None
    # Defaults to one hour before due_date
    reminder_time: datetime | None = None
    priority: Priority = Priority.MEDIUM


class ReminderUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    due_date: datetime | None = None
    reminder_time: datetime | None = None
    priority: Priority | None = None
    completed: bool | None = None


class Reminder(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None = None
    due_date: datetime
    reminder_time: datetime | None = None
    priority: Priority = Priority.MEDIUM
    completed: bool = False
    notified_at: datetime | None = None
    created_at: datetime | None = None
