# =============================================================================
# core/models/notification.py - Push Notification Schemas
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class NotificationStatus(str, Enum):
    SENT = "sent"
    SCHEDULED = "scheduled"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationEvent(str, Enum):
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"
    DISMISSED = "dismissed"


class StreakReminderAction(str, Enum):
    ENABLE = "enable"
    SCHEDULE = "schedule"
    DISABLE = "disable"
    CANCEL = "cancel"
    UPDATE = "update"


class PushSubscriptionRequest(BaseModel):
    player_id: str = Field(..., min_length=1, description="OneSignal player ID")
    device_type: str = Field(default="web")


class SendNotificationRequest(BaseModel):
    title: str | None = None
    message: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    url: str | None = None
    category: str = "general"
    send_after: datetime | None = None


class NotificationResult(BaseModel):
    success: bool = True
    notification_id: str | None = None
    recipients: int = 0
    status: NotificationStatus = NotificationStatus.SENT


class TrackEventRequest(BaseModel):
    notification_id: str = Field(..., min_length=1)
    event: NotificationEvent


class StreakReminderRequest(BaseModel):
    """
    POST /notifications/schedule-daily-streaks body.

    action is validated by the service so unknown actions get a 400 with a
    helpful message rather than a 422.
    """

    action: str = Field(..., examples=["enable"])
    reminder_time: str = Field(default="20:00", description="Local time, HH:MM")

    @field_validator("reminder_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parts = v.split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError("reminder_time must be HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError("reminder_time must be a valid 24-hour time")
        return f"{hour:02d}:{minute:02d}"


class StreakReminderPreference(BaseModel):
    user_id: str
    enabled: bool
    reminder_time: str = "20:00"
    next_reminder_at: datetime | None = None
