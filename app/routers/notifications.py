# =============================================================================
# app/routers/notifications.py - Push Notification Endpoints
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from app.auth import get_current_user, AuthUser
from core.models.notification import (
    NotificationResult,
    PushSubscriptionRequest,
    SendNotificationRequest,
    StreakReminderRequest,
    TrackEventRequest,
)
from core.services.notification_service import NotificationService

router = APIRouter()


@router.post("/subscribe")
async def subscribe(
    request: PushSubscriptionRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Register a OneSignal player ID for the caller's device."""
    subscription = NotificationService.register_subscription(user.id, request.player_id, request.device_type)
    return {"success": True, "subscription": subscription}


@router.delete("/subscribe")
async def unsubscribe(
    user: AuthUser = Depends(get_current_user),
    player_id: Annotated[str | None, Query(description="Omit to remove all devices")] = None,
):
    removed = NotificationService.remove_subscription(user.id, player_id)
    return {"success": True, "removed": removed}


@router.post("/send", response_model=NotificationResult)
async def send_notification(
    request: SendNotificationRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Send (or schedule, with send_after) a notification to the caller's devices."""
    return NotificationService.send_to_user(
        user.id,
        request.title,
        request.message,
        data=request.data,
        url=request.url,
        category=request.category,
        send_after=request.send_after,
    )


@router.post("/schedule-daily-streaks")
async def schedule_daily_streaks(
    request: StreakReminderRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Enable, update or disable the daily streak reminder."""
    preference, message = NotificationService.schedule_daily_streak_reminders(
        user.id,
        request.action,
        reminder_time=request.reminder_time,
    )
    return {"success": True, "message": message, "preference": preference}


@router.post("/track")
async def track_event(
    request: TrackEventRequest,
    user: AuthUser = Depends(get_current_user),
):
    NotificationService.track_event(user.id, request.notification_id, request.event)
    return {"success": True}


@router.get("/history")
async def get_history(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
):
    return {"notifications": NotificationService.list_history(user.id, limit=limit)}


@router.post("/study-break", response_model=NotificationResult)
async def send_study_break(
    user: AuthUser = Depends(get_current_user),
    minutes: Annotated[int, Query(ge=1, le=600, description="Minutes studied so far")] = 25,
):
    """Push a break reminder to the caller's devices."""
    return NotificationService.send_study_break_reminder(user.id, minutes)


@router.delete("/scheduled/{notification_id}")
async def cancel_scheduled(
    notification_id: Annotated[str, Path(description="OneSignal notification ID")],
    user: AuthUser = Depends(get_current_user),
):
    """Cancel a notification that was scheduled with send_after."""
    notification = NotificationService.cancel_scheduled(user.id, notification_id)
    return {"success": True, "notification": notification}
