# =============================================================================
# app/routers/reminders.py - Reminder CRUD Endpoints
# =============================================================================

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from app.auth import get_current_user, AuthUser
from core.models.task import Priority, ReminderCreate, ReminderUpdate
from core.services.reminder_service import ReminderService

router = APIRouter()


@router.post("", status_code=201)
async def create_reminder(
    request: ReminderCreate,
    user: AuthUser = Depends(get_current_user),
):
    """Create a reminder. reminder_time defaults to an hour before due_date."""
    return ReminderService.create_reminder(user.id, request)


@router.get("")
async def list_reminders(
    user: AuthUser = Depends(get_current_user),
    completed: Annotated[bool | None, Query()] = None,
    priority: Annotated[Priority | None, Query()] = None,
    due_before: Annotated[datetime | None, Query()] = None,
    due_after: Annotated[datetime | None, Query()] = None,
):
    reminders = ReminderService.list_reminders(
        user.id,
        completed=completed,
        priority=priority,
        due_before=due_before,
        due_after=due_after,
    )
    return {"reminders": reminders, "count": len(reminders)}


@router.get("/{reminder_id}")
async def get_reminder(
    reminder_id: Annotated[str, Path(description="Reminder ID")],
    user: AuthUser = Depends(get_current_user),
):
    return ReminderService.get_reminder(user.id, reminder_id)


@router.patch("/{reminder_id}")
async def update_reminder(
    reminder_id: Annotated[str, Path(description="Reminder ID")],
    request: ReminderUpdate,
    user: AuthUser = Depends(get_current_user),
):
    return ReminderService.update_reminder(user.id, reminder_id, request)


@router.delete("/{reminder_id}")
async def delete_reminder(
    reminder_id: Annotated[str, Path(description="Reminder ID")],
    user: AuthUser = Depends(get_current_user),
):
    ReminderService.delete_reminder(user.id, reminder_id)
    return {"success": True, "message": "Reminder deleted"}
