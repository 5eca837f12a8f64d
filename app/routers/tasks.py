# =============================================================================
# app/routers/tasks.py - Task Endpoints
# =============================================================================
# Task CRUD, completion toggling (which drives coins, streaks and
# achievements), and dashboard counts.
# =============================================================================

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from app.auth import get_current_user, AuthUser
from core.models.task import (
    DashboardCounts,
    Priority,
    TaskCreate,
    TaskToggleResult,
    TaskType,
    TaskUpdate,
)
from core.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_task(
    request: TaskCreate,
    user: AuthUser = Depends(get_current_user),
):
    """
    Create a task.

    Recurring tasks take either a raw `recurrence_rule` (RRULE) or friendly
    `recurrence` settings; an invalid rule is a 400.
    """
    return TaskService.create_task(user.id, request)


@router.get("")
async def list_tasks(
    user: AuthUser = Depends(get_current_user),
    completed: Annotated[bool | None, Query()] = None,
    priority: Annotated[Priority | None, Query()] = None,
    task_type: Annotated[TaskType | None, Query(alias="type")] = None,
    due_before: Annotated[datetime | None, Query()] = None,
    due_after: Annotated[datetime | None, Query()] = None,
    expand: Annotated[bool, Query(description="Expand recurring tasks into instances")] = False,
    start: Annotated[datetime | None, Query(description="Expansion range start")] = None,
    end: Annotated[datetime | None, Query(description="Expansion range end")] = None,
):
    tasks = TaskService.list_tasks(
        user.id,
        completed=completed,
        priority=priority,
        task_type=task_type,
        due_before=due_before,
        due_after=due_after,
        expand=expand,
        range_start=start,
        range_end=end,
    )
    return {"tasks": tasks, "count": len(tasks)}


@router.get("/stats", response_model=DashboardCounts)
async def get_task_stats(user: AuthUser = Depends(get_current_user)):
    """Total, completed and pending counts for the dashboard."""
    return TaskService.dashboard_counts(user.id)


@router.get("/{task_id}")
async def get_task(
    task_id: Annotated[str, Path(description="Task ID")],
    user: AuthUser = Depends(get_current_user),
):
    return TaskService.get_task(user.id, task_id)


@router.patch("/{task_id}")
async def update_task(
    task_id: Annotated[str, Path(description="Task ID")],
    request: TaskUpdate,
    user: AuthUser = Depends(get_current_user),
):
    return TaskService.update_task(user.id, task_id, request)


@router.delete("/{task_id}")
async def delete_task(
    task_id: Annotated[str, Path(description="Task ID")],
    user: AuthUser = Depends(get_current_user),
):
    TaskService.delete_task(user.id, task_id)
    return {"success": True, "message": "Task deleted"}


@router.post("/{task_id}/toggle", response_model=TaskToggleResult)
async def toggle_task(
    task_id: Annotated[str, Path(description="Task ID")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Mark a task complete or incomplete.

    Completing a task earns coins, counts today toward the streak, and may
    unlock achievements; the outcome is returned alongside the task.
    """
    return TaskService.toggle_completion(user.id, task_id)
