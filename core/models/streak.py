# =============================================================================
# core/models/streak.py - Streak & Achievement Schemas
# =============================================================================
# A streak is built from daily_streaks rows, one per (user, date). A day
# counts toward the streak when `completed` is true.
# =============================================================================

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StreakTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class DailyStreakRecord(BaseModel):
    """Row from daily_streaks."""

    user_id: str | None = None
    date: dt.date
    completed: bool = False
    tasks_completed: int = 0
    points_earned: int = 0
    activity_count: int = 0


class StreakAnalytics(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    total_days: int = 0
    completed_days: int = 0
    completion_rate: float = 0.0
    average_streak_length: float = 0.0
    best_day: str = "monday"
    worst_day: str = "monday"
    streak_trend: StreakTrend = StreakTrend.STABLE


class Milestone(BaseModel):
    target: int
    days_to_milestone: int


class StreakUpdate(BaseModel):
    """Outcome of marking a day complete."""

    date: dt.date
    current_streak: int
    longest_streak: int
    streak_increased: bool = False
    milestone_reached: int | None = None
    coins_awarded: int = 0


class RecoveryOption(BaseModel):
    id: str
    name: str
    description: str
    cost: int
    affordable: bool = False


class StreakSummary(BaseModel):
    analytics: StreakAnalytics
    next_milestone: Milestone
    recovery_options: list[RecoveryOption] = Field(default_factory=list)


class MarkCompletionRequest(BaseModel):
    tasks_completed: int = Field(default=1, ge=0)
    points_earned: int = Field(default=10, ge=0)
    date: dt.date | None = None


class RecoverStreakRequest(BaseModel):
    option: str = Field(..., examples=["freeze"])


# =============================================================================
# Achievements
# =============================================================================

class AchievementType(str, Enum):
    TASK_COMPLETION = "task_completion"
    STREAK = "streak"
    POINTS_EARNED = "points_earned"
    SOCIAL = "social"
    WELLNESS = "wellness"
    TUTORIAL = "tutorial"


class Achievement(BaseModel):
    """
    Row from achievements.

    criteria depends on type:
    - task_completion: {"tasks": 10}
    - streak:          {"days": 7}
    - points_earned:   {"points": 1000}
    - social/wellness: {"action": "share_progress"}
    - tutorial:        {"step": "first_task"}
    """

    id: str
    name: str
    description: str | None = None
    type: AchievementType
    criteria: dict[str, Any] = Field(default_factory=dict)
    points_reward: int = 0
    coin_reward: int | None = None
    icon: str | None = None


class AchievementProgress(Achievement):
    unlocked: bool = False
    unlocked_at: dt.datetime | None = None
    user_progress: int = 0


class AchievementTrigger(BaseModel):
    """POST /achievements/check body: what the user just did."""

    action: str = Field(..., min_length=1, examples=["task_completion"])
    value: int | None = None
    step: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UserStats(BaseModel):
    user_id: str
    total_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    level: int = 1
    tasks_completed: int = 0
