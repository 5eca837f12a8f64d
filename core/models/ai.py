# =============================================================================
# core/models/ai.py - AI Suggestion Schemas
# =============================================================================
# Request/response contract for POST /ai/suggestions.
#
# Flow:
# 1. Client sends AISuggestionRequest {feature, tasks, context}
# 2. Service checks quota + tier, runs the feature processor
# 3. Client gets AISuggestionResponse with data + updated usage
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field


class TaskInput(BaseModel):
    """
    A task as the client sends it for analysis.

    Extra keys are kept so processors can read fields the client adds later.
    """

    id: str | None = None
    title: str | None = None
    subject: str | None = None
    priority: str | None = None
    difficulty: str | None = None
    estimated_time: int | None = Field(default=None, ge=0, description="Minutes")
    completed: bool = False
    due_date: str | None = None

    model_config = {"extra": "allow"}


class AISuggestionRequest(BaseModel):
    """POST /ai/suggestions body."""

    # Checked by the route so a missing feature is a 400, not a 422
    feature: str | None = Field(
        default=None,
        description="Feature to run, e.g. basic_suggestions",
        examples=["basic_suggestions"],
    )
    tasks: list[TaskInput] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


class Suggestion(BaseModel):
    """One suggestion card."""

    id: str
    type: str
    title: str
    description: str
    action: str | None = None
    priority: str = "medium"
    estimated_time: int | None = None
    # "easy" | "medium" | "hard" for basic, 1..5 for enhanced suggestions
    difficulty: str | int | None = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    enhanced: bool = False
    personalized_reason: str | None = None


class UsageSummary(BaseModel):
    """Quota state returned with every AI response."""

    requests_used: int
    requests_remaining: int | None = None
    feature_available: bool = True


class AISuggestionResponse(BaseModel):
    success: bool = True
    feature: str
    tier: str
    data: dict[str, Any]
    usage: UsageSummary
