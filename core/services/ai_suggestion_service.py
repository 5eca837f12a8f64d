# =============================================================================
# core/services/ai_suggestion_service.py - Tier-Gated AI Suggestions
# =============================================================================
# Runs an AI feature for a user after checking their quota and tier:
#
#   1. Quota    - daily, then monthly (UsageLimitExceededError, 403)
#   2. Tier     - feature's minimum tier (FeatureNotAvailableError, 403)
#   3. Process  - feature processor builds the payload
#   4. Record   - usage +1, only after the processor succeeded
#
# Processors are rule-based. advanced_suggestions is additionally
# personalised by OpenAI when OPENAI_API_KEY is set.
# =============================================================================

import json
import logging
import re
from datetime import timedelta
from typing import Any, Callable

from openai import OpenAI

from app.config import settings
from app.exceptions import (
    FeatureNotAvailableError,
    UnsupportedFeatureError,
    UsageLimitExceededError,
)
from core.models.ai import AISuggestionResponse, Suggestion, TaskInput, UsageSummary
from core.models.subscription import SubscriptionTier
from core.services.subscription_service import SubscriptionService, check_feature_access
from lib.utils import utcnow

logger = logging.getLogger(__name__)

DIFFICULTY_SCALE = {"easy": 1, "medium": 3, "hard": 5}
PRIORITY_CONFIDENCE = {"high": 0.9, "medium": 0.8, "low": 0.75}
MAX_ADVANCED_SUGGESTIONS = 8

STUDY_HABIT_TIP = Suggestion(
    id="general",
    type="study_habit_tip",
    title="Study Productivity Tip",
    description="Take a 5-minute break every 25 minutes to maintain focus",
    action="take_break",
    priority="low",
    estimated_time=5,
    difficulty="easy",
    confidence=0.8,
)

PREMIUM_SUGGESTIONS = [
    Suggestion(
        id="premium_1",
        type="optimization",
        title="Schedule Optimization",
        description="Based on your patterns, tackle challenging tasks in the morning",
        enhanced=True,
        confidence=0.88,
    ),
    Suggestion(
        id="premium_2",
        type="productivity",
        title="Focus Enhancement",
        description="Use the Pomodoro technique with 45-minute intervals for optimal results",
        enhanced=True,
        confidence=0.82,
    ),
]


def _completion_rate(tasks: list[TaskInput]) -> float:
    """Fraction of tasks completed, 0.0 for an empty list."""
    if not tasks:
        return 0.0
    return sum(1 for t in tasks if t.completed) / len(tasks)


# =============================================================================
# Feature Processors
# =============================================================================
# Each processor takes (tasks, context) and returns the response `data` dict.

def generate_basic_suggestions(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    """One tip per task for the first three tasks, padded to three."""
    suggestions = []
    for index, task in enumerate(tasks[:3]):
        estimated = task.estimated_time or 30
        priority = task.priority or "medium"
        suggestions.append(
            Suggestion(
                id=f"suggestion_{index + 1}",
                type="task_suggestion",
                title=f"Study tip for {task.title or 'your task'}",
                description=f"Focus on this task for {estimated} minutes with a clear goal",
                action="start_task",
                priority=priority,
                estimated_time=estimated,
                difficulty=task.difficulty or "medium",
                confidence=PRIORITY_CONFIDENCE.get(priority, 0.8),
            )
        )

    while len(suggestions) < 3:
        suggestions.append(STUDY_HABIT_TIP.model_copy(update={"id": f"general_{len(suggestions) + 1}"}))

    return {
        "suggestions": [s.model_dump() for s in suggestions],
        "context": context,
        "tier": SubscriptionTier.FREE.value,
    }


def _enhance(suggestion: dict[str, Any]) -> dict[str, Any]:
    difficulty = suggestion.get("difficulty")
    base = DIFFICULTY_SCALE.get(difficulty, 3) if isinstance(difficulty, str) else (difficulty or 3)
    return {
        **suggestion,
        "enhanced": True,
        "confidence": min(0.95, suggestion.get("confidence", 0.8) + 0.05),
        "personalized_reason": "Enhanced suggestion based on your study patterns",
        "difficulty": min(base + 1, 5),
        "estimated_time": round((suggestion.get("estimated_time") or 30) * 1.2),
    }


def _personalize_with_openai(
    suggestions: list[dict[str, Any]],
    tasks: list[TaskInput],
    context: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Ask OpenAI for one personalised reason per task suggestion.

    Returns the suggestions unchanged if OpenAI isn't configured or the
    call fails; enrichment is best-effort on top of the rule-based output.
    """
    if not settings.openai_enabled or not tasks:
        return suggestions

    task_lines = [
        {"index": i, "title": t.title, "subject": t.subject, "priority": t.priority, "due_date": t.due_date}
        for i, t in enumerate(tasks[:3])
    ]
    messages = [
        {
            "role": "system",
            "content": (
                "You are Stu, a friendly study coach for students. For each task, write one short, "
                "specific reason (max 25 words) why the suggested focus session will help. "
                'Respond with JSON: {"reasons": [{"index": int, "reason": str}]}'
            ),
        },
        {
            "role": "user",
            "content": json.dumps({"tasks": task_lines, "context": context}, default=str),
        },
    ]

    try:
        client = OpenAI(api_key=settings.OPENAI_API_KEY)
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            temperature=settings.AI_TEMPERATURE,
            response_format={"type": "json_object"},
            messages=messages,
        )
        payload = json.loads(response.choices[0].message.content or "{}")
    except Exception as e:
        logger.warning(f"OpenAI personalisation failed, using rule-based reasons: {e}")
        return suggestions

    reasons = {
        item.get("index"): item.get("reason")
        for item in payload.get("reasons", [])
        if isinstance(item, dict) and item.get("reason")
    }
    personalised = []
    for index, suggestion in enumerate(suggestions):
        reason = reasons.get(index) if suggestion.get("type") == "task_suggestion" else None
        personalised.append({**suggestion, "personalized_reason": reason} if reason else suggestion)
    return personalised


def generate_advanced_suggestions(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    basic = generate_basic_suggestions(tasks, context)
    enhanced = [_enhance(s) for s in basic["suggestions"]]
    enhanced = _personalize_with_openai(enhanced, tasks, context)
    premium = [s.model_dump() for s in PREMIUM_SUGGESTIONS]

    return {
        "suggestions": (enhanced + premium)[:MAX_ADVANCED_SUGGESTIONS],
        "patterns": {
            "analysis_complete": True,
            "pattern_strength": 0.78,
            "recommendations": [
                "Focus on challenging tasks in the morning",
                "Take breaks every 45 minutes",
            ],
        },
        "predictions": {
            "optimal_study_time": "09:00-11:00",
            "difficulty_recommendation": "moderate",
            "success_probability": 0.82,
        },
        "context": context,
        "tier": SubscriptionTier.PREMIUM.value,
    }


def generate_study_plan(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    """Schedule the first five tasks two hours apart, starting now."""
    now = utcnow()
    schedule = []
    for index, task in enumerate(tasks[:5]):
        schedule.append({
            "id": task.id,
            "title": task.title,
            "start_time": (now + timedelta(hours=2 * index)).isoformat(),
            "duration": task.estimated_time or 60,
            "difficulty": task.difficulty or "medium",
            "subject": task.subject or "General",
            "reasoning": "Optimized timing based on your productivity patterns",
        })

    return {
        "schedule": schedule,
        "optimization_tips": [
            "Schedule challenging tasks during peak hours",
            "Take regular breaks to maintain focus",
            "Use active recall techniques",
            "Review completed material regularly",
        ],
        "estimated_completion_time": sum(item["duration"] for item in schedule),
        "tier": SubscriptionTier.PREMIUM.value,
    }


_URGENT_WORDS = re.compile(r"\b(urgent|asap|exam|test|deadline|important)\b", re.IGNORECASE)


def process_voice_input(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    """
    Turn a transcript into a task draft.

    Expects context["transcript"]; transcription itself happens client-side.
    """
    transcript = (context.get("transcript") or "").strip()
    if not transcript:
        return {"transcription": "", "extracted_tasks": [], "confidence": 0.0,
                "tier": SubscriptionTier.PREMIUM.value}

    title = re.sub(r"^(create|add|make)\s+(a\s+)?(task|reminder)\s+(to\s+)?", "", transcript, flags=re.IGNORECASE)
    title = title[:1].upper() + title[1:]

    lowered = transcript.lower()
    now = utcnow()
    if "today" in lowered or "tonight" in lowered:
        due = now.replace(hour=23, minute=59, second=0, microsecond=0)
    elif "tomorrow" in lowered:
        due = now + timedelta(days=1)
    elif "next week" in lowered:
        due = now + timedelta(weeks=1)
    else:
        due = None

    return {
        "transcription": transcript,
        "extracted_tasks": [{
            "title": title,
            "description": transcript,
            "priority": "high" if _URGENT_WORDS.search(transcript) else "medium",
            "due_date": due.isoformat() if due else None,
        }],
        "confidence": 0.9 if due else 0.75,
        "tier": SubscriptionTier.PREMIUM.value,
    }


def generate_stu_response(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    """Stu's mood follows the completion rate: >80% excited, >50% positive."""
    rate = _completion_rate(tasks) * 100

    if rate > 80:
        mood = "excited"
        response = "Wow! You're absolutely crushing it! Your productivity is off the charts!"
    elif rate > 50:
        mood = "positive"
        response = "You're doing great! I can see you're making solid progress!"
    else:
        mood = "encouraging"
        response = "Hey there! Every step counts, and you're building good habits!"

    return {
        "response": response,
        "mood": mood,
        "encouragement": "Remember, I believe in you! Every small step is progress.",
        "tips": [
            "Start with the easiest task to build momentum",
            "Set a timer for 25 minutes and focus on one thing",
            "Celebrate small wins along the way",
        ],
        "tier": SubscriptionTier.PREMIUM.value,
    }


def generate_ml_predictions(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    rate = _completion_rate(tasks)
    completed = sum(1 for t in tasks if t.completed)

    return {
        "predictions": {
            "performance_score": round(min(95.0, 60 + rate * 35), 1),
            "optimal_study_time": "09:00-11:00",
            "completion_likelihood": round(min(90.0, 50 + rate * 40), 1),
        },
        "patterns": {
            "study_consistency": "improving" if completed > 0 else "needs_focus",
            "difficulty_progression": "Gradual increase recommended",
        },
        "insights": [
            "Consider breaking large tasks into smaller chunks",
            "Morning study sessions would be most effective for you",
        ],
        "confidence": 0.82,
        "tier": SubscriptionTier.PREMIUM.value,
    }


def get_collaborative_insights(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    return {
        "insights": [
            {
                "type": "pattern",
                "message": "Users with similar study patterns tend to perform better with 25-minute focus sessions",
                "confidence": 0.85,
            },
            {
                "type": "recommendation",
                "message": "Students with similar schedules report better retention when studying maths in the morning",
                "confidence": 0.78,
            },
        ],
        "tier": SubscriptionTier.PREMIUM.value,
    }


def generate_analytics(tasks: list[TaskInput], context: dict[str, Any]) -> dict[str, Any]:
    rate = _completion_rate(tasks)
    return {
        "performance_metrics": {
            "completion_rate": round(rate * 100, 2),
            "productivity_score": round(min(100.0, 60 + rate * 40), 1),
        },
        "data_points": len(tasks),
        "report_generated": utcnow().isoformat(),
        "tier": SubscriptionTier.ENTERPRISE.value,
    }


PROCESSORS: dict[str, Callable[[list[TaskInput], dict[str, Any]], dict[str, Any]]] = {
    "basic_suggestions": generate_basic_suggestions,
    "advanced_suggestions": generate_advanced_suggestions,
    "study_planning": generate_study_plan,
    "voice_processing": process_voice_input,
    "stu_personality": generate_stu_response,
    "ml_predictions": generate_ml_predictions,
    "collaborative_filtering": get_collaborative_insights,
    "premium_analytics": generate_analytics,
}


# =============================================================================
# Service
# =============================================================================

class AISuggestionService:
    """Quota- and tier-checked entry point for AI features."""

    @staticmethod
    def process_request(
        user_id: str,
        feature: str,
        tasks: list[TaskInput],
        context: dict[str, Any] | None = None,
    ) -> AISuggestionResponse:
        """
        Run an AI feature for a user.

        Raises:
            UsageLimitExceededError: Daily or monthly quota is used up
            FeatureNotAvailableError: Tier is below the feature's tier
            UnsupportedFeatureError: No processor for this feature
        """
        context = context or {}
        tier = SubscriptionService.get_user_tier(user_id)
        limits = SubscriptionService.get_limits(user_id, tier=tier)

        # Quota first, matching what the client shows in its usage meter
        if limits.daily_remaining is not None and limits.daily_remaining <= 0:
            raise UsageLimitExceededError("daily", limits.daily_limit, limits.daily_used, tier.value)
        if limits.monthly_remaining is not None and limits.monthly_remaining <= 0:
            raise UsageLimitExceededError("monthly", limits.monthly_limit, limits.monthly_used, tier.value)

        allowed, required = check_feature_access(tier, feature)
        if not allowed:
            raise FeatureNotAvailableError(feature, required.value, tier.value)

        processor = PROCESSORS.get(feature)
        if processor is None:
            raise UnsupportedFeatureError(feature)

        data = processor(tasks, context)

        SubscriptionService.record_usage(user_id, feature)
        used = limits.daily_used + 1
        remaining = None if limits.daily_remaining is None else max(0, limits.daily_limit - used)
        logger.info(f"AI feature {feature} served for {user_id} ({tier.value}, {used} today)")

        return AISuggestionResponse(
            feature=feature,
            tier=tier.value,
            data=data,
            usage=UsageSummary(
                requests_used=used,
                requests_remaining=remaining,
                feature_available=True,
            ),
        )
