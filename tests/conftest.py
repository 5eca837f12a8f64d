# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides common fixtures for testing (rows shaped like Supabase returns)
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
os.environ.setdefault("ONESIGNAL_APP_ID", "test-onesignal-app")
os.environ.setdefault("ONESIGNAL_REST_API_KEY", "test-onesignal-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from datetime import date, timedelta

import pytest


# =============================================================================
# Helpers
# =============================================================================

def streak_records(today: date, completed_offsets: list[int], total_days: int | None = None) -> list[dict]:
    """
    Build daily_streaks rows ending today.

    Args:
        today: Reference date (offset 0)
        completed_offsets: Days back from today that are completed
        total_days: Emit a row for every day in this window (uncompleted
            days included); defaults to only the completed days
    """
    if total_days is None:
        offsets = sorted(set(completed_offsets))
    else:
        offsets = range(total_days)
    return [
        {
            "user_id": "user_123",
            "date": (today - timedelta(days=offset)).isoformat(),
            "completed": offset in completed_offsets,
        }
        for offset in offsets
    ]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def user_id():
    return "user_123"


@pytest.fixture
def today():
    """A fixed Wednesday so weekday assertions are stable."""
    return date(2025, 3, 12)


@pytest.fixture
def sample_tasks():
    """Tasks as the client sends them to /ai/suggestions."""
    return [
        {"id": "t1", "title": "Calculus homework", "subject": "Maths", "priority": "high",
         "difficulty": "hard", "estimated_time": 45, "completed": True},
        {"id": "t2", "title": "Read chapter 4", "subject": "History", "priority": "low",
         "estimated_time": 20, "completed": False},
        {"id": "t3", "title": "Lab report", "subject": "Chemistry", "completed": False},
        {"id": "t4", "title": "Flashcards", "subject": "Biology", "completed": True},
    ]


@pytest.fixture
def sample_shop_row():
    """A coin_spending_categories row for a theme."""
    return {
        "id": "ocean-breeze",
        "name": "Ocean Breeze",
        "description": "Calm blue theme",
        "base_cost": 100,
        "is_active": True,
        "unlock_requirements": {},
        "metadata": {"category": "theme", "type": "theme", "theme_id": "ocean", "rarity": "rare"},
    }


@pytest.fixture
def sample_task_row(user_id):
    return {
        "id": "task-1",
        "user_id": user_id,
        "title": "Essay draft",
        "description": None,
        "due_date": "2025-03-12T09:00:00+00:00",
        "priority": "medium",
        "type": "academic",
        "completed": False,
        "recurrence_rule": None,
    }
