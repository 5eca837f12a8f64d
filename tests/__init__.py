# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the StudySpark API:
# - test_models.py: Pydantic model validation
# - test_subscription_service.py / test_ai_suggestions.py: tiers and AI quotas
# - test_coins.py / test_streaks.py / test_achievements.py: gamification
# - test_billing.py / test_notifications.py: Paystack and OneSignal
# - test_tasks.py / test_recurrence.py: tasks, reminders and RRULEs
# - test_routes.py: HTTP layer through TestClient
# - test_workers.py: Celery sweeps
#
# Run tests with: pytest
# =============================================================================
