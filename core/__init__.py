# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the business logic:
# - models/: Pydantic schemas for requests, responses, and domain records
# - services/: Subscription limits, AI suggestions, coin economy, streaks,
#   achievements, billing, notifications, reminders, and tasks
#
# Code in this package should NOT import from FastAPI routers or Celery.
# Services raise app.exceptions errors, which the API layer renders.
# =============================================================================
