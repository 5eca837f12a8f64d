# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# scheduled jobs (reminders, streak breaks, renewals) and background
# notification delivery.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions
# - config.py: Worker-specific settings and beat schedule
#
# Usage:
#   # Start worker and scheduler
#   celery -A workers.celery_app worker -Q default,notifications --loglevel=info
#   celery -A workers.celery_app beat --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import send_notification
#   send_notification.delay(user_id, "Hello", "You have a new badge")
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
