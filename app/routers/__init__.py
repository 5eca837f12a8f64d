# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - ai.py: AI suggestions and usage
# - subscriptions.py: Tiers and the caller's subscription
# - billing.py: Paystack checkout, webhook, refunds
# - gamification.py: Coins, shop, streaks, achievements
# - notifications.py: Push subscriptions and delivery
# - reminders.py: Reminder CRUD
# - tasks.py: Task CRUD and completion
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import ai
from . import subscriptions
from . import billing
from . import gamification
from . import notifications
from . import reminders
from . import tasks

__all__ = [
    "health",
    "ai",
    "subscriptions",
    "billing",
    "gamification",
    "notifications",
    "reminders",
    "tasks",
]
