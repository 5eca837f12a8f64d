# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .subscription_service import SubscriptionService
from .ai_suggestion_service import AISuggestionService
from .coin_service import CoinService
from .shop_service import ShopService
from .streak_service import StreakService
from .achievement_service import AchievementService
from .billing_service import BillingService
from .notification_service import NotificationService
from .reminder_service import ReminderService
from .task_service import TaskService

__all__ = [
    "SubscriptionService",
    "AISuggestionService",
    "CoinService",
    "ShopService",
    "StreakService",
    "AchievementService",
    "BillingService",
    "NotificationService",
    "ReminderService",
    "TaskService",
]
