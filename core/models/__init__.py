# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - subscription.py: Tiers, quotas, subscription rows
# - ai.py: AI suggestion request/response
# - coins.py: Coin ledger and reward shop
# - streak.py: Daily streaks, analytics, achievements
# - billing.py: Payments and refunds
# - notification.py: Push subscriptions, sends, streak reminders
# - task.py: Tasks (with recurrence) and reminders
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Subscription Models - Tiers and AI quotas
# -----------------------------------------------------------------------------
from .subscription import (
    TIER_HIERARCHY,
    UNLIMITED,
    BillingPeriod,
    SubscriptionCheckResult,
    SubscriptionOverview,
    SubscriptionStatus,
    SubscriptionTier,
    TierConfig,
    UsageLimits,
    UserSubscription,
)

# -----------------------------------------------------------------------------
# AI Models - Tier-gated suggestions
# -----------------------------------------------------------------------------
from .ai import (
    AISuggestionRequest,
    AISuggestionResponse,
    Suggestion,
    TaskInput,
    UsageSummary,
)

# -----------------------------------------------------------------------------
# Coin Models - Ledger and shop
# -----------------------------------------------------------------------------
from .coins import (
    CoinAnalytics,
    CoinBalance,
    CoinTransaction,
    CoinTransactionResult,
    EarnCoinsRequest,
    EarningSummary,
    PurchaseRequest,
    PurchaseResult,
    ShopItem,
    ShopItemCreate,
    TransactionType,
)

# -----------------------------------------------------------------------------
# Streak Models - Streaks and achievements
# -----------------------------------------------------------------------------
from .streak import (
    Achievement,
    AchievementProgress,
    AchievementTrigger,
    AchievementType,
    DailyStreakRecord,
    MarkCompletionRequest,
    Milestone,
    RecoverStreakRequest,
    RecoveryOption,
    StreakAnalytics,
    StreakSummary,
    StreakTrend,
    StreakUpdate,
    UserStats,
)

# -----------------------------------------------------------------------------
# Billing Models - Paystack checkout
# -----------------------------------------------------------------------------
from .billing import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    PaymentStatus,
    PaymentTransaction,
    RefundRequest,
    VerifyPaymentResponse,
    WebhookAck,
)

# -----------------------------------------------------------------------------
# Notification Models - OneSignal push
# -----------------------------------------------------------------------------
from .notification import (
    NotificationEvent,
    NotificationResult,
    NotificationStatus,
    PushSubscriptionRequest,
    SendNotificationRequest,
    StreakReminderAction,
    StreakReminderPreference,
    StreakReminderRequest,
    TrackEventRequest,
)

# -----------------------------------------------------------------------------
# Task Models - Tasks and reminders
# -----------------------------------------------------------------------------
from .task import (
    DashboardCounts,
    Priority,
    RecurrenceSettings,
    Reminder,
    ReminderCreate,
    ReminderSettings,
    ReminderUpdate,
    Task,
    TaskCreate,
    TaskToggleResult,
    TaskType,
    TaskUpdate,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Subscription
    "TIER_HIERARCHY",
    "UNLIMITED",
    "BillingPeriod",
    "SubscriptionCheckResult",
    "SubscriptionOverview",
    "SubscriptionStatus",
    "SubscriptionTier",
    "TierConfig",
    "UsageLimits",
    "UserSubscription",
    # AI
    "AISuggestionRequest",
    "AISuggestionResponse",
    "Suggestion",
    "TaskInput",
    "UsageSummary",
    # Coins
    "CoinAnalytics",
    "CoinBalance",
    "CoinTransaction",
    "CoinTransactionResult",
    "EarnCoinsRequest",
    "EarningSummary",
    "PurchaseRequest",
    "PurchaseResult",
    "ShopItem",
    "ShopItemCreate",
    "TransactionType",
    # Streaks / Achievements
    "Achievement",
    "AchievementProgress",
    "AchievementTrigger",
    "AchievementType",
    "DailyStreakRecord",
    "MarkCompletionRequest",
    "Milestone",
    "RecoverStreakRequest",
    "RecoveryOption",
    "StreakAnalytics",
    "StreakSummary",
    "StreakTrend",
    "StreakUpdate",
    "UserStats",
    # Billing
    "InitializePaymentRequest",
    "InitializePaymentResponse",
    "PaymentStatus",
    "PaymentTransaction",
    "RefundRequest",
    "VerifyPaymentResponse",
    "WebhookAck",
    # Notifications
    "NotificationEvent",
    "NotificationResult",
    "NotificationStatus",
    "PushSubscriptionRequest",
    "SendNotificationRequest",
    "StreakReminderAction",
    "StreakReminderPreference",
    "StreakReminderRequest",
    "TrackEventRequest",
    # Tasks / Reminders
    "DashboardCounts",
    "Priority",
    "RecurrenceSettings",
    "Reminder",
    "ReminderCreate",
    "ReminderSettings",
    "ReminderUpdate",
    "Task",
    "TaskCreate",
    "TaskToggleResult",
    "TaskType",
    "TaskUpdate",
]
