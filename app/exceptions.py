# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error carries a machine-readable code and, where possible, a
# suggestion telling the client how to recover.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class StudySparkException(Exception):
    """
    Base exception for the StudySpark API.

    All domain exceptions inherit from this class and are rendered by
    `studyspark_exception_handler`.
    """

    def __init__(
        self,
        message: str,
        code: str = "STUDYSPARK_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


class ValidationFailedError(StudySparkException):
    """Raised when a request is well-formed JSON but violates a business rule."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_FAILED",
            status_code=400,
            details={"field": field} if field else None,
        )


# =============================================================================
# Subscription / AI Exceptions
# =============================================================================

class FeatureNotAvailableError(StudySparkException):
    """Raised when the user's tier is below the tier a feature requires."""

    def __init__(self, feature: str, required_tier: str, current_tier: str):
        super().__init__(
            message=f"{feature} requires {required_tier} tier or higher",
            code="FEATURE_NOT_AVAILABLE",
            status_code=403,
            suggestion=f"Upgrade to {required_tier} to unlock this feature",
            details={
                "feature": feature,
                "required_tier": required_tier,
                "current_tier": current_tier,
                "upgrade_required": True,
            }
        )


class UsageLimitExceededError(StudySparkException):
    """Raised when the daily or monthly AI request quota is used up."""

    def __init__(self, limit_type: str, limit: int, used: int, tier: str):
        upgrade_required = tier == "free"
        super().__init__(
            message=f"{limit_type.capitalize()} AI request limit reached",
            code="USAGE_LIMIT_EXCEEDED",
            status_code=403,
            suggestion=(
                "Upgrade to premium for more AI requests"
                if upgrade_required
                else "Your quota resets at the start of the next period"
            ),
            details={
                "limit_type": limit_type,
                "limit": limit,
                "used": used,
                "tier": tier,
                "upgrade_required": upgrade_required,
            }
        )


class UnsupportedFeatureError(StudySparkException):
    """Raised when an AI feature name has no processor."""

    def __init__(self, feature: str):
        super().__init__(
            message=f"Unsupported feature: {feature}",
            code="UNSUPPORTED_FEATURE",
            status_code=400,
            details={"feature": feature}
        )


class TierNotFoundError(StudySparkException):
    """Raised when a subscription tier ID doesn't exist."""

    def __init__(self, tier_id: str):
        super().__init__(
            message=f"Subscription tier not found: {tier_id}",
            code="TIER_NOT_FOUND",
            status_code=404,
            suggestion="Use GET /api/v1/subscriptions/tiers to list available tiers",
            details={"tier_id": tier_id}
        )


class SubscriptionNotFoundError(StudySparkException):
    """Raised when the user has no active subscription to act on."""

    def __init__(self, user_id: str):
        super().__init__(
            message="No active subscription found",
            code="SUBSCRIPTION_NOT_FOUND",
            status_code=404,
            details={"user_id": user_id}
        )


# =============================================================================
# Coin Economy Exceptions
# =============================================================================

class InsufficientCoinsError(StudySparkException):
    """Raised when a spend exceeds the user's coin balance."""

    def __init__(self, required: int, current: int):
        super().__init__(
            message=f"Insufficient coins. Current balance: {current}, Required: {required}",
            code="INSUFFICIENT_COINS",
            status_code=400,
            suggestion="Complete tasks or keep your streak going to earn more coins",
            details={"required": required, "current": current}
        )


class InvalidAmountError(StudySparkException):
    """Raised when an amount is zero or negative."""

    def __init__(self, amount: float, what: str = "amount"):
        super().__init__(
            message=f"Invalid {what}: {amount}",
            code="INVALID_AMOUNT",
            status_code=400,
            suggestion=f"The {what} must be greater than zero",
            details={"amount": amount}
        )


class ShopItemNotFoundError(StudySparkException):
    """Raised when a shop item ID doesn't exist or is inactive."""

    def __init__(self, item_id: str):
        super().__init__(
            message=f"Item not found: {item_id}",
            code="ITEM_NOT_FOUND",
            status_code=404,
            suggestion="Use GET /api/v1/gamification/shop-items to list available items",
            details={"item_id": item_id}
        )


class ItemAlreadyOwnedError(StudySparkException):
    """Raised when buying a theme the user already owns."""

    def __init__(self, theme_id: str):
        super().__init__(
            message="Theme already owned",
            code="ITEM_ALREADY_OWNED",
            status_code=400,
            details={"theme_id": theme_id}
        )


# =============================================================================
# Billing Exceptions
# =============================================================================

class PaymentInitializationError(StudySparkException):
    """Raised when the payment gateway rejects a checkout request."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to initialize payment: {error}",
            code="PAYMENT_INIT_FAILED",
            status_code=502,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error}
        )


class PaymentVerificationError(StudySparkException):
    """Raised when a payment reference did not settle successfully."""

    def __init__(self, reference: str, status: str | None):
        super().__init__(
            message=f"Payment not successful: {status or 'unknown'}",
            code="PAYMENT_VERIFICATION_FAILED",
            status_code=400,
            details={"reference": reference, "status": status}
        )


class PaymentTransactionNotFoundError(StudySparkException):
    """Raised when a payment reference doesn't belong to the user."""

    def __init__(self, reference: str):
        super().__init__(
            message=f"Payment transaction not found: {reference}",
            code="PAYMENT_NOT_FOUND",
            status_code=404,
            details={"reference": reference}
        )


class InvalidWebhookSignatureError(StudySparkException):
    """Raised when a webhook body doesn't match its signature header."""

    def __init__(self):
        super().__init__(
            message="Invalid webhook signature",
            code="INVALID_SIGNATURE",
            status_code=401,
        )


class NoPaymentAuthorizationError(StudySparkException):
    """Raised when a recurring charge has no reusable card authorization."""

    def __init__(self, user_id: str):
        super().__init__(
            message="No reusable payment authorization on file",
            code="NO_PAYMENT_AUTHORIZATION",
            status_code=404,
            suggestion="Complete a checkout first so a card authorization can be stored",
            details={"user_id": user_id}
        )


# =============================================================================
# Notification Exceptions
# =============================================================================

class PushSubscriptionNotFoundError(StudySparkException):
    """Raised when a user has no active push subscription."""

    def __init__(self, user_id: str):
        super().__init__(
            message="User has no active push subscription",
            code="PUSH_SUBSCRIPTION_NOT_FOUND",
            status_code=404,
            suggestion="Ask the user to enable notifications on their device",
            details={"user_id": user_id}
        )


class NotificationDeliveryError(StudySparkException):
    """Raised when the push provider rejects a notification."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to send notification: {error}",
            code="NOTIFICATION_DELIVERY_FAILED",
            status_code=502,
            details={"error": error}
        )


class ScheduledNotificationNotFoundError(StudySparkException):
    """Raised when there is no pending scheduled notification with this ID."""

    def __init__(self, notification_id: str):
        super().__init__(
            message=f"No scheduled notification found: {notification_id}",
            code="SCHEDULED_NOTIFICATION_NOT_FOUND",
            status_code=404,
            details={"notification_id": notification_id}
        )


# =============================================================================
# Reminder / Task Exceptions
# =============================================================================

class ReminderNotFoundError(StudySparkException):
    """Raised when a reminder ID doesn't exist for this user."""

    def __init__(self, reminder_id: str):
        super().__init__(
            message=f"Reminder not found: {reminder_id}",
            code="REMINDER_NOT_FOUND",
            status_code=404,
            details={"reminder_id": reminder_id}
        )


class TaskNotFoundError(StudySparkException):
    """Raised when a task ID doesn't exist for this user."""

    def __init__(self, task_id: str):
        super().__init__(
            message=f"Task not found: {task_id}",
            code="TASK_NOT_FOUND",
            status_code=404,
            details={"task_id": task_id}
        )


class InvalidRecurrenceRuleError(StudySparkException):
    """Raised when an RRULE string cannot be parsed."""

    def __init__(self, rule: str, error: str):
        super().__init__(
            message=f"Invalid recurrence rule: {error}",
            code="INVALID_RECURRENCE_RULE",
            status_code=400,
            suggestion="Use an RFC 5545 rule such as FREQ=WEEKLY;BYDAY=MO,WE",
            details={"rule": rule}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def studyspark_exception_handler(
    request: Request,
    exc: StudySparkException
) -> JSONResponse:
    """
    Convert StudySparkException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc),
        }
    )
