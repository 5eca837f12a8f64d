# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - ApplicationError: base class for platform client errors
# - Date helpers: UTC "now", date parsing, billing period arithmetic
# =============================================================================

from datetime import date, datetime, timezone
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for platform client errors (Paystack, OneSignal).

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class PaystackError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="PAYSTACK_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


# =============================================================================
# Date Utilities
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return utcnow().date()


def to_date(value: str | date | datetime) -> date:
    """
    Coerce a database value to a date.

    Supabase returns DATE columns as "YYYY-MM-DD" and TIMESTAMPTZ columns as
    ISO strings; both are accepted.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(value).date()


def to_datetime(value: str | datetime) -> datetime:
    """
    Coerce a database value to an aware datetime (naive values are read as UTC).
    """
    parsed = value if isinstance(value, datetime) else date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_billing_period(start: datetime, billing_period: str) -> datetime:
    """
    Advance a datetime by one billing period.

    Uses calendar arithmetic so Jan 31 + 1 month lands on the last day of
    February rather than overflowing into March.

    Example:
        add_billing_period(datetime(2025, 1, 31), "monthly")  # 2025-02-28
        add_billing_period(datetime(2025, 1, 31), "yearly")   # 2026-01-31
    """
    if billing_period == "yearly":
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)
