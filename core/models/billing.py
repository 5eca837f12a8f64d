# =============================================================================
# core/models/billing.py - Billing Schemas
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from .subscription import BillingPeriod, SubscriptionTier


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class InitializePaymentRequest(BaseModel):
    """POST /billing/initialize body."""

    tier_id: SubscriptionTier
    billing_period: BillingPeriod
    email: EmailStr


class InitializePaymentResponse(BaseModel):
    authorization_url: str
    access_code: str | None = None
    reference: str


class PaymentTransaction(BaseModel):
    """Row from payment_transactions."""

    id: str | None = None
    user_id: str
    reference: str
    amount: float
    currency: str = "GHS"
    tier_id: SubscriptionTier | None = None
    billing_period: BillingPeriod | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    payment_provider: str = "paystack"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    reference: str
    tier_id: SubscriptionTier
    billing_period: BillingPeriod
    current_period_end: datetime


class RefundRequest(BaseModel):
    reference: str = Field(..., min_length=1)
    # Omit for a full refund
    amount: float | None = Field(default=None, gt=0)
    reason: str | None = None


class WebhookAck(BaseModel):
    received: bool = True
    event: str | None = None
