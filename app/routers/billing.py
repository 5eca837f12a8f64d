# =============================================================================
# app/routers/billing.py - Billing Endpoints
# =============================================================================
# Paystack checkout, verification, webhooks and refunds.
#
# The webhook is unauthenticated: Paystack proves itself with an HMAC of the
# raw body in the x-paystack-signature header, so the body must be read as
# bytes before any parsing.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Path, Query, Request

from app.auth import get_current_user, AuthUser
from core.models.billing import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    RefundRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from core.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    request: InitializePaymentRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Start a checkout and return the Paystack authorization URL."""
    return BillingService.initialize_payment(
        user_id=user.id,
        tier_id=request.tier_id,
        billing_period=request.billing_period,
        email=request.email,
    )


@router.get("/verify/{reference}", response_model=VerifyPaymentResponse)
async def verify_payment(
    reference: Annotated[str, Path(description="Paystack transaction reference")],
    user: AuthUser = Depends(get_current_user),
):
    """Confirm a checkout after Paystack redirects back, activating the tier."""
    return BillingService.verify_payment(reference)


@router.post("/webhook", response_model=WebhookAck)
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Annotated[str | None, Header()] = None,
):
    """Receive Paystack events. Rejects bodies whose signature doesn't match."""
    raw_body = await request.body()
    return BillingService.handle_webhook(raw_body, x_paystack_signature)


@router.post("/refund")
async def request_refund(
    request: RefundRequest,
    user: AuthUser = Depends(get_current_user),
):
    transaction = BillingService.request_refund(
        user_id=user.id,
        reference=request.reference,
        amount=request.amount,
        reason=request.reason,
    )
    return {"success": True, "transaction": transaction}


@router.get("/transactions")
async def list_transactions(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    """The caller's payments, newest first."""
    return {"transactions": BillingService.list_transactions(user.id, limit=limit)}
