# =============================================================================
# core/services/billing_service.py - Payments & Subscription Billing
# =============================================================================
# Checkout flow:
#   1. initialize_payment -> Paystack checkout URL, pending transaction row
#   2. user pays on Paystack's page
#   3. verify_payment (callback) or the charge.success webhook marks the
#      transaction completed, stores the card authorization, and activates
#      the subscription
#
# Renewals charge the stored authorization (charge_recurring), normally
# from the Celery beat job in workers/tasks.py.
# =============================================================================

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from lib.paystack_client import PaystackClient, PaystackError
from lib.supabase_client import SupabaseClient
from lib.utils import to_datetime, utcnow
from app.config import settings
from core.models.billing import (
    InitializePaymentResponse,
    PaymentStatus,
    VerifyPaymentResponse,
    WebhookAck,
)
from core.models.subscription import BillingPeriod, SubscriptionStatus, SubscriptionTier
from core.services.subscription_service import SubscriptionService
from app.exceptions import (
    InvalidAmountError,
    InvalidWebhookSignatureError,
    NoPaymentAuthorizationError,
    PaymentInitializationError,
    PaymentTransactionNotFoundError,
    PaymentVerificationError,
    SubscriptionNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

PAID_TIERS = [SubscriptionTier.PREMIUM.value, SubscriptionTier.ENTERPRISE.value]


def _parse_period(billing_period: BillingPeriod | str) -> BillingPeriod:
    try:
        return BillingPeriod(billing_period)
    except ValueError:
        raise ValidationFailedError(
            f"Invalid billing period '{billing_period}'. Use monthly or yearly",
            field="billing_period",
        )


class BillingService:
    """Paystack checkout, webhooks, renewals and refunds."""

    # -------------------------------------------------------------------------
    # Transaction rows
    # -------------------------------------------------------------------------

    @staticmethod
    def _set_transaction_status(
        reference: str,
        status: PaymentStatus,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        values = {"status": status.value, "updated_at": utcnow().isoformat(), **(extra or {})}
        rows = SupabaseClient.update("payment_transactions", values, {"reference": reference})
        return rows[0] if rows else None

    @staticmethod
    def _store_authorization(user_id: str, email: str | None, authorization: dict[str, Any] | None) -> None:
        """Keep reusable card authorizations for renewals."""
        if not authorization or not authorization.get("reusable"):
            return

        SupabaseClient.upsert(
            "payment_authorizations",
            {
                "user_id": user_id,
                "authorization_code": authorization["authorization_code"],
                "email": email,
                "reusable": True,
                "card_type": authorization.get("card_type"),
                "last4": authorization.get("last4"),
                "exp_month": authorization.get("exp_month"),
                "exp_year": authorization.get("exp_year"),
                "bank": authorization.get("bank"),
                "updated_at": utcnow().isoformat(),
            },
            on_conflict="authorization_code",
        )
        logger.info(f"Stored reusable authorization for {user_id}")

    @staticmethod
    def _record_transaction(
        user_id: str,
        reference: str,
        amount: float,
        tier_id: str,
        billing_period: str,
        status: PaymentStatus,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return SupabaseClient.insert(
            "payment_transactions",
            {
                "user_id": user_id,
                "reference": reference,
                "amount": amount,
                "currency": settings.BILLING_CURRENCY,
                "tier_id": tier_id,
                "billing_period": billing_period,
                "status": status.value,
                "payment_provider": "paystack",
                "metadata": metadata or {},
                "created_at": utcnow().isoformat(),
            },
        )

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    @staticmethod
    def initialize_payment(
        user_id: str,
        tier_id: SubscriptionTier | str,
        billing_period: BillingPeriod | str,
        email: str,
    ) -> InitializePaymentResponse:
        """
        Start a Paystack checkout for a tier.

        Raises:
            ValidationFailedError: Unknown billing period
            TierNotFoundError: Unknown tier
            InvalidAmountError: The tier is free for this period
            PaymentInitializationError: Paystack rejected the checkout
        """
        period = _parse_period(billing_period)
        tier = SubscriptionService.get_tier_config(tier_id)
        amount = tier.price_for(period)
        if amount <= 0:
            raise InvalidAmountError(amount, what="price")

        reference = PaystackClient.generate_reference()
        metadata = {
            "user_id": user_id,
            "tier_id": tier.id.value,
            "billing_period": period.value,
        }

        try:
            data = PaystackClient.initialize_transaction(
                email=email,
                amount=amount,
                reference=reference,
                metadata=metadata,
                callback_url=settings.PAYSTACK_CALLBACK_URL,
            )
        except PaystackError as e:
            logger.error(f"Payment initialization failed for {user_id}: {e.message}")
            raise PaymentInitializationError(e.message)

        BillingService._record_transaction(
            user_id,
            reference,
            amount,
            tier.id.value,
            period.value,
            PaymentStatus.PENDING,
            metadata={**metadata, "email": email},
        )

        logger.info(f"Checkout {reference} started: {user_id} -> {tier.id.value} ({period.value}, {amount})")
        return InitializePaymentResponse(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code"),
            reference=data.get("reference") or reference,
        )

    @staticmethod
    def verify_payment(reference: str) -> VerifyPaymentResponse:
        """
        Confirm a checkout and activate the subscription it paid for.

        Raises:
            PaymentVerificationError: Paystack reports anything but success
            PaymentTransactionNotFoundError: No user/tier can be tied to it
        """
        try:
            data = PaystackClient.verify_transaction(reference)
        except PaystackError as e:
            raise PaymentVerificationError(reference, e.message)

        status = data.get("status")
        if status != "success":
            BillingService._set_transaction_status(reference, PaymentStatus.FAILED)
            raise PaymentVerificationError(reference, status)

        transaction = SupabaseClient.select_one("payment_transactions", {"reference": reference}) or {}
        metadata = {**(transaction.get("metadata") or {}), **(data.get("metadata") or {})}
        user_id = metadata.get("user_id") or transaction.get("user_id")
        tier_id = metadata.get("tier_id") or transaction.get("tier_id")
        period = metadata.get("billing_period") or transaction.get("billing_period") or BillingPeriod.MONTHLY.value
        if not user_id or not tier_id:
            raise PaymentTransactionNotFoundError(reference)

        BillingService._set_transaction_status(
            reference,
            PaymentStatus.COMPLETED,
            {"paid_at": data.get("paid_at") or utcnow().isoformat()},
        )
        email = (data.get("customer") or {}).get("email") or metadata.get("email")
        BillingService._store_authorization(user_id, email, data.get("authorization"))

        subscription = SubscriptionService.update_user_subscription(
            user_id,
            tier_id,
            period,
            metadata={"last_payment_reference": reference},
        )

        logger.info(f"Payment {reference} verified: {user_id} is now {tier_id}")
        return VerifyPaymentResponse(
            success=True,
            reference=reference,
            tier_id=tier_id,
            billing_period=period,
            current_period_end=subscription["current_period_end"],
        )

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @staticmethod
    def handle_webhook(raw_body: bytes, signature: str | None) -> WebhookAck:
        """
        Process a Paystack webhook.

        The signature is checked against the raw body before anything in it
        is trusted.

        Raises:
            InvalidWebhookSignatureError: Signature missing or wrong (401)
        """
        if not PaystackClient.verify_webhook_signature(raw_body, signature):
            logger.warning("Rejected Paystack webhook with invalid signature")
            raise InvalidWebhookSignatureError()

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationFailedError("Webhook body is not valid JSON")

        event = payload.get("event")
        data = payload.get("data") or {}

        if event == "charge.success":
            reference = data.get("reference")
            if not reference:
                logger.warning("Webhook: charge.success without a reference, ignored")
                return WebhookAck(received=True, event=event)
            BillingService._set_transaction_status(
                reference,
                PaymentStatus.COMPLETED,
                {"paid_at": data.get("paid_at") or utcnow().isoformat()},
            )
            user_id = (data.get("metadata") or {}).get("user_id")
            if user_id:
                email = (data.get("customer") or {}).get("email")
                BillingService._store_authorization(user_id, email, data.get("authorization"))
            logger.info(f"Webhook: charge {reference} succeeded")

        elif event in ("subscription.disable", "invoice.payment_failed"):
            if event == "subscription.disable":
                code, status = data.get("subscription_code"), SubscriptionStatus.CANCELLED
            else:
                code, status = (data.get("subscription") or {}).get("subscription_code"), SubscriptionStatus.PAST_DUE
            if code:
                SubscriptionService.set_status_by_code(code, status)
            else:
                logger.warning(f"Webhook: {event} without a subscription code, ignored")

        elif event in ("subscription.create", "invoice.create"):
            logger.info(f"Webhook: {event} received")

        else:
            logger.info(f"Webhook: unhandled event {event}")

        return WebhookAck(received=True, event=event)

    # -------------------------------------------------------------------------
    # Renewals
    # -------------------------------------------------------------------------

    @staticmethod
    def due_renewals(now: datetime | None = None, within: timedelta = timedelta(days=1)) -> list[dict[str, Any]]:
        """
        Active paid subscriptions whose period ends within `within`.

        Subscriptions cancelled at period end are left to expire.
        """
        now = now or utcnow()
        return SupabaseClient.select_many(
            "user_subscriptions",
            {"status": SubscriptionStatus.ACTIVE.value, "tier_id": PAID_TIERS, "cancel_at_period_end": False},
            lte={"current_period_end": (now + within).isoformat()},
        )

    @staticmethod
    def charge_recurring(user_id: str) -> dict[str, Any]:
        """
        Renew the user's subscription by charging their stored card.

        A declined charge marks the subscription past_due rather than
        raising, so the beat job can carry on with other users.

        Raises:
            SubscriptionNotFoundError: No active subscription
            NoPaymentAuthorizationError: No reusable card on file
        """
        subscription = SubscriptionService.get_user_subscription(user_id)
        if not subscription:
            raise SubscriptionNotFoundError(user_id)

        authorization = SupabaseClient.select_one(
            "payment_authorizations",
            {"user_id": user_id, "reusable": True},
            order_by="updated_at",
            desc=True,
        )
        if not authorization:
            raise NoPaymentAuthorizationError(user_id)

        tier = SubscriptionService.get_tier_config(subscription.get("tier_id"))
        period = _parse_period(subscription.get("billing_period") or BillingPeriod.MONTHLY.value)
        amount = tier.price_for(period)
        reference = PaystackClient.generate_reference()
        metadata = {
            "user_id": user_id,
            "tier_id": tier.id.value,
            "billing_period": period.value,
            "recurring": True,
        }

        try:
            data = PaystackClient.charge_authorization(
                authorization_code=authorization["authorization_code"],
                email=authorization.get("email"),
                amount=amount,
                reference=reference,
                metadata=metadata,
            )
            charge_status = data.get("status")
            failure = None if charge_status == "success" else (data.get("gateway_response") or charge_status)
        except PaystackError as e:
            failure = e.message

        if failure:
            SubscriptionService.set_status_for_user(user_id, SubscriptionStatus.PAST_DUE)
            BillingService._record_transaction(
                user_id, reference, amount, tier.id.value, period.value,
                PaymentStatus.FAILED, metadata={**metadata, "error": failure},
            )
            logger.warning(f"Recurring charge for {user_id} failed: {failure}")
            return {"success": False, "reference": reference, "error": failure}

        # Extend from the end of the current period so early renewals don't lose days
        start = utcnow()
        if subscription.get("current_period_end"):
            start = max(start, to_datetime(subscription["current_period_end"]))

        renewed = SubscriptionService.update_user_subscription(
            user_id,
            tier.id,
            period,
            metadata={"last_payment_reference": reference},
            start=start,
        )
        BillingService._record_transaction(
            user_id, reference, amount, tier.id.value, period.value,
            PaymentStatus.COMPLETED, metadata=metadata,
        )
        logger.info(f"Renewed {tier.id.value} for {user_id} until {renewed['current_period_end']}")
        return {
            "success": True,
            "reference": reference,
            "current_period_end": renewed["current_period_end"],
        }

    # -------------------------------------------------------------------------
    # Refunds & History
    # -------------------------------------------------------------------------

    @staticmethod
    def request_refund(
        user_id: str,
        reference: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """
        Refund one of the user's completed payments, fully or partially.

        Raises:
            PaymentTransactionNotFoundError: Reference isn't the user's
            ValidationFailedError: Payment isn't completed
            InvalidAmountError: Amount exceeds what was paid
        """
        transaction = SupabaseClient.select_one(
            "payment_transactions",
            {"reference": reference, "user_id": user_id},
        )
        if not transaction:
            raise PaymentTransactionNotFoundError(reference)
        if transaction.get("status") != PaymentStatus.COMPLETED.value:
            raise ValidationFailedError("Only completed payments can be refunded", field="reference")
        if amount is not None and amount > float(transaction["amount"]):
            raise InvalidAmountError(amount, what="refund amount")

        refund = PaystackClient.refund(reference, amount=amount, reason=reason)

        updated = BillingService._set_transaction_status(
            reference,
            PaymentStatus.REFUNDED,
            {
                "metadata": {
                    **(transaction.get("metadata") or {}),
                    "refund_amount": amount if amount is not None else transaction["amount"],
                    "refund_reason": reason,
                    "refund_id": refund.get("id"),
                },
            },
        )
        logger.info(f"Refunded {reference} for {user_id}")
        return updated or {**transaction, "status": PaymentStatus.REFUNDED.value}

    @staticmethod
    def list_transactions(user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        return SupabaseClient.select_many(
            "payment_transactions",
            {"user_id": user_id},
            order_by="created_at",
            desc=True,
            limit=limit,
        )
