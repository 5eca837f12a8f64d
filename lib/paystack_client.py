# =============================================================================
# lib/paystack_client.py - Paystack Payment Gateway Client
# =============================================================================
# Thin httpx wrapper around the Paystack REST API. Amounts passed to the API
# are in the currency's minor unit (pesewas for GHS).
#
# Usage:
#   from lib.paystack_client import PaystackClient
#   result = PaystackClient.initialize_transaction(
#       email="ama@example.com", amount=20.0, reference=PaystackClient.generate_reference()
#   )
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import string
import time
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
_REFERENCE_ALPHABET = string.ascii_lowercase + string.digits


class PaystackError(ApplicationError):
    """Raised when Paystack rejects a request or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        super().__init__(message, code="PAYSTACK_ERROR", **kwargs)
        self.status_code = status_code


class PaystackClient:
    """
    Paystack API client.

    All methods are class methods that open a short-lived httpx client per
    call; the gateway is called a handful of times per checkout so pooling
    isn't needed.
    """

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_reference() -> str:
        """Unique transaction reference: ss_{unix_ms}_{9 random chars}."""
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
        return f"ss_{int(time.time() * 1000)}_{suffix}"

    @staticmethod
    def to_minor_units(amount: float) -> int:
        """Convert a major-unit amount (cedis) to pesewas."""
        return int(round(amount * 100))

    @staticmethod
    def verify_webhook_signature(body: bytes, signature: str | None) -> bool:
        """
        Check the x-paystack-signature header.

        Paystack signs the raw request body with HMAC-SHA512 using the
        account's secret key.
        """
        if not signature or not settings.PAYSTACK_SECRET_KEY:
            return False
        expected = hmac.new(
            settings.PAYSTACK_SECRET_KEY.encode("utf-8"),
            body,
            hashlib.sha512,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send a request and return the `data` field of Paystack's envelope.

        Paystack responds with {"status": bool, "message": str, "data": ...}.
        """
        if not settings.paystack_enabled:
            raise PaystackError(
                "Paystack is not configured",
                suggestion="Set PAYSTACK_SECRET_KEY in your .env file",
            )

        url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
            "Content-Type": "application/json",
        }

        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
                response = client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise PaystackError(
                f"Could not reach Paystack: {e}",
                suggestion="Check network connectivity and PAYSTACK_BASE_URL",
                details={"path": path},
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"Paystack {method} {path} failed: {message}")
            raise PaystackError(
                message,
                status_code=response.status_code,
                details={"path": path},
            )

        return body.get("data") or {}

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @classmethod
    def initialize_transaction(
        cls,
        email: str,
        amount: float,
        reference: str,
        metadata: dict[str, Any] | None = None,
        callback_url: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a checkout.

        Returns:
            Dict with authorization_url, access_code, reference
        """
        payload: dict[str, Any] = {
            "email": email,
            "amount": cls.to_minor_units(amount),
            "currency": settings.BILLING_CURRENCY,
            "reference": reference,
            "callback_url": callback_url or settings.PAYSTACK_CALLBACK_URL,
            "metadata": metadata or {},
        }
        data = cls._request("POST", "/transaction/initialize", payload)
        logger.info(f"Initialized Paystack transaction {reference}")
        return data

    @classmethod
    def verify_transaction(cls, reference: str) -> dict[str, Any]:
        """Fetch the settled state of a transaction by reference."""
        return cls._request("GET", f"/transaction/verify/{reference}")

    @classmethod
    def charge_authorization(
        cls,
        authorization_code: str,
        email: str,
        amount: float,
        reference: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Charge a stored, reusable card authorization."""
        payload = {
            "authorization_code": authorization_code,
            "email": email,
            "amount": cls.to_minor_units(amount),
            "currency": settings.BILLING_CURRENCY,
            "reference": reference,
            "metadata": metadata or {},
        }
        return cls._request("POST", "/transaction/charge_authorization", payload)

    @classmethod
    def refund(
        cls,
        reference: str,
        amount: float | None = None,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Refund a transaction in full, or partially when amount is given."""
        payload: dict[str, Any] = {"transaction": reference}
        if amount is not None:
            payload["amount"] = cls.to_minor_units(amount)
        if reason:
            payload["merchant_note"] = reason
        return cls._request("POST", "/refund", payload)

