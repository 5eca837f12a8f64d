# =============================================================================
# lib/onesignal_client.py - OneSignal Push Notification Client
# =============================================================================
# Thin httpx wrapper around OneSignal's REST API (v1 notifications endpoint).
#
# Usage:
#   from lib.onesignal_client import OneSignalClient
#   OneSignalClient.send_notification(
#       player_ids=["a1b2..."], message="Time to study!", heading="StudySpark"
#   )
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds
DEFAULT_PRIORITY = 5
DEFAULT_TTL = 259200  # 3 days


class OneSignalError(ApplicationError):
    """Raised when OneSignal rejects a request or is unreachable."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="ONESIGNAL_ERROR", **kwargs)


class OneSignalClient:
    """OneSignal REST client. Stateless; one httpx client per call."""

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "Authorization": f"Basic {settings.ONESIGNAL_REST_API_KEY}",
            "Content-Type": "application/json; charset=utf-8",
        }

    @staticmethod
    def build_payload(
        player_ids: list[str],
        message: str,
        heading: str | None = None,
        data: dict[str, Any] | None = None,
        url: str | None = None,
        send_after: datetime | None = None,
    ) -> dict[str, Any]:
        """Build the notification body for the /notifications endpoint."""
        payload: dict[str, Any] = {
            "app_id": settings.ONESIGNAL_APP_ID,
            "include_player_ids": player_ids,
            "contents": {"en": message},
            "headings": {"en": heading or settings.NOTIFICATION_DEFAULT_HEADING},
            "data": data or {},
            "priority": DEFAULT_PRIORITY,
            "ttl": DEFAULT_TTL,
        }
        if url:
            payload["url"] = url
        if send_after:
            # OneSignal accepts any string Date.parse understands
            payload["send_after"] = send_after.isoformat()
        return payload

    @classmethod
    def send_notification(
        cls,
        player_ids: list[str],
        message: str,
        heading: str | None = None,
        data: dict[str, Any] | None = None,
        url: str | None = None,
        send_after: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Send (or schedule, when send_after is set) a push notification.

        Returns:
            OneSignal response with `id` and `recipients`

        Raises:
            OneSignalError: If OneSignal is unconfigured, unreachable, or
                rejects the request
        """
        if not settings.onesignal_enabled:
            raise OneSignalError(
                "OneSignal is not configured",
                suggestion="Set ONESIGNAL_APP_ID and ONESIGNAL_REST_API_KEY in your .env file",
            )

        payload = cls.build_payload(player_ids, message, heading, data, url, send_after)
        url_ = f"{settings.ONESIGNAL_API_URL.rstrip('/')}/notifications"

        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
                response = client.post(url_, json=payload, headers=cls._headers())
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OneSignalError(
                f"OneSignal returned {e.response.status_code}: {e.response.text[:200]}",
                details={"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            raise OneSignalError(
                f"Could not reach OneSignal: {e}",
                suggestion="Check network connectivity and ONESIGNAL_API_URL",
            )

        result = response.json()
        if result.get("errors") and not result.get("id"):
            raise OneSignalError(f"OneSignal rejected notification: {result['errors']}")

        logger.info(f"OneSignal notification {result.get('id')} sent to {len(player_ids)} device(s)")
        return result

    @classmethod
    def cancel_notification(cls, notification_id: str) -> dict[str, Any]:
        """Cancel a scheduled notification that hasn't been delivered yet."""
        url_ = (
            f"{settings.ONESIGNAL_API_URL.rstrip('/')}/notifications/{notification_id}"
            f"?app_id={settings.ONESIGNAL_APP_ID}"
        )

        try:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as client:
                response = client.delete(url_, headers=cls._headers())
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise OneSignalError(f"Failed to cancel notification {notification_id}: {e}")

        return response.json()
