"""
Notification gateway client.

From the engine's point of view notifications are fire-and-forget: a failed
delivery is logged and counted but never fails the booking operation that
triggered it.
"""

from __future__ import annotations

import time
from typing import Any, Optional, Protocol

import requests
import structlog

from booking_engine.config import GATEWAY_TIMEOUT_SECONDS, NOTIFICATIONS_URL
from booking_engine.metrics import gateway_latency, gateway_requests
from booking_engine.models.enums import NotificationChannel, NotificationKind

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    """Narrow interface onto the external notification gateway."""

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        related_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None: ...


class HttpNotifier:
    """
    ``Notifier`` that POSTs each notification to the notification service.

    When no URL is configured notifications are only logged, which is the
    expected setup for local development.
    """

    def __init__(
        self,
        url: Optional[str] = NOTIFICATIONS_URL,
        timeout_seconds: int = GATEWAY_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        related_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        payload = {
            "userId": user_id,
            "type": kind.value,
            "title": title,
            "message": body,
            "channel": channel.value,
            "relatedId": related_id,
            "metadata": metadata or {},
        }

        if not self.url:
            logger.info("notification_skipped_no_url", user_id=user_id, kind=kind.value)
            return

        start_time = time.time()
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            # Delivery is best effort; the triggering operation already committed
            gateway_requests.labels(operation="notify", outcome="failure").inc()
            logger.warning(
                "notification_delivery_failed",
                user_id=user_id,
                kind=kind.value,
                related_id=related_id,
                error=str(e),
            )
            return
        finally:
            gateway_latency.labels(operation="notify").observe(time.time() - start_time)

        gateway_requests.labels(operation="notify", outcome="success").inc()
        logger.debug("notification_sent", user_id=user_id, kind=kind.value, related_id=related_id)
