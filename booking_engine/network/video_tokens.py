"""Client for the external video token authority."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Optional, Protocol

import requests
import structlog

from booking_engine.config import GATEWAY_TIMEOUT_SECONDS, VIDEO_TOKEN_URL
from booking_engine.errors import GatewayError
from booking_engine.metrics import gateway_latency, gateway_requests

logger = structlog.get_logger(__name__)

ROLE_PUBLISHER = "publisher"
ROLE_SUBSCRIBER = "subscriber"


class TokenAuthority(Protocol):
    """Mints call-session tokens; the engine never generates tokens itself."""

    def mint_token(self, channel: str, uid: int, role: str, expires_at: datetime) -> str: ...


class HttpTokenAuthority:
    """``TokenAuthority`` that asks the token service over HTTP."""

    def __init__(
        self,
        url: Optional[str] = VIDEO_TOKEN_URL,
        timeout_seconds: int = GATEWAY_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds

    def mint_token(self, channel: str, uid: int, role: str, expires_at: datetime) -> str:
        """
        Request a token for one participant of a call channel.

        Args:
            channel: Channel name shared by both participants
            uid: Numeric participant id inside the channel
            role: ROLE_PUBLISHER or ROLE_SUBSCRIBER
            expires_at: Absolute expiry of the privilege

        Returns:
            str: Opaque token for the video SDK

        Raises:
            GatewayError: If the authority is not configured, unreachable or answers without a token
        """
        if not self.url:
            raise GatewayError("Video token authority is not configured")

        payload = {
            "channel": channel,
            "uid": uid,
            "role": role,
            "expiresAt": int(expires_at.timestamp()),
        }

        start_time = time.time()
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            gateway_requests.labels(operation="mint_token", outcome="failure").inc()
            logger.error("token_request_failed", channel=channel, error=str(e))
            raise GatewayError("Video token authority request failed") from e
        finally:
            gateway_latency.labels(operation="mint_token").observe(time.time() - start_time)

        token = response.json().get("token")
        if not isinstance(token, str):
            gateway_requests.labels(operation="mint_token", outcome="failure").inc()
            logger.error("token_missing_in_response", channel=channel, response=response.text)
            raise GatewayError("Video token authority returned no token")

        gateway_requests.labels(operation="mint_token", outcome="success").inc()
        return token
