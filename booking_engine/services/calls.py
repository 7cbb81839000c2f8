"""Video call access for confirmed reservations."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from booking_engine.config import CALL_EARLY_JOIN_MINUTES, CALL_TOKEN_TTL_SECONDS
from booking_engine.db.readers.reservations import get_reservation
from booking_engine.errors import AuthorizationError, NotFoundError, ValidationError
from booking_engine.models.enums import ReservationStatus
from booking_engine.network.video_tokens import ROLE_PUBLISHER, ROLE_SUBSCRIBER, TokenAuthority
from booking_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

UID_MODULUS = 100000


def channel_name(reservation_id: UUID) -> str:
    return f"session-{reservation_id}"


def issue_call_token(
    engine: Engine,
    authority: TokenAuthority,
    reservation_id: UUID,
    user_id: UUID,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Get a call token for one participant of a confirmed reservation.

    Customers may join from ``CALL_EARLY_JOIN_MINUTES`` before the start;
    hosts at any time before the end. Nobody can join after the end.

    Returns:
        dict: token, channel, uid, role and expires_at

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Caller is not a participant
        ValidationError: Reservation not confirmed, too early, or already over
        GatewayError: The token authority failed
    """
    now = now or utc_now()

    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")

    is_host = user_id == reservation["host_id"]
    if not is_host and user_id != reservation["customer_id"]:
        raise AuthorizationError("User is not part of this reservation")
    if reservation["status"] != ReservationStatus.CONFIRMED:
        raise ValidationError("Only confirmed reservations can be joined")

    if now > reservation["end_at"]:
        raise ValidationError("This session has already ended")
    join_from = reservation["start_at"] - timedelta(minutes=CALL_EARLY_JOIN_MINUTES)
    if now < join_from and not is_host:
        raise ValidationError("Too early to join this call")

    channel = channel_name(reservation_id)
    uid = user_id.int % UID_MODULUS
    role = ROLE_PUBLISHER if is_host else ROLE_SUBSCRIBER
    expires_at = now + timedelta(seconds=CALL_TOKEN_TTL_SECONDS)

    token = authority.mint_token(channel, uid, role, expires_at)

    logger.info(
        "call_token_issued",
        reservation_id=str(reservation_id),
        user_id=str(user_id),
        role=role,
    )
    return {
        "token": token,
        "channel": channel,
        "uid": uid,
        "role": role,
        "expires_at": expires_at,
    }
