"""
Checkout saga linking a reservation and its escrow entry.

The two aggregates never share a database transaction. Their combined state
is always one of:

    reservation  / entry
    PENDING      / (none)       booked, not paid yet
    PENDING      / PENDING      payment in flight
    PENDING      / FAILED       payment failed, customer may retry
    CONFIRMED    / COMPLETED    paid and booked
    CANCELLED    / REFUNDED     paid but the slot could not be kept

Reaching CONFIRMED/COMPLETED takes two steps (capture, then confirm). When
the confirm step is refused, the refund and cancel compensation moves the
pair to CANCELLED/REFUNDED instead of leaving money captured for a booking
that does not exist.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_engine.db.readers.reservations import get_reservation
from booking_engine.errors import ConflictError, NotFoundError
from booking_engine.models.enums import (
    NotificationKind,
    ReservationStatus,
    TransactionStatus,
)
from booking_engine.network.notifications import Notifier
from booking_engine.network.payments import PaymentGateway
from booking_engine.services import escrow, reservations
from booking_engine.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

SLOT_UNAVAILABLE_REASON = "Payment refunded: slot unavailable"


def handle_capture(
    engine: Engine,
    gateway: PaymentGateway,
    intent_ref: str,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    """
    Complete the ledger entry for a captured intent and confirm its reservation.

    Replays are safe: a second capture for the same intent finds the entry
    already COMPLETED (or REFUNDED) and the reservation already moved on.

    Args:
        engine: SQLAlchemy engine
        gateway: Payment gateway adapter
        intent_ref: Gateway payment intent reference
        now: Reference time (defaults to current UTC time)
        notifier: Optional notification gateway; the host is told about the payment

    Returns:
        dict: ``transaction_id``, ``reservation_id`` and the resulting
        ``reservation_status`` and ``transaction_status``

    Raises:
        NotFoundError: No ledger entry matches the intent
        GatewayError: The gateway failed while reading the intent or refunding
    """
    now = now or utc_now()
    entry = escrow.on_capture_confirmed(engine, gateway, intent_ref, now=now)
    reservation_id = entry["reservation_id"]

    if entry["status"] != TransactionStatus.COMPLETED:
        return _outcome(engine, entry)

    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)

    already_confirmed = (
        reservation is not None
        and reservation["status"] == ReservationStatus.CONFIRMED
        and reservation["transaction_id"] == entry["id"]
    )
    if already_confirmed:
        return _outcome(engine, entry)

    try:
        reservations.confirm_reservation(engine, reservation_id, entry["id"], now=now)
    except (ConflictError, NotFoundError) as e:
        logger.warning(
            "checkout_confirm_refused",
            transaction_id=str(entry["id"]),
            reservation_id=str(reservation_id),
            error=e.message,
        )
        entry = _compensate(engine, gateway, entry, now)
        return _outcome(engine, entry)

    logger.info(
        "checkout_completed",
        transaction_id=str(entry["id"]),
        reservation_id=str(reservation_id),
    )
    if notifier is not None:
        notifier.notify(
            str(entry["host_id"]),
            NotificationKind.PAYMENT_COMPLETED,
            "Payment received",
            f"A payment of {entry['amount']} {entry['currency']} was captured for your session.",
            related_id=str(reservation_id),
            metadata={"transactionId": str(entry["id"])},
        )
    return _outcome(engine, entry)


def handle_payment_failed(
    engine: Engine,
    intent_ref: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Move the entry to FAILED; the reservation stays PENDING for a retry."""
    entry = escrow.on_payment_failed(engine, intent_ref, reason=reason, now=now)
    return _outcome(engine, entry)


def _compensate(
    engine: Engine,
    gateway: PaymentGateway,
    entry: dict[str, Any],
    now: datetime,
) -> dict[str, Any]:
    refunded = escrow.refund(engine, gateway, entry["id"], SLOT_UNAVAILABLE_REASON, now=now)
    reservations.abandon_reservation(
        engine, entry["reservation_id"], SLOT_UNAVAILABLE_REASON, now=now
    )
    logger.warning(
        "checkout_compensated",
        transaction_id=str(entry["id"]),
        reservation_id=str(entry["reservation_id"]),
    )
    return refunded


def _outcome(engine: Engine, entry: dict[str, Any]) -> dict[str, Any]:
    with engine.connect() as conn:
        reservation = get_reservation(conn, entry["reservation_id"])
    return {
        "transaction_id": entry["id"],
        "reservation_id": entry["reservation_id"],
        "transaction_status": entry["status"],
        "reservation_status": reservation["status"] if reservation else None,
    }
