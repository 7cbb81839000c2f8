"""
Reservation lifecycle: create, cancel, reschedule, confirm, complete and the
guarded admin override.

Every write runs inside one ``engine.begin()`` block. Writes that depend on
slot availability (create, reschedule, confirm) first lock the host's user
row, so the availability check and the write for a host are serialized
across concurrent requests. Notifications go out only after commit.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Iterator, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy.engine import Connection, Engine

from booking_engine.config import CANCELLATION_WINDOW_HOURS
from booking_engine.db.readers import reservations as reservation_reader
from booking_engine.db.readers.users import get_user, lock_user
from booking_engine.db.writers.reservations import insert_reservation, transition_reservation
from booking_engine.errors import (
    AuthorizationError,
    BookingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from booking_engine.metrics import reservation_transitions
from booking_engine.models.enums import NotificationKind, ReservationStatus, UserRole
from booking_engine.network.notifications import Notifier
from booking_engine.services.conflicts import is_host_free
from booking_engine.services.transitions import ensure_transition
from booking_engine.utils.datetime import ensure_utc, utc_now
from booking_engine.utils.money import quantize

logger = structlog.get_logger(__name__)

RESCHEDULED_REASON = "Rescheduled"


@contextmanager
def _track(transition: str) -> Iterator[None]:
    try:
        yield
    except BookingError:
        reservation_transitions.labels(transition=transition, outcome="rejected").inc()
        raise
    reservation_transitions.labels(transition=transition, outcome="success").inc()


def _validate_interval(start_at: datetime, end_at: datetime, now: datetime) -> None:
    if start_at <= now:
        raise ValidationError("Start time must be in the future")
    if end_at <= start_at:
        raise ValidationError("End time must be after start time")


def _load(conn: Connection, reservation_id: UUID, for_update: bool = False) -> dict[str, Any]:
    reservation = reservation_reader.get_reservation(conn, reservation_id, for_update=for_update)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def _require_participant(reservation: dict[str, Any], actor_id: UUID) -> None:
    if actor_id not in (reservation["customer_id"], reservation["host_id"]):
        raise AuthorizationError("You are not a participant of this reservation")


def _lock_host(conn: Connection, host_id: UUID) -> dict[str, Any]:
    host = lock_user(conn, host_id)
    if host is None or host["role"] != UserRole.HOST:
        raise NotFoundError(f"Host {host_id} not found")
    return host


def _apply(
    conn: Connection,
    reservation: dict[str, Any],
    new_status: ReservationStatus,
    now: datetime,
    **fields: Any,
) -> dict[str, Any]:
    """Conditionally write a transition and return the fresh row."""
    changed = transition_reservation(
        conn, reservation["id"], reservation["status"], new_status, now, **fields
    )
    if not changed:
        raise ConflictError("Reservation was modified by another request")
    return _load(conn, reservation["id"])


def _notify(
    notifier: Optional[Notifier],
    user_id: UUID,
    kind: NotificationKind,
    title: str,
    body: str,
    reservation_id: UUID,
) -> None:
    if notifier is None:
        return
    notifier.notify(
        str(user_id),
        kind,
        title,
        body,
        related_id=str(reservation_id),
        metadata={"reservationId": str(reservation_id)},
    )


def _other_party(reservation: dict[str, Any], actor_id: UUID) -> UUID:
    if actor_id == reservation["customer_id"]:
        return reservation["host_id"]
    return reservation["customer_id"]


def create_reservation(
    engine: Engine,
    customer_id: UUID,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    amount: Decimal,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    """
    Book a host for an interval. The reservation starts PENDING.

    Args:
        engine: SQLAlchemy engine
        customer_id: Paying customer
        host_id: Host being booked
        start_at: Requested start (must be in the future)
        end_at: Requested end (must be after start)
        amount: Gross price of the session
        now: Reference time (defaults to current UTC time)
        notifier: Optional notification gateway; the host is told about the request

    Returns:
        dict: The new reservation row

    Raises:
        ValidationError: Past start, empty interval or negative amount
        NotFoundError: Unknown customer or host
        ConflictError: Slot not covered by availability or already booked
    """
    now = now or utc_now()
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)

    with _track("create"):
        _validate_interval(start_at, end_at, now)
        if amount < 0:
            raise ValidationError("Amount cannot be negative")

        row = {
            "id": uuid4(),
            "customer_id": customer_id,
            "host_id": host_id,
            "start_at": start_at,
            "end_at": end_at,
            "status": ReservationStatus.PENDING,
            "amount": quantize(Decimal(amount)),
            "is_rescheduled": False,
            "created_at": now,
            "updated_at": now,
        }

        with engine.begin() as conn:
            if get_user(conn, customer_id) is None:
                raise NotFoundError(f"Customer {customer_id} not found")
            _lock_host(conn, host_id)
            if not is_host_free(conn, host_id, start_at, end_at):
                raise ConflictError("Host is not available for the selected time slot")
            insert_reservation(conn, row)

    logger.info(
        "reservation_created",
        reservation_id=str(row["id"]),
        customer_id=str(customer_id),
        host_id=str(host_id),
        start_at=start_at.isoformat(),
        end_at=end_at.isoformat(),
    )
    _notify(
        notifier,
        host_id,
        NotificationKind.RESERVATION_CREATED,
        "New reservation request",
        f"A session was requested for {start_at:%Y-%m-%d %H:%M} UTC.",
        row["id"],
    )
    return row


def cancel_reservation(
    engine: Engine,
    reservation_id: UUID,
    actor_id: UUID,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    """
    Cancel a PENDING or CONFIRMED reservation on behalf of a participant.

    Cancellation closes ``CANCELLATION_WINDOW_HOURS`` before the start.

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Actor is neither the customer nor the host
        ConflictError: Reservation is not PENDING or CONFIRMED
        ValidationError: Cancellation deadline has passed
    """
    now = now or utc_now()

    with _track("cancel"):
        with engine.begin() as conn:
            reservation = _load(conn, reservation_id, for_update=True)
            _require_participant(reservation, actor_id)
            ensure_transition(reservation["status"], ReservationStatus.CANCELLED)

            deadline = reservation["start_at"] - timedelta(hours=CANCELLATION_WINDOW_HOURS)
            if now > deadline:
                raise ValidationError("Cancellation deadline has passed")

            updated = _apply(
                conn,
                reservation,
                ReservationStatus.CANCELLED,
                now,
                cancellation_reason=reason,
            )

    logger.info(
        "reservation_cancelled",
        reservation_id=str(reservation_id),
        actor_id=str(actor_id),
        previous_status=reservation["status"].value,
    )
    _notify(
        notifier,
        _other_party(updated, actor_id),
        NotificationKind.RESERVATION_CANCELLED,
        "Reservation cancelled",
        f"The session on {updated['start_at']:%Y-%m-%d %H:%M} UTC was cancelled.",
        reservation_id,
    )
    return updated


def reschedule_reservation(
    engine: Engine,
    reservation_id: UUID,
    actor_id: UUID,
    new_start_at: datetime,
    new_end_at: datetime,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> dict[str, Any]:
    """
    Move a CONFIRMED reservation to a new interval.

    The original is cancelled with reason "Rescheduled" and a CONFIRMED
    replacement carrying the same amount and payment link is created. Both
    writes commit together or not at all. The original's own interval is
    ignored by the overlap test so a session can be shifted within its slot.

    Returns:
        dict: The replacement reservation row

    Raises:
        ValidationError: New interval starts in the past or is empty
        NotFoundError: Unknown reservation
        AuthorizationError: Actor is not a participant
        ConflictError: Original is not CONFIRMED, or the new slot is unavailable
    """
    now = now or utc_now()
    new_start_at = ensure_utc(new_start_at)
    new_end_at = ensure_utc(new_end_at)

    with _track("reschedule"):
        _validate_interval(new_start_at, new_end_at, now)

        with engine.begin() as conn:
            original = _load(conn, reservation_id, for_update=True)
            _require_participant(original, actor_id)
            if original["status"] != ReservationStatus.CONFIRMED:
                raise ConflictError("Only confirmed reservations can be rescheduled")

            _lock_host(conn, original["host_id"])
            if not is_host_free(
                conn,
                original["host_id"],
                new_start_at,
                new_end_at,
                exclude_reservation_id=original["id"],
            ):
                raise ConflictError("Host is not available for the new time slot")

            _apply(
                conn,
                original,
                ReservationStatus.CANCELLED,
                now,
                cancellation_reason=RESCHEDULED_REASON,
            )
            replacement = {
                "id": uuid4(),
                "customer_id": original["customer_id"],
                "host_id": original["host_id"],
                "start_at": new_start_at,
                "end_at": new_end_at,
                "status": ReservationStatus.CONFIRMED,
                "amount": original["amount"],
                "transaction_id": original["transaction_id"],
                "is_rescheduled": True,
                "original_reservation_id": original["id"],
                "created_at": now,
                "updated_at": now,
            }
            insert_reservation(conn, replacement)
            replacement = _load(conn, replacement["id"])

    logger.info(
        "reservation_rescheduled",
        original_reservation_id=str(reservation_id),
        reservation_id=str(replacement["id"]),
        actor_id=str(actor_id),
        start_at=new_start_at.isoformat(),
    )
    _notify(
        notifier,
        _other_party(replacement, actor_id),
        NotificationKind.RESERVATION_UPDATED,
        "Reservation rescheduled",
        f"Your session was moved to {new_start_at:%Y-%m-%d %H:%M} UTC.",
        replacement["id"],
    )
    return replacement


def confirm_reservation(
    engine: Engine,
    reservation_id: UUID,
    transaction_id: UUID,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Confirm a PENDING reservation once its payment has been captured.

    The slot is re-checked under the host lock because PENDING reservations
    do not hold their slot unless ``PENDING_HOLDS_SLOT`` is set.

    Raises:
        NotFoundError: Unknown reservation
        ConflictError: Not PENDING any more, or the slot has been taken meanwhile
    """
    now = now or utc_now()

    with _track("confirm"):
        with engine.begin() as conn:
            reservation = _load(conn, reservation_id, for_update=True)
            ensure_transition(reservation["status"], ReservationStatus.CONFIRMED)

            _lock_host(conn, reservation["host_id"])
            if not is_host_free(
                conn,
                reservation["host_id"],
                reservation["start_at"],
                reservation["end_at"],
                exclude_reservation_id=reservation["id"],
            ):
                raise ConflictError("Slot is no longer available")

            updated = _apply(
                conn,
                reservation,
                ReservationStatus.CONFIRMED,
                now,
                transaction_id=transaction_id,
            )

    logger.info(
        "reservation_confirmed",
        reservation_id=str(reservation_id),
        transaction_id=str(transaction_id),
    )
    return updated


def abandon_reservation(
    engine: Engine,
    reservation_id: UUID,
    reason: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Cancel a reservation that is still PENDING, bypassing participant and
    deadline checks. Used to compensate a checkout that cannot complete.

    Returns:
        bool: True if the reservation was cancelled, False if it had already moved on
    """
    now = now or utc_now()
    with engine.begin() as conn:
        cancelled = transition_reservation(
            conn,
            reservation_id,
            ReservationStatus.PENDING,
            ReservationStatus.CANCELLED,
            now,
            cancellation_reason=reason,
        )

    if cancelled:
        reservation_transitions.labels(transition="abandon", outcome="success").inc()
        logger.info("reservation_abandoned", reservation_id=str(reservation_id), reason=reason)
    return cancelled


def complete_reservation(
    engine: Engine,
    reservation_id: UUID,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Mark a CONFIRMED reservation COMPLETED once its interval has ended.

    Raises:
        NotFoundError: Unknown reservation
        ConflictError: Reservation is not CONFIRMED
        ValidationError: Reservation has not ended yet
    """
    now = now or utc_now()

    with _track("complete"):
        with engine.begin() as conn:
            reservation = _load(conn, reservation_id, for_update=True)
            ensure_transition(reservation["status"], ReservationStatus.COMPLETED)
            if now < reservation["end_at"]:
                raise ValidationError("This reservation has not ended yet")
            updated = _apply(conn, reservation, ReservationStatus.COMPLETED, now)

    logger.info("reservation_completed", reservation_id=str(reservation_id))
    return updated


def override_status(
    engine: Engine,
    reservation_id: UUID,
    new_status: ReservationStatus,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Admin status change, restricted to the admin transition table.

    A note is stored as the cancellation reason when cancelling and as the
    reservation notes otherwise.

    Raises:
        NotFoundError: Unknown reservation
        ConflictError: Transition not allowed (including any move out of a terminal state)
    """
    now = now or utc_now()

    with _track("override"):
        with engine.begin() as conn:
            reservation = _load(conn, reservation_id, for_update=True)
            ensure_transition(reservation["status"], new_status, admin=True)

            fields: dict[str, Any] = {}
            if note:
                if new_status == ReservationStatus.CANCELLED:
                    fields["cancellation_reason"] = note
                else:
                    fields["notes"] = note
            updated = _apply(conn, reservation, new_status, now, **fields)

    logger.warning(
        "reservation_status_overridden",
        reservation_id=str(reservation_id),
        previous_status=reservation["status"].value,
        new_status=new_status.value,
    )
    return updated


def get_reservation_for(
    engine: Engine, reservation_id: UUID, actor: dict[str, Any]
) -> dict[str, Any]:
    """
    Fetch a reservation visible to ``actor`` (a participant or an admin).

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Actor may not see it
    """
    with engine.connect() as conn:
        reservation = _load(conn, reservation_id)
    if actor["role"] != UserRole.ADMIN:
        _require_participant(reservation, actor["id"])
    return reservation


def list_for_customer(engine: Engine, customer_id: UUID) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return reservation_reader.list_for_customer(conn, customer_id)


def list_for_host(engine: Engine, host_id: UUID) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return reservation_reader.list_for_host(conn, host_id)


def list_upcoming(
    engine: Engine, user_id: UUID, as_host: bool = False, now: Optional[datetime] = None
) -> list[dict[str, Any]]:
    """Confirmed reservations that have not started yet, soonest first."""
    with engine.connect() as conn:
        return reservation_reader.list_upcoming(conn, user_id, as_host, now or utc_now())


def list_all(engine: Engine) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return reservation_reader.list_all(conn)
