"""
Slot conflict resolution.

A candidate interval is bookable when a single expanded availability slot
fully contains it and no blocking reservation shares any instant with it.
Both tests use inclusive boundaries: back-to-back bookings that share an
endpoint conflict, and coverage is never assembled from several slots.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.engine import Connection

from booking_engine.config import PENDING_HOLDS_SLOT
from booking_engine.db.readers.availability import list_active_availability
from booking_engine.db.readers.reservations import find_overlapping
from booking_engine.models.enums import ReservationStatus
from booking_engine.services.availability import Slot, expand_availability
from booking_engine.utils.datetime import ensure_utc, start_of_day


def blocking_statuses(pending_holds_slot: bool = PENDING_HOLDS_SLOT) -> tuple[ReservationStatus, ...]:
    """Reservation statuses that make a slot unavailable to new bookings."""
    if pending_holds_slot:
        return (ReservationStatus.CONFIRMED, ReservationStatus.PENDING)
    return (ReservationStatus.CONFIRMED,)


def is_covered(slots: Iterable[Slot], start_at: datetime, end_at: datetime) -> bool:
    """True if one slot contains [start_at, end_at] entirely (inclusive)."""
    return any(slot.start_at <= start_at and slot.end_at >= end_at for slot in slots)


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """True if two closed intervals share at least one instant."""
    return a_start <= b_end and a_end >= b_start


def is_host_free(
    conn: Connection,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    exclude_reservation_id: Optional[UUID] = None,
    pending_holds_slot: bool = PENDING_HOLDS_SLOT,
) -> bool:
    """
    Decide whether a host can take a booking for [start_at, end_at].

    Availability is expanded over the whole calendar days spanned by the
    candidate interval. Callers that go on to write must hold the host lock
    (``lock_user``) on the same connection, otherwise the answer can be stale
    by the time the insert lands.

    Args:
        conn: Connection (inside the caller's transaction when writing)
        host_id: Host to check
        start_at: Candidate start
        end_at: Candidate end
        exclude_reservation_id: Reservation to ignore (being rescheduled or confirmed)
        pending_holds_slot: Also treat PENDING reservations as blocking

    Returns:
        bool: True when covered by availability and free of blocking reservations
    """
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)

    # Include the previous day so windows crossing midnight are projected
    range_start = start_of_day(start_at.date()) - timedelta(days=1)
    range_end = start_of_day(end_at.date()) + timedelta(days=1)
    slots = expand_availability(list_active_availability(conn, host_id), range_start, range_end)

    if not is_covered(slots, start_at, end_at):
        return False

    clashes = find_overlapping(
        conn,
        host_id,
        start_at,
        end_at,
        statuses=blocking_statuses(pending_holds_slot),
        exclude_id=exclude_reservation_id,
    )
    return not clashes
