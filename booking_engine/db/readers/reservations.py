from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_engine.models.enums import ReservationStatus
from booking_engine.models.reservations import Reservation


def get_reservation(
    conn: Connection, reservation_id: UUID, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation by id.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict]: Reservation row or None.
    """
    stmt = select(Reservation).where(Reservation.id == reservation_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def find_overlapping(
    conn: Connection,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    statuses: Iterable[ReservationStatus],
    exclude_id: Optional[UUID] = None,
) -> list[dict[str, Any]]:
    """
    Find a host's reservations in the given statuses that touch an interval.

    Boundaries are inclusive: a reservation ending exactly when the candidate
    starts counts as overlapping.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        host_id (UUID): Host user ID.
        start_at (datetime): Candidate interval start.
        end_at (datetime): Candidate interval end.
        statuses: Reservation statuses that block the slot.
        exclude_id (Optional[UUID]): Reservation to ignore (the one being moved or confirmed).

    Returns:
        list[dict]: Overlapping reservation rows.
    """
    stmt = select(Reservation).where(
        Reservation.host_id == host_id,
        Reservation.status.in_(list(statuses)),
        Reservation.start_at <= end_at,
        Reservation.end_at >= start_at,
    )
    if exclude_id is not None:
        stmt = stmt.where(Reservation.id != exclude_id)
    return [dict(row) for row in conn.execute(stmt).mappings()]


def list_for_customer(conn: Connection, customer_id: UUID) -> list[dict[str, Any]]:
    """List a customer's reservations, latest start first."""
    result = conn.execute(
        select(Reservation)
        .where(Reservation.customer_id == customer_id)
        .order_by(Reservation.start_at.desc())
    )
    return [dict(row) for row in result.mappings()]


def list_for_host(conn: Connection, host_id: UUID) -> list[dict[str, Any]]:
    """List a host's reservations, latest start first."""
    result = conn.execute(
        select(Reservation)
        .where(Reservation.host_id == host_id)
        .order_by(Reservation.start_at.desc())
    )
    return [dict(row) for row in result.mappings()]


def list_upcoming(
    conn: Connection, user_id: UUID, as_host: bool, now: datetime
) -> list[dict[str, Any]]:
    """
    List confirmed reservations that have not started yet, soonest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        user_id (UUID): Customer or host user ID.
        as_host (bool): Match on host_id instead of customer_id.
        now (datetime): Reference time.

    Returns:
        list[dict]: Upcoming reservation rows.
    """
    owner_column = Reservation.host_id if as_host else Reservation.customer_id
    result = conn.execute(
        select(Reservation)
        .where(
            owner_column == user_id,
            Reservation.status == ReservationStatus.CONFIRMED,
            Reservation.start_at >= now,
        )
        .order_by(Reservation.start_at.asc())
    )
    return [dict(row) for row in result.mappings()]


def list_all(conn: Connection) -> list[dict[str, Any]]:
    """List every reservation, latest start first."""
    result = conn.execute(select(Reservation).order_by(Reservation.start_at.desc()))
    return [dict(row) for row in result.mappings()]
