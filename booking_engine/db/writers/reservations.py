from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_engine.models.enums import ReservationStatus
from booking_engine.models.reservations import Reservation


def insert_reservation(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a new reservation row.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        row (dict): Fully populated reservation row.
    """
    conn.execute(insert(Reservation).values(row))


def transition_reservation(
    conn: Connection,
    reservation_id: UUID,
    expected_status: ReservationStatus,
    new_status: ReservationStatus,
    now: datetime,
    **fields: Any,
) -> bool:
    """
    Move a reservation to a new status only if it is still in the expected one.

    The status check is part of the UPDATE, so a concurrent writer that got
    there first makes this a no-op instead of a lost update.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.
        expected_status (ReservationStatus): Status the caller read.
        new_status (ReservationStatus): Target status.
        now (datetime): Timestamp for updated_at.
        **fields: Extra columns to set (cancellation_reason, notes, transaction_id).

    Returns:
        bool: True if the row was updated.
    """
    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id, Reservation.status == expected_status)
        .values(status=new_status, updated_at=now, **fields)
    )
    return result.rowcount == 1
