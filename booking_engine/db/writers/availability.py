from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_engine.models.availability import Availability


def insert_availability(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a new availability record.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        row (dict): Fully populated availability row.
    """
    conn.execute(insert(Availability).values(row))


def deactivate_availability(conn: Connection, availability_id: UUID, now: datetime) -> bool:
    """
    Retire an availability record by clearing its active flag.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        availability_id (UUID): Availability ID.
        now (datetime): Timestamp for updated_at.

    Returns:
        bool: True if an active record was retired, False if it was already inactive.
    """
    result = conn.execute(
        update(Availability)
        .where(Availability.id == availability_id, Availability.is_active.is_(True))
        .values(is_active=False, updated_at=now)
    )
    return result.rowcount == 1
