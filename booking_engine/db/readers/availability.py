from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_engine.models.availability import Availability


def get_availability(conn: Connection, availability_id: UUID) -> Optional[dict[str, Any]]:
    """
    Fetch a single availability record by id, active or not.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        availability_id (UUID): Availability ID.

    Returns:
        Optional[dict]: Availability row or None.
    """
    row = (
        conn.execute(select(Availability).where(Availability.id == availability_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_active_availability(conn: Connection, host_id: UUID) -> list[dict[str, Any]]:
    """
    List every active availability record declared by a host.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        host_id (UUID): Host user ID.

    Returns:
        list[dict]: Active availability rows ordered by template start.
    """
    result = conn.execute(
        select(Availability)
        .where(Availability.host_id == host_id, Availability.is_active.is_(True))
        .order_by(Availability.start_at)
    )
    return [dict(row) for row in result.mappings()]
