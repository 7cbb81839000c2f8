from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Connection

from booking_engine.models.users import User


def get_user(conn: Connection, user_id: UUID) -> Optional[dict[str, Any]]:
    """
    Fetch an active user by id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        user_id (UUID): User ID issued by the identity service.

    Returns:
        Optional[dict]: User row as a dict, or None if missing or inactive.
    """
    row = (
        conn.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def lock_user(conn: Connection, user_id: UUID) -> Optional[dict[str, Any]]:
    """
    Fetch an active user and hold a row lock on it until the transaction ends.

    Booking writes lock the host's row so that the availability check and the
    insert for one host never interleave with another request for the same host.
    Must be called inside ``engine.begin()``.

    Args:
        conn (Connection): Connection inside an open transaction.
        user_id (UUID): User ID to lock.

    Returns:
        Optional[dict]: User row as a dict, or None if missing or inactive.
    """
    row = (
        conn.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True)).with_for_update()
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None
