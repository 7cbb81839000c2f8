"""Local mirror of identity-service users."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.engine import Engine

from booking_engine.db.readers.users import get_user
from booking_engine.db.writers.users import upsert_user
from booking_engine.errors import NotFoundError
from booking_engine.utils.datetime import utc_now


def sync_user(
    engine: Engine,
    data: dict[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Insert or refresh a user pushed by the identity service.

    Returns:
        dict: The stored row, or the pushed fields when the user was deactivated
    """
    now = now or utc_now()
    with engine.begin() as conn:
        upsert_user(conn, data, now)
        stored = get_user(conn, data["id"])
    return stored or data


def get_user_or_404(engine: Engine, user_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        user = get_user(conn, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user
