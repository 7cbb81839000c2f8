from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.engine import Connection

from booking_engine.db.writers._upsert import upsert_with_distinct_check
from booking_engine.models.users import User

logger = structlog.get_logger(__name__)

USER_SYNC_COLUMNS = ["email", "display_name", "role", "country", "is_active"]


def upsert_user(conn: Connection, data: dict[str, Any], now: datetime) -> None:
    """
    Insert or refresh the local mirror of an identity-service user.

    Gateway references are never overwritten by a sync push; they are owned
    by this engine.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        data (dict): id, email, display_name, role, country, is_active.
        now (datetime): Timestamp for created_at/updated_at.
    """
    row = {
        "id": data["id"],
        "email": data["email"],
        "display_name": data["display_name"],
        "role": data["role"],
        "country": data.get("country"),
        "is_active": data.get("is_active", True),
        "created_at": now,
        "updated_at": now,
    }
    upsert_with_distinct_check(
        conn,
        User,
        [row],
        conflict_column="id",
        update_columns=USER_SYNC_COLUMNS,
    )
    logger.info("user_upserted", user_id=str(data["id"]), role=str(data["role"]))


def set_gateway_customer_ref(
    conn: Connection, user_id: UUID, customer_ref: str, now: datetime
) -> None:
    """
    Store the payment gateway customer reference for a paying user.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        user_id (UUID): User ID.
        customer_ref (str): Gateway customer reference.
        now (datetime): Timestamp for updated_at.
    """
    conn.execute(
        update(User)
        .where(User.id == user_id)
        .values(gateway_customer_ref=customer_ref, updated_at=now)
    )


def set_payout_account_ref(
    conn: Connection, user_id: UUID, account_ref: str, now: datetime
) -> None:
    """
    Store the payout destination (connect account) for a host.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        user_id (UUID): Host user ID.
        account_ref (str): Gateway connect account reference.
        now (datetime): Timestamp for updated_at.
    """
    conn.execute(
        update(User)
        .where(User.id == user_id)
        .values(payout_account_ref=account_ref, updated_at=now)
    )
