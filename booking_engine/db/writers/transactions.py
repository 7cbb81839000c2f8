from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from booking_engine.models.enums import TransactionStatus
from booking_engine.models.transactions import Transaction

logger = structlog.get_logger(__name__)


def insert_transaction(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a new ledger entry.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        row (dict): Fully populated transaction row.
    """
    conn.execute(insert(Transaction).values(row))


def update_transaction(
    conn: Connection,
    transaction_id: UUID,
    expected_status: TransactionStatus,
    now: datetime,
    **fields: Any,
) -> bool:
    """
    Update a ledger entry only if it is still in the expected status.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        transaction_id (UUID): Ledger entry ID.
        expected_status (TransactionStatus): Status the caller read.
        now (datetime): Timestamp for updated_at.
        **fields: Columns to set (status, gateway refs, notes).

    Returns:
        bool: True if the row was updated.
    """
    result = conn.execute(
        update(Transaction)
        .where(Transaction.id == transaction_id, Transaction.status == expected_status)
        .values(updated_at=now, **fields)
    )
    return result.rowcount == 1


def claim_matured_releases(
    conn: Connection, cutoff: datetime, now: datetime
) -> list[dict[str, Any]]:
    """
    Atomically flag every matured, unreleased COMPLETED entry as released.

    The filter and the flag flip are one UPDATE, so two concurrent runs can
    never both claim the same row: the second run's WHERE no longer matches.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        cutoff (datetime): Entries created at or before this instant are mature.
        now (datetime): Value written to released_at.

    Returns:
        list[dict]: The claimed rows (id, host_id, reservation_id, net_amount, currency).
    """
    result = conn.execute(
        update(Transaction)
        .where(
            Transaction.status == TransactionStatus.COMPLETED,
            Transaction.is_released.is_(False),
            Transaction.created_at <= cutoff,
        )
        .values(is_released=True, released_at=now, updated_at=now)
        .returning(
            Transaction.id,
            Transaction.host_id,
            Transaction.reservation_id,
            Transaction.net_amount,
            Transaction.currency,
            Transaction.created_at,
        )
    )
    claimed = [dict(row) for row in result.mappings()]
    logger.info("releases_claimed", count=len(claimed), cutoff=cutoff.isoformat())
    return claimed
