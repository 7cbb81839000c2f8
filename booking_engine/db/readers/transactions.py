from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Connection

from booking_engine.models.enums import TransactionKind, TransactionStatus
from booking_engine.models.transactions import Transaction


def get_transaction(
    conn: Connection, transaction_id: UUID, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a ledger entry by id.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        transaction_id (UUID): Ledger entry ID.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict]: Transaction row or None.
    """
    stmt = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def get_by_intent_ref(
    conn: Connection, intent_ref: str, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch the ledger entry created for a gateway payment intent.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        intent_ref (str): Gateway payment intent reference.
        for_update (bool): Lock the row until the surrounding transaction ends.

    Returns:
        Optional[dict]: Transaction row or None.
    """
    stmt = select(Transaction).where(Transaction.gateway_intent_ref == intent_ref)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row else None


def find_active_payment(conn: Connection, reservation_id: UUID) -> Optional[dict[str, Any]]:
    """
    Find a PENDING or COMPLETED payment already recorded for a reservation.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.

    Returns:
        Optional[dict]: The active payment entry, if any.
    """
    row = (
        conn.execute(
            select(Transaction).where(
                Transaction.reservation_id == reservation_id,
                Transaction.kind == TransactionKind.PAYMENT,
                Transaction.status.in_([TransactionStatus.PENDING, TransactionStatus.COMPLETED]),
            )
        )
        .mappings()
        .first()
    )
    return dict(row) if row else None


def list_for_user(conn: Connection, user_id: UUID) -> list[dict[str, Any]]:
    """List entries where the user is either the payer or the payee, newest first."""
    result = conn.execute(
        select(Transaction)
        .where(or_(Transaction.customer_id == user_id, Transaction.host_id == user_id))
        .order_by(Transaction.created_at.desc())
    )
    return [dict(row) for row in result.mappings()]


def list_all(conn: Connection) -> list[dict[str, Any]]:
    """List every ledger entry, newest first."""
    result = conn.execute(select(Transaction).order_by(Transaction.created_at.desc()))
    return [dict(row) for row in result.mappings()]


def get_completed_totals(conn: Connection) -> dict[str, Any]:
    """
    Aggregate COMPLETED entries for admin reporting.

    Returns:
        dict: count plus gross, commission and VAT sums (Decimal, zero when empty).
    """
    row = (
        conn.execute(
            select(
                func.count(Transaction.id).label("count"),
                func.sum(Transaction.amount).label("amount"),
                func.sum(Transaction.commission_amount).label("commission"),
                func.sum(Transaction.vat_amount).label("vat"),
            ).where(Transaction.status == TransactionStatus.COMPLETED)
        )
        .mappings()
        .one()
    )
    return {
        "count": int(row["count"] or 0),
        "amount": Decimal(row["amount"] or 0),
        "commission": Decimal(row["commission"] or 0),
        "vat": Decimal(row["vat"] or 0),
    }
