"""
Escrow ledger: payment intents, capture, failure, refunds and reporting.

Ledger entries reference reservations by id only. Gateway calls never run
while a database transaction is open: the entry is written first, the
gateway is called, and the outcome is written in a second short transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy.engine import Engine

from booking_engine.config import COMMISSION_RATE, CURRENCY, VAT_RATE
from booking_engine.db.readers import transactions as transaction_reader
from booking_engine.db.readers.reservations import get_reservation
from booking_engine.db.readers.users import get_user
from booking_engine.db.writers.transactions import insert_transaction, update_transaction
from booking_engine.db.writers.users import set_gateway_customer_ref, set_payout_account_ref
from booking_engine.errors import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from booking_engine.metrics import escrow_entries
from booking_engine.models.enums import (
    ReservationStatus,
    TransactionKind,
    TransactionStatus,
    UserRole,
)
from booking_engine.network.payments import PaymentGateway
from booking_engine.utils.datetime import utc_now
from booking_engine.utils.money import split_gross, to_minor_units

logger = structlog.get_logger(__name__)


def _load(engine: Engine, transaction_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        entry = transaction_reader.get_transaction(conn, transaction_id)
    if entry is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return entry


def _mark_failed(engine: Engine, entry_id: UUID, note: str, now: datetime) -> None:
    with engine.begin() as conn:
        update_transaction(
            conn, entry_id, TransactionStatus.PENDING, now,
            status=TransactionStatus.FAILED, notes=note,
        )
    escrow_entries.labels(status=TransactionStatus.FAILED.value).inc()


def create_payment_intent(
    engine: Engine,
    gateway: PaymentGateway,
    customer_id: UUID,
    host_id: UUID,
    gross: Decimal,
    reservation_id: UUID,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Open a held payment for a PENDING reservation.

    A PENDING ledger entry carrying the commission/VAT/net split is written
    before the gateway is contacted. The entry id doubles as the gateway
    idempotency key, so a retried request cannot create a second charge. If
    any step after the insert fails the entry is marked FAILED and the error
    is re-raised, so the customer can retry.

    Args:
        engine: SQLAlchemy engine
        gateway: Payment gateway adapter
        customer_id: Paying customer
        host_id: Receiving host
        gross: Amount charged to the customer
        reservation_id: Reservation being paid for
        description: Free text shown on the customer's statement
        now: Reference time (defaults to current UTC time)

    Returns:
        dict: ``client_secret`` for the client SDK and the ledger ``transaction_id``

    Raises:
        ValidationError: Non-positive amount, host mismatch or no payout account
        NotFoundError: Unknown customer, host or reservation
        AuthorizationError: Reservation belongs to another customer
        ConflictError: Reservation not PENDING, or already has an active payment
        GatewayError: The gateway rejected or failed the request
    """
    now = now or utc_now()
    gross = Decimal(gross)
    if gross <= 0:
        raise ValidationError("Amount must be greater than zero")

    split = split_gross(gross, COMMISSION_RATE, VAT_RATE)
    entry_id = uuid4()

    with engine.begin() as conn:
        customer = get_user(conn, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        host = get_user(conn, host_id)
        if host is None or host["role"] != UserRole.HOST:
            raise NotFoundError(f"Host {host_id} not found")

        reservation = get_reservation(conn, reservation_id, for_update=True)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        if reservation["customer_id"] != customer_id:
            raise AuthorizationError("Reservation belongs to another customer")
        if reservation["host_id"] != host_id:
            raise ValidationError("Reservation is not with this host")
        if reservation["status"] != ReservationStatus.PENDING:
            raise ConflictError("Only pending reservations can be paid")

        if not host["payout_account_ref"]:
            raise ValidationError("Host payout account is not set up")
        if transaction_reader.find_active_payment(conn, reservation_id) is not None:
            raise ConflictError("Reservation already has an active payment")

        insert_transaction(
            conn,
            {
                "id": entry_id,
                "kind": TransactionKind.PAYMENT,
                "status": TransactionStatus.PENDING,
                "customer_id": customer_id,
                "host_id": host_id,
                "reservation_id": reservation_id,
                "amount": split.gross,
                "commission_amount": split.commission,
                "vat_amount": split.vat,
                "net_amount": split.net,
                "currency": CURRENCY,
                "is_released": False,
                "created_at": now,
                "updated_at": now,
            },
        )
    escrow_entries.labels(status=TransactionStatus.PENDING.value).inc()

    try:
        customer_ref = customer["gateway_customer_ref"]
        if not customer_ref:
            customer_ref = gateway.create_customer(customer["email"], customer["display_name"])
            with engine.begin() as conn:
                set_gateway_customer_ref(conn, customer_id, customer_ref, now)

        intent = gateway.create_payment_intent(
            amount_minor=to_minor_units(split.gross),
            currency=CURRENCY,
            customer_ref=customer_ref,
            host_ref=host["payout_account_ref"],
            description=description or f"Reservation {reservation_id}",
            fee_minor=to_minor_units(split.application_fee),
            idempotency_key=f"payment-intent-{entry_id}",
        )

        with engine.begin() as conn:
            update_transaction(
                conn, entry_id, TransactionStatus.PENDING, now,
                gateway_intent_ref=intent.intent_ref,
            )
    except GatewayError as e:
        _mark_failed(engine, entry_id, e.message, now)
        logger.error(
            "payment_intent_failed",
            transaction_id=str(entry_id),
            reservation_id=str(reservation_id),
            error=e.message,
        )
        raise
    except Exception as e:
        # Never leave a PENDING entry without an intent ref
        _mark_failed(engine, entry_id, str(e) or type(e).__name__, now)
        logger.exception(
            "payment_intent_failed",
            transaction_id=str(entry_id),
            reservation_id=str(reservation_id),
            error=str(e),
        )
        raise

    logger.info(
        "payment_intent_created",
        transaction_id=str(entry_id),
        reservation_id=str(reservation_id),
        gross=str(split.gross),
        commission=str(split.commission),
        vat=str(split.vat),
        net=str(split.net),
    )
    return {"client_secret": intent.client_secret, "transaction_id": entry_id}


def on_capture_confirmed(
    engine: Engine,
    gateway: PaymentGateway,
    intent_ref: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Record a successful capture reported by the gateway.

    The charge reference is read back from the gateway. A capture for an
    entry that already left PENDING/FAILED (a replayed webhook) changes
    nothing and returns the entry as stored. FAILED entries are captured
    too: a failure event reports one declined attempt, and the customer may
    retry the same intent, whose later success is final.

    Returns:
        dict: The ledger entry after the update

    Raises:
        NotFoundError: No entry matches the intent reference
    """
    now = now or utc_now()

    with engine.connect() as conn:
        entry = transaction_reader.get_by_intent_ref(conn, intent_ref)
    if entry is None:
        raise NotFoundError(f"Transaction with payment intent {intent_ref} not found")

    if entry["status"] not in (TransactionStatus.PENDING, TransactionStatus.FAILED):
        logger.info(
            "capture_replay_ignored",
            transaction_id=str(entry["id"]),
            status=entry["status"].value,
        )
        return entry

    intent_status = gateway.retrieve_intent(intent_ref)

    with engine.begin() as conn:
        captured = update_transaction(
            conn, entry["id"], entry["status"], now,
            status=TransactionStatus.COMPLETED,
            gateway_charge_ref=intent_status.charge_ref,
        )
        entry = transaction_reader.get_transaction(conn, entry["id"])

    if captured:
        escrow_entries.labels(status=TransactionStatus.COMPLETED.value).inc()
        logger.info(
            "escrow_captured",
            transaction_id=str(entry["id"]),
            reservation_id=str(entry["reservation_id"]),
            charge_ref=intent_status.charge_ref,
        )
    return entry


def on_payment_failed(
    engine: Engine,
    intent_ref: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Record a failed payment attempt (PENDING -> FAILED). The customer may retry.

    Raises:
        NotFoundError: No entry matches the intent reference
    """
    now = now or utc_now()

    with engine.begin() as conn:
        entry = transaction_reader.get_by_intent_ref(conn, intent_ref, for_update=True)
        if entry is None:
            raise NotFoundError(f"Transaction with payment intent {intent_ref} not found")
        failed = update_transaction(
            conn, entry["id"], TransactionStatus.PENDING, now,
            status=TransactionStatus.FAILED, notes=reason,
        )
        entry = transaction_reader.get_transaction(conn, entry["id"])

    if failed:
        escrow_entries.labels(status=TransactionStatus.FAILED.value).inc()
        logger.warning(
            "payment_failed",
            transaction_id=str(entry["id"]),
            reservation_id=str(entry["reservation_id"]),
            reason=reason,
        )
    return entry


def refund(
    engine: Engine,
    gateway: PaymentGateway,
    transaction_id: UUID,
    reason: str,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Refund a COMPLETED entry through the gateway and mark it REFUNDED.

    Refunds do not touch the linked reservation.

    Args:
        engine: SQLAlchemy engine
        gateway: Payment gateway adapter
        transaction_id: Ledger entry to refund
        reason: Stored in the entry's notes
        now: Reference time (defaults to current UTC time)

    Returns:
        dict: The refunded entry

    Raises:
        NotFoundError: Unknown entry
        ValidationError: Entry is not COMPLETED or has no intent reference
        ConflictError: Entry changed status while the refund was in flight
        GatewayError: The gateway refused the refund
    """
    now = now or utc_now()
    entry = _load(engine, transaction_id)

    if entry["status"] != TransactionStatus.COMPLETED:
        raise ValidationError("Only completed transactions can be refunded")
    if not entry["gateway_intent_ref"]:
        raise ValidationError("Transaction has no associated payment intent")

    refund_ref = gateway.refund(entry["gateway_intent_ref"], idempotency_key=f"refund-{transaction_id}")

    with engine.begin() as conn:
        refunded = update_transaction(
            conn, transaction_id, TransactionStatus.COMPLETED, now,
            status=TransactionStatus.REFUNDED, notes=reason,
        )
        if not refunded:
            raise ConflictError("Transaction was modified by another request")
        entry = transaction_reader.get_transaction(conn, transaction_id)

    escrow_entries.labels(status=TransactionStatus.REFUNDED.value).inc()
    logger.info(
        "escrow_refunded",
        transaction_id=str(transaction_id),
        refund_ref=refund_ref,
        reason=reason,
    )
    return entry


def get_transaction_for(
    engine: Engine, transaction_id: UUID, actor: dict[str, Any]
) -> dict[str, Any]:
    """
    Fetch a ledger entry visible to ``actor`` (payer, payee or admin).

    Raises:
        NotFoundError: Unknown entry
        AuthorizationError: Actor may not see it
    """
    entry = _load(engine, transaction_id)
    if actor["role"] != UserRole.ADMIN and actor["id"] not in (
        entry["customer_id"],
        entry["host_id"],
    ):
        raise AuthorizationError("You are not a party to this transaction")
    return entry


def list_for_user(engine: Engine, user_id: UUID) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return transaction_reader.list_for_user(conn, user_id)


def list_all(engine: Engine) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return transaction_reader.list_all(conn)


def get_stats(engine: Engine) -> dict[str, Any]:
    """
    Totals over COMPLETED entries.

    Returns:
        dict: total_transactions, total_amount, total_commission, total_vat and
        total_revenue (commission plus VAT)
    """
    with engine.connect() as conn:
        totals = transaction_reader.get_completed_totals(conn)
    return {
        "total_transactions": totals["count"],
        "total_amount": totals["amount"],
        "total_commission": totals["commission"],
        "total_vat": totals["vat"],
        "total_revenue": totals["commission"] + totals["vat"],
    }


def register_payout_account(
    engine: Engine,
    gateway: PaymentGateway,
    host_id: UUID,
    country: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a connect account for a host and store it as their payout destination.

    Returns:
        str: The gateway account reference

    Raises:
        NotFoundError: host_id is not an active host
        ConflictError: The host already has a payout account
        GatewayError: The gateway refused to create the account
    """
    now = now or utc_now()

    with engine.connect() as conn:
        host = get_user(conn, host_id)
    if host is None or host["role"] != UserRole.HOST:
        raise NotFoundError(f"Host {host_id} not found")
    if host["payout_account_ref"]:
        raise ConflictError("Host already has a payout account")

    account_ref = gateway.create_connect_account(host["email"], country)
    with engine.begin() as conn:
        set_payout_account_ref(conn, host_id, account_ref, now)

    logger.info("payout_account_registered", host_id=str(host_id), account_ref=account_ref)
    return account_ref
