"""
Integration tests for the escrow ledger with a recording payment gateway.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.engine import Engine

from booking_engine.db.readers.reservations import get_reservation
from booking_engine.db.readers.transactions import get_transaction
from booking_engine.db.readers.users import get_user
from booking_engine.errors import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from booking_engine.models.enums import (
    ReservationStatus,
    TransactionKind,
    TransactionStatus,
    UserRole,
)
from booking_engine.services import escrow
from factories import NOW, FakeGateway, at, make_reservation, make_transaction, make_user


@pytest.fixture
def pending_reservation(db_engine: Engine, customer_id: UUID, host_id: UUID) -> UUID:
    return make_reservation(
        db_engine, customer_id, host_id, at(4, 10), at(4, 11), status=ReservationStatus.PENDING
    )


def _entry(engine: Engine, transaction_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        row = get_transaction(conn, transaction_id)
    assert row is not None
    return row


def _open_intent(
    engine: Engine, gateway: FakeGateway, customer_id: UUID, host_id: UUID, reservation_id: UUID
) -> dict[str, Any]:
    return escrow.create_payment_intent(
        engine, gateway, customer_id, host_id, Decimal("100.00"), reservation_id, now=NOW
    )


# =============================================================================
# Payment intents
# =============================================================================


@pytest.mark.integration
def test_create_intent_records_split_and_calls_gateway(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    """Test the PENDING entry, the gateway request and the stored customer ref."""
    result = _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    assert result["client_secret"] == "pi_1_secret"
    entry = _entry(db_engine, result["transaction_id"])
    assert entry["kind"] is TransactionKind.PAYMENT
    assert entry["status"] is TransactionStatus.PENDING
    assert entry["amount"] == Decimal("100.00")
    assert entry["commission_amount"] == Decimal("10.00")
    assert entry["vat_amount"] == Decimal("2.10")
    assert entry["net_amount"] == Decimal("87.90")
    assert entry["currency"] == "EUR"
    assert entry["gateway_intent_ref"] == "pi_1"
    assert entry["is_released"] is False

    sent = gateway.intents["pi_1"]
    assert sent["amount_minor"] == 10000
    assert sent["fee_minor"] == 1210
    assert sent["host_ref"] == "acct_host"
    assert sent["customer_ref"] == "cus_1"
    assert sent["idempotency_key"] == f"payment-intent-{result['transaction_id']}"

    with db_engine.connect() as conn:
        assert get_user(conn, customer_id)["gateway_customer_ref"] == "cus_1"


@pytest.mark.integration
def test_gateway_customer_created_once(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
) -> None:
    """Test that a second payment reuses the stored gateway customer."""
    for day in (4, 11):
        reservation_id = make_reservation(
            db_engine, customer_id, host_id, at(day, 10), at(day, 11),
            status=ReservationStatus.PENDING,
        )
        _open_intent(db_engine, gateway, customer_id, host_id, reservation_id)

    assert len(gateway.customers) == 1
    assert {i["customer_ref"] for i in gateway.intents.values()} == {"cus_1"}


@pytest.mark.integration
def test_second_active_payment_conflicts(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    with pytest.raises(ConflictError, match="active payment"):
        _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    assert len(gateway.intents) == 1


@pytest.mark.integration
def test_gateway_failure_marks_entry_failed_and_allows_retry(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    """Test that a failed intent leaves a FAILED entry and the customer can retry."""
    gateway.fail_on.add("create_payment_intent")

    with pytest.raises(GatewayError):
        _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    entries = escrow.list_for_user(db_engine, customer_id)
    assert [e["status"] for e in entries] == [TransactionStatus.FAILED]
    assert entries[0]["notes"] == "Payment gateway create_payment_intent failed"

    gateway.fail_on.clear()
    result = _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)
    assert _entry(db_engine, result["transaction_id"])["status"] is TransactionStatus.PENDING


@pytest.mark.integration
def test_unexpected_sdk_error_marks_entry_failed_and_allows_retry(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    """Test that errors outside GatewayError do not leave a PENDING entry behind."""
    with patch.object(
        gateway, "create_payment_intent", side_effect=RuntimeError("connection reset")
    ):
        with pytest.raises(RuntimeError, match="connection reset"):
            _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    entries = escrow.list_for_user(db_engine, customer_id)
    assert [(e["status"], e["gateway_intent_ref"]) for e in entries] == [
        (TransactionStatus.FAILED, None)
    ]
    assert entries[0]["notes"] == "connection reset"

    result = _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)
    assert _entry(db_engine, result["transaction_id"])["gateway_intent_ref"] == "pi_1"


@pytest.mark.integration
def test_database_error_after_insert_marks_entry_failed(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    with patch(
        "booking_engine.services.escrow.set_gateway_customer_ref",
        side_effect=RuntimeError("database is locked"),
    ):
        with pytest.raises(RuntimeError):
            _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    entries = escrow.list_for_user(db_engine, customer_id)
    assert [e["status"] for e in entries] == [TransactionStatus.FAILED]

    result = _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)
    assert _entry(db_engine, result["transaction_id"])["status"] is TransactionStatus.PENDING


@pytest.mark.integration
def test_host_without_payout_account(
    db_engine: Engine, gateway: FakeGateway, customer_id: UUID
) -> None:
    bare_host = make_user(db_engine, UserRole.HOST)
    reservation_id = make_reservation(
        db_engine, customer_id, bare_host, at(4, 10), at(4, 11), status=ReservationStatus.PENDING
    )

    with pytest.raises(ValidationError, match="payout account"):
        _open_intent(db_engine, gateway, customer_id, bare_host, reservation_id)

    assert escrow.list_for_user(db_engine, customer_id) == []


@pytest.mark.integration
def test_intent_guards(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    other_customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    """Test amount, ownership, host and status checks before any gateway call."""
    with pytest.raises(ValidationError, match="greater than zero"):
        escrow.create_payment_intent(
            db_engine, gateway, customer_id, host_id, Decimal("0"), pending_reservation, now=NOW
        )

    with pytest.raises(AuthorizationError):
        _open_intent(db_engine, gateway, other_customer_id, host_id, pending_reservation)

    other_host = make_user(db_engine, UserRole.HOST, payout_account_ref="acct_other")
    with pytest.raises(ValidationError, match="not with this host"):
        _open_intent(db_engine, gateway, customer_id, other_host, pending_reservation)

    with pytest.raises(NotFoundError):
        _open_intent(db_engine, gateway, customer_id, host_id, uuid4())

    confirmed = make_reservation(db_engine, customer_id, host_id, at(11, 10), at(11, 11))
    with pytest.raises(ConflictError, match="pending"):
        _open_intent(db_engine, gateway, customer_id, host_id, confirmed)

    assert gateway.intents == {}


# =============================================================================
# Capture, failure and refund
# =============================================================================


@pytest.mark.integration
def test_capture_completes_entry_and_replay_is_noop(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    result = _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    entry = escrow.on_capture_confirmed(db_engine, gateway, "pi_1", now=NOW)

    assert entry["status"] is TransactionStatus.COMPLETED
    assert entry["gateway_charge_ref"] == "ch_pi_1"

    # A replayed capture must not hit the gateway again
    gateway.fail_on.add("retrieve_intent")
    replay = escrow.on_capture_confirmed(db_engine, gateway, "pi_1", now=NOW)
    assert replay["id"] == result["transaction_id"]
    assert replay["status"] is TransactionStatus.COMPLETED


@pytest.mark.integration
def test_capture_unknown_intent(db_engine: Engine, gateway: FakeGateway) -> None:
    with pytest.raises(NotFoundError):
        escrow.on_capture_confirmed(db_engine, gateway, "pi_missing", now=NOW)


@pytest.mark.integration
def test_payment_failed_moves_pending_to_failed(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)

    entry = escrow.on_payment_failed(db_engine, "pi_1", reason="Card declined", now=NOW)

    assert entry["status"] is TransactionStatus.FAILED
    assert entry["notes"] == "Card declined"


@pytest.mark.integration
def test_capture_after_declined_attempt_completes_entry(
    db_engine: Engine,
    gateway: FakeGateway,
    customer_id: UUID,
    host_id: UUID,
    pending_reservation: UUID,
) -> None:
    """Test that a retried intent succeeding after a decline is captured."""
    _open_intent(db_engine, gateway, customer_id, host_id, pending_reservation)
    escrow.on_payment_failed(db_engine, "pi_1", reason="Card declined", now=NOW)

    entry = escrow.on_capture_confirmed(db_engine, gateway, "pi_1", now=NOW)

    assert entry["status"] is TransactionStatus.COMPLETED


@pytest.mark.integration
def test_refund_completed_entry_leaves_reservation_alone(
    db_engine: Engine, gateway: FakeGateway, customer_id: UUID, host_id: UUID
) -> None:
    reservation_id = make_reservation(db_engine, customer_id, host_id, at(4, 10), at(4, 11))
    transaction_id = make_transaction(
        db_engine, customer_id, host_id, reservation_id, gateway_intent_ref="pi_77"
    )

    entry = escrow.refund(db_engine, gateway, transaction_id, "Customer complaint", now=NOW)

    assert entry["status"] is TransactionStatus.REFUNDED
    assert entry["notes"] == "Customer complaint"
    assert gateway.refunds == [("pi_77", f"refund-{transaction_id}")]
    with db_engine.connect() as conn:
        assert get_reservation(conn, reservation_id)["status"] is ReservationStatus.CONFIRMED


@pytest.mark.integration
def test_refund_requires_completed_entry(
    db_engine: Engine, gateway: FakeGateway, customer_id: UUID, host_id: UUID
) -> None:
    pending = make_transaction(
        db_engine, customer_id, host_id, status=TransactionStatus.PENDING, gateway_intent_ref="pi_1"
    )
    no_intent = make_transaction(db_engine, customer_id, host_id)

    with pytest.raises(ValidationError, match="Only completed"):
        escrow.refund(db_engine, gateway, pending, "reason", now=NOW)
    with pytest.raises(ValidationError, match="no associated payment intent"):
        escrow.refund(db_engine, gateway, no_intent, "reason", now=NOW)
    with pytest.raises(NotFoundError):
        escrow.refund(db_engine, gateway, uuid4(), "reason", now=NOW)

    assert gateway.refunds == []


@pytest.mark.integration
def test_refund_gateway_failure_keeps_entry_completed(
    db_engine: Engine, gateway: FakeGateway, customer_id: UUID, host_id: UUID
) -> None:
    transaction_id = make_transaction(db_engine, customer_id, host_id, gateway_intent_ref="pi_5")
    gateway.fail_on.add("refund")

    with pytest.raises(GatewayError):
        escrow.refund(db_engine, gateway, transaction_id, "reason", now=NOW)

    assert _entry(db_engine, transaction_id)["status"] is TransactionStatus.COMPLETED


# =============================================================================
# Reporting and payout accounts
# =============================================================================


@pytest.mark.integration
def test_stats_cover_completed_entries_only(
    db_engine: Engine, customer_id: UUID, host_id: UUID
) -> None:
    make_transaction(db_engine, customer_id, host_id)
    make_transaction(db_engine, customer_id, host_id)
    make_transaction(db_engine, customer_id, host_id, status=TransactionStatus.PENDING)
    make_transaction(db_engine, customer_id, host_id, status=TransactionStatus.REFUNDED)

    stats = escrow.get_stats(db_engine)

    assert stats["total_transactions"] == 2
    assert stats["total_amount"] == Decimal("200.00")
    assert stats["total_commission"] == Decimal("20.00")
    assert stats["total_vat"] == Decimal("4.20")
    assert stats["total_revenue"] == Decimal("24.20")


@pytest.mark.integration
def test_stats_on_empty_ledger(db_engine: Engine) -> None:
    stats = escrow.get_stats(db_engine)

    assert stats["total_transactions"] == 0
    assert stats["total_revenue"] == Decimal("0")


@pytest.mark.integration
def test_transaction_visibility(
    db_engine: Engine, customer_id: UUID, other_customer_id: UUID, host_id: UUID
) -> None:
    transaction_id = make_transaction(db_engine, customer_id, host_id)

    payee = {"id": host_id, "role": UserRole.HOST}
    stranger = {"id": other_customer_id, "role": UserRole.CUSTOMER}

    assert escrow.get_transaction_for(db_engine, transaction_id, payee)["id"] == transaction_id
    with pytest.raises(AuthorizationError):
        escrow.get_transaction_for(db_engine, transaction_id, stranger)
    assert [e["id"] for e in escrow.list_for_user(db_engine, host_id)] == [transaction_id]


@pytest.mark.integration
def test_register_payout_account(
    db_engine: Engine, gateway: FakeGateway, customer_id: UUID
) -> None:
    new_host = make_user(db_engine, UserRole.HOST, email="new-host@example.com")

    account_ref = escrow.register_payout_account(db_engine, gateway, new_host, "ES", now=NOW)

    assert account_ref == "acct_1"
    assert gateway.accounts == [("new-host@example.com", "ES")]
    with db_engine.connect() as conn:
        assert get_user(conn, new_host)["payout_account_ref"] == "acct_1"

    with pytest.raises(ConflictError):
        escrow.register_payout_account(db_engine, gateway, new_host, "ES", now=NOW)
    with pytest.raises(NotFoundError):
        escrow.register_payout_account(db_engine, gateway, customer_id, "ES", now=NOW)
