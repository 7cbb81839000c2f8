"""
Test doubles and row factories shared across the suite.

Rows are inserted directly with SQLAlchemy Core so a test can start from any
state (a CONFIRMED reservation, an aged ledger entry) without replaying the
lifecycle that would normally produce it.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import insert
from sqlalchemy.engine import Engine

from booking_engine.errors import GatewayError
from booking_engine.models.availability import Availability
from booking_engine.models.enums import (
    NotificationChannel,
    NotificationKind,
    RecurrenceKind,
    ReservationStatus,
    TransactionKind,
    TransactionStatus,
    UserRole,
)
from booking_engine.models.reservations import Reservation
from booking_engine.models.transactions import Transaction
from booking_engine.models.users import User
from booking_engine.network.payments import IntentStatus, PaymentIntent

# Monday 2026-02-23 08:00 UTC
NOW = datetime(2026, 2, 23, 8, 0, tzinfo=timezone.utc)


def at(day: int, hour: int, minute: int = 0, month: int = 3) -> datetime:
    """Shorthand for a UTC instant in 2026 (March unless told otherwise)."""
    return datetime(2026, month, day, hour, minute, tzinfo=timezone.utc)


class FakeGateway:
    """In-memory ``PaymentGateway`` that records every call."""

    def __init__(self) -> None:
        self.customers: list[tuple[str, str]] = []
        self.accounts: list[tuple[str, str]] = []
        self.intents: dict[str, dict[str, Any]] = {}
        self.refunds: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise GatewayError(f"Payment gateway {operation} failed")

    def create_customer(self, email: str, name: str) -> str:
        self._maybe_fail("create_customer")
        self.customers.append((email, name))
        return f"cus_{len(self.customers)}"

    def create_connect_account(self, email: str, country: str) -> str:
        self._maybe_fail("create_connect_account")
        self.accounts.append((email, country))
        return f"acct_{len(self.accounts)}"

    def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        customer_ref: str,
        host_ref: str,
        description: str,
        fee_minor: int,
        idempotency_key: str,
    ) -> PaymentIntent:
        self._maybe_fail("create_payment_intent")
        intent_ref = f"pi_{len(self.intents) + 1}"
        self.intents[intent_ref] = {
            "amount_minor": amount_minor,
            "currency": currency,
            "customer_ref": customer_ref,
            "host_ref": host_ref,
            "description": description,
            "fee_minor": fee_minor,
            "idempotency_key": idempotency_key,
        }
        return PaymentIntent(intent_ref=intent_ref, client_secret=f"{intent_ref}_secret")

    def refund(self, intent_ref: str, idempotency_key: str) -> str:
        self._maybe_fail("refund")
        self.refunds.append((intent_ref, idempotency_key))
        return f"re_{len(self.refunds)}"

    def retrieve_intent(self, intent_ref: str) -> IntentStatus:
        self._maybe_fail("retrieve_intent")
        return IntentStatus(status="succeeded", charge_ref=f"ch_{intent_ref}")

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        if signature != "valid-signature":
            raise GatewayError("Invalid webhook signature")
        return json.loads(payload)


class FakeNotifier:
    """``Notifier`` that collects notifications instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        body: str,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        related_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        self.sent.append(
            {"user_id": user_id, "kind": kind, "title": title, "related_id": related_id}
        )

    def kinds_for(self, user_id: UUID) -> list[NotificationKind]:
        return [n["kind"] for n in self.sent if n["user_id"] == str(user_id)]


class FakeTokenAuthority:
    def __init__(self) -> None:
        self.minted: list[dict[str, Any]] = []

    def mint_token(self, channel: str, uid: int, role: str, expires_at: datetime) -> str:
        self.minted.append({"channel": channel, "uid": uid, "role": role, "expires_at": expires_at})
        return f"token-{channel}-{uid}"


def make_user(
    engine: Engine,
    role: UserRole,
    email: Optional[str] = None,
    **fields: Any,
) -> UUID:
    """Insert an active user and return its id."""
    user_id = uuid4()
    row = {
        "id": user_id,
        "email": email or f"{role.value}-{user_id.hex[:8]}@example.com",
        "display_name": f"Test {role.value.title()}",
        "role": role,
        "country": "ES",
        "is_active": True,
        "created_at": NOW - timedelta(days=30),
        "updated_at": NOW - timedelta(days=30),
        **fields,
    }
    with engine.begin() as conn:
        conn.execute(insert(User).values(row))
    return user_id


def make_availability(
    engine: Engine,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    recurrence: RecurrenceKind = RecurrenceKind.ONCE,
    days_of_week: Optional[list[int]] = None,
    is_active: bool = True,
) -> UUID:
    """Insert an availability record and return its id."""
    availability_id = uuid4()
    with engine.begin() as conn:
        conn.execute(
            insert(Availability).values(
                id=availability_id,
                host_id=host_id,
                start_at=start_at,
                end_at=end_at,
                recurrence=recurrence,
                days_of_week=days_of_week,
                is_active=is_active,
                created_at=NOW,
                updated_at=NOW,
            )
        )
    return availability_id


def make_reservation(
    engine: Engine,
    customer_id: UUID,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    amount: Decimal = Decimal("100.00"),
    **fields: Any,
) -> UUID:
    """Insert a reservation in any status, bypassing the lifecycle checks."""
    reservation_id = uuid4()
    with engine.begin() as conn:
        conn.execute(
            insert(Reservation).values(
                id=reservation_id,
                customer_id=customer_id,
                host_id=host_id,
                start_at=start_at,
                end_at=end_at,
                status=status,
                amount=amount,
                is_rescheduled=False,
                created_at=NOW,
                updated_at=NOW,
                **fields,
            )
        )
    return reservation_id


def make_transaction(
    engine: Engine,
    customer_id: UUID,
    host_id: UUID,
    reservation_id: Optional[UUID] = None,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    created_at: datetime = NOW,
    gateway_intent_ref: Optional[str] = None,
    is_released: bool = False,
) -> UUID:
    """Insert a 100.00 EUR payment entry with the default 10% / 21% split."""
    transaction_id = uuid4()
    with engine.begin() as conn:
        conn.execute(
            insert(Transaction).values(
                id=transaction_id,
                kind=TransactionKind.PAYMENT,
                status=status,
                customer_id=customer_id,
                host_id=host_id,
                reservation_id=reservation_id,
                amount=Decimal("100.00"),
                commission_amount=Decimal("10.00"),
                vat_amount=Decimal("2.10"),
                net_amount=Decimal("87.90"),
                currency="EUR",
                gateway_intent_ref=gateway_intent_ref,
                is_released=is_released,
                created_at=created_at,
                updated_at=created_at,
            )
        )
    return transaction_id


def as_user(user_id: UUID) -> dict[str, str]:
    """Request headers identifying the caller."""
    return {"X-User-Id": str(user_id)}
