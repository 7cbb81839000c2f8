"""SQLAlchemy model for escrow ledger entries."""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Index, Numeric, String, Text, Uuid, text

from booking_engine.models.base import Base, UTCDateTime
from booking_engine.models.enums import TransactionKind, TransactionStatus, enum_column_values


class Transaction(Base):
    """
    ORM model for one escrow ledger entry.

    Amounts obey ``commission = gross * commission_rate``,
    ``vat = commission * vat_rate`` and ``net = gross - commission - vat``,
    each rounded to 2 decimals. Gateway references are opaque strings issued
    by the payment gateway. is_released/released_at are set by the settlement
    run once the entry has matured past the retention window.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_release_scan", "status", "is_released", "created_at"),
    )

    id = Column(Uuid, primary_key=True)
    kind = Column(
        Enum(TransactionKind, name="transaction_kind", values_callable=enum_column_values),
        nullable=False,
    )
    status = Column(
        Enum(TransactionStatus, name="transaction_status", values_callable=enum_column_values),
        nullable=False,
    )
    customer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    host_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    reservation_id = Column(Uuid, nullable=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    commission_amount = Column(Numeric(10, 2), nullable=False)
    vat_amount = Column(Numeric(10, 2), nullable=False)
    net_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    gateway_intent_ref = Column(String(255), nullable=True, unique=True)
    gateway_charge_ref = Column(String(255), nullable=True)
    gateway_transfer_ref = Column(String(255), nullable=True)
    is_released = Column(Boolean, nullable=False, server_default=text("FALSE"))
    released_at = Column(UTCDateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)
