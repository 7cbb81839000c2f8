"""SQLAlchemy model for reservations (booked sessions)."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)

from booking_engine.models.base import Base, UTCDateTime
from booking_engine.models.enums import ReservationStatus, enum_column_values


class Reservation(Base):
    """
    ORM model for a customer's booking of one host interval.

    transaction_id links to the ledger entry that paid for the session; it is a
    plain id, not a foreign key, because the ledger is a separate aggregate.
    A reservation created by reschedule carries original_reservation_id and
    is_rescheduled=True.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_reservations_interval"),
        Index("ix_reservations_host_window", "host_id", "status", "start_at", "end_at"),
    )

    id = Column(Uuid, primary_key=True)
    customer_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    host_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(
        Enum(ReservationStatus, name="reservation_status", values_callable=enum_column_values),
        nullable=False,
    )
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(Uuid, nullable=True)
    cancellation_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    is_rescheduled = Column(Boolean, nullable=False, server_default=text("FALSE"))
    original_reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)
