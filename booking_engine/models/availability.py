"""SQLAlchemy model for host-declared availability windows."""

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, Enum, ForeignKey, Uuid, text

from booking_engine.models.base import Base, UTCDateTime
from booking_engine.models.enums import RecurrenceKind, enum_column_values


class Availability(Base):
    """
    ORM model for an open window a host can be booked in.

    For ONCE windows start_at/end_at are the concrete interval. For DAILY and
    WEEKLY windows they act as a template: only the time of day and the
    duration are projected onto each matching calendar day. days_of_week holds
    ``Weekday`` integers and is required for recurring kinds.
    """

    __tablename__ = "availabilities"
    __table_args__ = (CheckConstraint("start_at < end_at", name="ck_availabilities_interval"),)

    id = Column(Uuid, primary_key=True)
    host_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    recurrence = Column(
        Enum(RecurrenceKind, name="recurrence_kind", values_callable=enum_column_values),
        nullable=False,
    )
    days_of_week = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("TRUE"))
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)
