"""SQLAlchemy model mirroring user records owned by the identity service."""

from sqlalchemy import Boolean, Column, Enum, String, Uuid, text

from booking_engine.models.base import Base, UTCDateTime
from booking_engine.models.enums import UserRole, enum_column_values


class User(Base):
    """
    ORM model for customers, hosts and admins.

    Rows are pushed here by the identity service; this engine only adds the
    payment gateway references it needs (customer ref for payers, payout
    account ref for hosts). Users are retired with is_active rather than deleted.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=enum_column_values),
        nullable=False,
    )
    country = Column(String(2), nullable=True)
    gateway_customer_ref = Column(String(255), nullable=True)
    payout_account_ref = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("TRUE"))
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)
