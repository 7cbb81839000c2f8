"""Closed enumerations shared by models, services and schemas."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    HOST = "host"
    ADMIN = "admin"


class RecurrenceKind(str, enum.Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"


class Weekday(enum.IntEnum):
    """Day of week using ``date.weekday()`` numbering (Monday is 0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class TransactionKind(str, enum.Enum):
    PAYMENT = "payment"
    PAYOUT = "payout"
    REFUND = "refund"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationKind(str, enum.Enum):
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_UPDATED = "reservation_updated"
    RESERVATION_CANCELLED = "reservation_cancelled"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_RELEASED = "payment_released"


class NotificationChannel(str, enum.Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


def enum_column_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum *values* (``"pending"``) rather than member names."""
    return [str(member.value) for member in enum_cls]
