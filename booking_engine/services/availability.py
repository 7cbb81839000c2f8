"""
Host availability: declaration, retirement and expansion into concrete slots.

Expansion is a pure function of (records, range): it holds no iteration state
between calls, so the same inputs always produce the same ordered slot list.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy.engine import Engine

from booking_engine.config import MAX_AVAILABILITY_RANGE_DAYS
from booking_engine.db.readers.availability import get_availability, list_active_availability
from booking_engine.db.readers.users import get_user
from booking_engine.db.writers.availability import deactivate_availability, insert_availability
from booking_engine.errors import AuthorizationError, NotFoundError, ValidationError
from booking_engine.models.enums import RecurrenceKind, UserRole, Weekday
from booking_engine.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Slot:
    """A concrete, date-bound interval in which a host can be booked."""

    availability_id: UUID
    start_at: datetime
    end_at: datetime


def calendar_days(range_start: datetime, range_end: datetime) -> list[date]:
    """
    List the calendar days visited when stepping one day at a time from
    ``range_start`` while still before ``range_end``.

    Example:
        >>> calendar_days(datetime(2026, 3, 2, tzinfo=timezone.utc),
        ...               datetime(2026, 3, 4, tzinfo=timezone.utc))
        [datetime.date(2026, 3, 2), datetime.date(2026, 3, 3)]
    """
    days = []
    cursor = ensure_utc(range_start)
    end = ensure_utc(range_end)
    while cursor < end:
        days.append(cursor.date())
        cursor += timedelta(days=1)
    return days


def _project(record: dict[str, Any], day: date) -> Slot:
    # Keep the template's duration so windows that cross midnight stay intact
    template_start = ensure_utc(record["start_at"])
    duration = ensure_utc(record["end_at"]) - template_start
    start_at = datetime.combine(day, template_start.time(), tzinfo=timezone.utc)
    return Slot(availability_id=record["id"], start_at=start_at, end_at=start_at + duration)


def expand_availability(
    records: Iterable[dict[str, Any]],
    range_start: datetime,
    range_end: datetime,
) -> list[Slot]:
    """
    Expand availability records into concrete slots for a query range.

    ONCE records are returned verbatim when they lie fully inside the range
    (inclusive boundaries). DAILY records are projected onto every calendar day
    in the range; WEEKLY records only onto days whose weekday is declared.
    Inactive records never produce slots.

    Args:
        records: Availability rows (id, start_at, end_at, recurrence, days_of_week, is_active)
        range_start: Inclusive start of the query range
        range_end: End of the query range

    Returns:
        list[Slot]: Slots ordered by start, then end
    """
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    days = calendar_days(range_start, range_end)
    slots: list[Slot] = []

    for record in records:
        if not record.get("is_active", True):
            continue

        recurrence = RecurrenceKind(record["recurrence"])
        if recurrence is RecurrenceKind.ONCE:
            start_at = ensure_utc(record["start_at"])
            end_at = ensure_utc(record["end_at"])
            if start_at >= range_start and end_at <= range_end:
                slots.append(Slot(availability_id=record["id"], start_at=start_at, end_at=end_at))
        elif recurrence is RecurrenceKind.DAILY:
            slots.extend(_project(record, day) for day in days)
        elif recurrence is RecurrenceKind.WEEKLY:
            weekdays = {int(d) for d in record.get("days_of_week") or []}
            slots.extend(_project(record, day) for day in days if day.weekday() in weekdays)
        else:
            raise ValueError(f"Unhandled recurrence kind: {recurrence}")

    return sorted(slots, key=lambda slot: (slot.start_at, slot.end_at))


def _require_host(user: Optional[dict[str, Any]], host_id: UUID) -> dict[str, Any]:
    if user is None or user["role"] != UserRole.HOST:
        raise NotFoundError(f"Host {host_id} not found")
    return user


def create_availability(
    engine: Engine,
    host_id: UUID,
    start_at: datetime,
    end_at: datetime,
    recurrence: RecurrenceKind = RecurrenceKind.ONCE,
    days_of_week: Optional[Iterable[Weekday]] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Declare a new open window for a host.

    Args:
        engine: SQLAlchemy engine
        host_id: Host declaring the window
        start_at: Window start (template start for recurring kinds)
        end_at: Window end (template end for recurring kinds)
        recurrence: ONCE, DAILY or WEEKLY
        days_of_week: Weekdays the window applies to; required unless ONCE
        now: Reference time (defaults to current UTC time)

    Returns:
        dict: The stored availability row

    Raises:
        ValidationError: If end <= start or weekdays are missing for a recurring kind
        NotFoundError: If host_id is not an active host
    """
    now = now or utc_now()
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)

    if end_at <= start_at:
        raise ValidationError("End time must be after start time")

    weekdays = sorted({int(Weekday(d)) for d in days_of_week or []})
    if recurrence is not RecurrenceKind.ONCE and not weekdays:
        raise ValidationError("Days of week must be provided for recurring availability")

    row = {
        "id": uuid4(),
        "host_id": host_id,
        "start_at": start_at,
        "end_at": end_at,
        "recurrence": recurrence,
        "days_of_week": weekdays if recurrence is not RecurrenceKind.ONCE else None,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }

    with engine.begin() as conn:
        _require_host(get_user(conn, host_id), host_id)
        insert_availability(conn, row)

    logger.info(
        "availability_created",
        availability_id=str(row["id"]),
        host_id=str(host_id),
        recurrence=recurrence.value,
    )
    return row


def retire_availability(
    engine: Engine,
    availability_id: UUID,
    actor_id: UUID,
    now: Optional[datetime] = None,
) -> None:
    """
    Retire an availability record (soft delete via the active flag).

    Raises:
        NotFoundError: If the record does not exist
        AuthorizationError: If the actor is not the owning host
    """
    now = now or utc_now()
    with engine.begin() as conn:
        record = get_availability(conn, availability_id)
        if record is None:
            raise NotFoundError(f"Availability {availability_id} not found")
        if record["host_id"] != actor_id:
            raise AuthorizationError("Only the owning host can retire this availability")
        retired = deactivate_availability(conn, availability_id, now)

    logger.info("availability_retired", availability_id=str(availability_id), changed=retired)


def get_host_availability(
    engine: Engine,
    host_id: UUID,
    range_start: datetime,
    range_end: datetime,
) -> list[Slot]:
    """
    Return a host's concrete bookable slots within a bounded range.

    Raises:
        ValidationError: If the range is empty, reversed or wider than the configured maximum
        NotFoundError: If host_id is not an active host
    """
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    if range_end <= range_start:
        raise ValidationError("Range end must be after range start")
    if range_end - range_start > timedelta(days=MAX_AVAILABILITY_RANGE_DAYS):
        raise ValidationError(
            f"Availability range cannot exceed {MAX_AVAILABILITY_RANGE_DAYS} days"
        )

    with engine.connect() as conn:
        _require_host(get_user(conn, host_id), host_id)
        records = list_active_availability(conn, host_id)

    return expand_availability(records, range_start, range_end)
