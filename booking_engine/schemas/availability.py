from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.models.enums import RecurrenceKind, Weekday


class AvailabilityCreatePayload(BaseModel):
    """
    Schema for declaring a host availability window.

    For DAILY and WEEKLY recurrence the start/end times of day are reused on
    every matching calendar day (UTC).
    """

    start_at: datetime = Field(..., description="Window start (template start when recurring)")
    end_at: datetime = Field(..., description="Window end (template end when recurring)")
    recurrence: RecurrenceKind = Field(RecurrenceKind.ONCE, description="once, daily or weekly")
    days_of_week: Optional[list[Weekday]] = Field(
        None, description="Weekdays (0=Monday .. 6=Sunday); required unless once"
    )


class AvailabilityOut(BaseModel):
    id: UUID
    host_id: UUID
    start_at: datetime
    end_at: datetime
    recurrence: RecurrenceKind
    days_of_week: Optional[list[int]] = None
    is_active: bool


class SlotOut(BaseModel):
    """A concrete bookable interval produced by expanding availability."""

    availability_id: UUID
    start_at: datetime
    end_at: datetime
