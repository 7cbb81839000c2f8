from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.models.enums import ReservationStatus


class ReservationCreatePayload(BaseModel):
    """
    Schema for booking a host. The caller (X-User-Id) is the customer.
    """

    host_id: UUID = Field(..., description="Host being booked")
    start_at: datetime = Field(..., description="Session start (must be in the future)")
    end_at: datetime = Field(..., description="Session end (must be after start)")
    amount: Decimal = Field(..., ge=0, decimal_places=2, description="Gross price of the session")


class ReservationCancelPayload(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Why the reservation is cancelled")


class ReservationReschedulePayload(BaseModel):
    start_at: datetime = Field(..., description="New session start")
    end_at: datetime = Field(..., description="New session end")


class ReservationStatusPayload(BaseModel):
    """
    Schema for an admin status change. Only moves allowed by the admin
    transition table are accepted.
    """

    status: ReservationStatus = Field(..., description="Target status")
    reason: Optional[str] = Field(None, max_length=500, description="Stored as reason or note")


class ReservationOut(BaseModel):
    id: UUID
    customer_id: UUID
    host_id: UUID
    start_at: datetime
    end_at: datetime
    status: ReservationStatus
    amount: Decimal
    transaction_id: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    is_rescheduled: bool = False
    original_reservation_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
