from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.models.enums import TransactionKind, TransactionStatus


class PaymentIntentPayload(BaseModel):
    """
    Schema for opening a held payment for a pending reservation.
    The caller (X-User-Id) is the paying customer.
    """

    host_id: UUID = Field(..., description="Receiving host")
    reservation_id: UUID = Field(..., description="Reservation being paid for")
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Gross amount to charge")
    description: Optional[str] = Field(None, max_length=255, description="Statement description")


class PaymentIntentOut(BaseModel):
    client_secret: str
    transaction_id: UUID


class RefundPayload(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Stored in the entry notes")


class PayoutAccountPayload(BaseModel):
    country: str = Field("ES", min_length=2, max_length=2, description="ISO 3166-1 alpha-2 country")


class PayoutAccountOut(BaseModel):
    account_ref: str


class TransactionOut(BaseModel):
    id: UUID
    kind: TransactionKind
    status: TransactionStatus
    customer_id: UUID
    host_id: UUID
    reservation_id: Optional[UUID] = None
    amount: Decimal
    commission_amount: Decimal
    vat_amount: Decimal
    net_amount: Decimal
    currency: str
    gateway_intent_ref: Optional[str] = None
    gateway_charge_ref: Optional[str] = None
    is_released: bool
    released_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TransactionStatsOut(BaseModel):
    total_transactions: int
    total_amount: Decimal
    total_commission: Decimal
    total_vat: Decimal
    total_revenue: Decimal


class ReleaseOut(BaseModel):
    id: UUID
    host_id: UUID
    reservation_id: Optional[UUID] = None
    net_amount: Decimal
    currency: str
