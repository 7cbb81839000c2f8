from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.models.enums import UserRole


class UserSyncPayload(BaseModel):
    """
    Schema for the identity service pushing a user record.
    Gateway references are owned by this service and cannot be set here.
    """

    email: str = Field(..., min_length=3, max_length=255, description="Contact email")
    display_name: str = Field(..., min_length=1, max_length=255, description="Full name")
    role: UserRole = Field(UserRole.CUSTOMER, description="customer, host or admin")
    country: Optional[str] = Field(None, min_length=2, max_length=2, description="ISO country code")
    is_active: bool = Field(True, description="Inactive users cannot book or be booked")


class UserOut(BaseModel):
    id: UUID
    email: str
    display_name: str
    role: UserRole
    country: Optional[str] = None
    is_active: bool
    has_payout_account: bool = False
