"""
Internal helper functions for route handlers.

Conversions from stored rows to response schemas and the small access
checks shared by several routers live here.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import HTTPException, status

from booking_engine.models.enums import UserRole
from booking_engine.schemas.users import UserOut


def to_user_out(row: dict[str, Any]) -> UserOut:
    """
    Build the public view of a user row.

    Gateway references are never exposed; only whether a payout account exists.
    """
    return UserOut(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"],
        role=row["role"],
        country=row.get("country"),
        is_active=row["is_active"],
        has_payout_account=bool(row.get("payout_account_ref")),
    )


def validate_self_or_admin_or_403(actor: dict[str, Any], user_id: UUID) -> None:
    """
    Allow a user to read their own records; admins may read anyone's.

    Raises:
        HTTPException: 403 if the caller is neither the user nor an admin
    """
    if actor["id"] != user_id and actor["role"] != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access another user's records",
        )
