from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from booking_engine.dependencies import get_current_actor, get_db_engine, require_internal_token
from booking_engine.errors import BookingError
from booking_engine.routes._helpers import to_user_out, validate_self_or_admin_or_403
from booking_engine.schemas.users import UserOut, UserSyncPayload
from booking_engine.services.users import get_user_or_404, sync_user

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.put("/users/{user_id}", dependencies=[Depends(require_internal_token)])
def sync_user_endpoint(
    user_id: UUID,
    payload: UserSyncPayload,
    db_engine: Engine = Depends(get_db_engine),
) -> UserOut:
    """
    Insert or refresh a user pushed by the identity service.

    Requires the shared ``X-Internal-Token`` header.

    Args:
        user_id: Identity-service user id
        payload: Profile fields to mirror
        db_engine: Database engine

    Returns:
        UserOut: The stored user
    """
    try:
        row = sync_user(db_engine, {"id": user_id, **payload.model_dump()})
        return to_user_out(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("user_sync_failed", user_id=str(user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/users/me")
def get_me(actor: dict[str, Any] = Depends(get_current_actor)) -> UserOut:
    """Return the calling user."""
    return to_user_out(actor)


@router.get("/users/{user_id}")
def get_user_endpoint(
    user_id: UUID,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> UserOut:
    """Return a user; callers may read themselves, admins anyone."""
    try:
        validate_self_or_admin_or_403(actor, user_id)
        return to_user_out(get_user_or_404(db_engine, user_id))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("user_fetch_failed", user_id=str(user_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
