from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine

from booking_engine.dependencies import get_current_actor, get_db_engine, get_token_authority
from booking_engine.errors import BookingError
from booking_engine.network.video_tokens import TokenAuthority
from booking_engine.schemas.calls import CallTokenOut
from booking_engine.services.calls import issue_call_token

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/calls/{reservation_id}/token")
def issue_call_token_endpoint(
    reservation_id: UUID,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
    authority: TokenAuthority = Depends(get_token_authority),
) -> CallTokenOut:
    """
    Issue a video call token for a participant of a confirmed reservation.

    Args:
        reservation_id: Reservation whose call is being joined
        actor: Calling participant
        db_engine: Database engine
        authority: Video token authority

    Returns:
        CallTokenOut: Token, channel, uid, role and expiry
    """
    try:
        result = issue_call_token(db_engine, authority, reservation_id, actor["id"])
        return CallTokenOut(**result)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("call_token_failed", reservation_id=str(reservation_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
