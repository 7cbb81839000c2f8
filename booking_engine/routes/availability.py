from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from booking_engine.dependencies import get_current_actor, get_db_engine, require_host
from booking_engine.errors import BookingError
from booking_engine.schemas.availability import AvailabilityCreatePayload, AvailabilityOut, SlotOut
from booking_engine.services.availability import (
    create_availability,
    get_host_availability,
    retire_availability,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/availability", status_code=status.HTTP_201_CREATED)
def create_availability_endpoint(
    payload: AvailabilityCreatePayload,
    actor: dict[str, Any] = Depends(require_host),
    db_engine: Engine = Depends(get_db_engine),
) -> AvailabilityOut:
    """
    Declare an availability window for the calling host.

    Args:
        payload: Window times, recurrence kind and weekdays
        actor: Calling host
        db_engine: Database engine

    Returns:
        AvailabilityOut: The stored record
    """
    try:
        row = create_availability(
            db_engine,
            host_id=actor["id"],
            start_at=payload.start_at,
            end_at=payload.end_at,
            recurrence=payload.recurrence,
            days_of_week=payload.days_of_week,
        )
        return AvailabilityOut.model_validate(row)

    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("availability_creation_failed", host_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/availability/{availability_id}", status_code=status.HTTP_200_OK)
def retire_availability_endpoint(
    availability_id: UUID,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    """
    Retire an availability record owned by the caller.

    Returns:
        dict: Confirmation message
    """
    try:
        retire_availability(db_engine, availability_id, actor["id"])
        return {"message": f"Availability {availability_id} retired"}

    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "availability_retire_failed", availability_id=str(availability_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/availability/hosts/{host_id}")
def get_host_availability_endpoint(
    host_id: UUID,
    start: datetime = Query(..., description="Range start (ISO 8601)"),
    end: datetime = Query(..., description="Range end (ISO 8601)"),
    db_engine: Engine = Depends(get_db_engine),
) -> list[SlotOut]:
    """
    Expand a host's availability into concrete slots for a date range.

    Args:
        host_id: Host to query
        start: Range start
        end: Range end
        db_engine: Database engine

    Returns:
        list[SlotOut]: Slots ordered by start
    """
    try:
        slots = get_host_availability(db_engine, host_id, start, end)
        return [
            SlotOut(availability_id=s.availability_id, start_at=s.start_at, end_at=s.end_at)
            for s in slots
        ]

    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("availability_query_failed", host_id=str(host_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
