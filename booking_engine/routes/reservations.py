from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from booking_engine.dependencies import (
    get_current_actor,
    get_db_engine,
    get_notifier,
    require_admin,
)
from booking_engine.errors import BookingError
from booking_engine.network.notifications import Notifier
from booking_engine.schemas.reservations import (
    ReservationCancelPayload,
    ReservationCreatePayload,
    ReservationOut,
    ReservationReschedulePayload,
    ReservationStatusPayload,
)
from booking_engine.services import reservations as reservation_service

logger = structlog.get_logger(__name__)
router = APIRouter()


def _out(rows: list[dict[str, Any]]) -> list[ReservationOut]:
    return [ReservationOut.model_validate(row) for row in rows]


@router.get("/reservations")
def list_reservations(
    _: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
) -> list[ReservationOut]:
    """List every reservation (admin only)."""
    try:
        return _out(reservation_service.list_all(db_engine))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/me")
def list_my_reservations(
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> list[ReservationOut]:
    """List reservations the caller booked as a customer, latest start first."""
    try:
        return _out(reservation_service.list_for_customer(db_engine, actor["id"]))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_list_failed", user_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/host")
def list_host_reservations(
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> list[ReservationOut]:
    """List reservations where the caller is the host, latest start first."""
    try:
        return _out(reservation_service.list_for_host(db_engine, actor["id"]))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_list_failed", user_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/upcoming")
def list_upcoming_reservations(
    as_host: bool = Query(False, description="List sessions the caller hosts"),
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> list[ReservationOut]:
    """List confirmed reservations that have not started yet, soonest first."""
    try:
        return _out(reservation_service.list_upcoming(db_engine, actor["id"], as_host=as_host))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_list_failed", user_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/{reservation_id}")
def get_reservation_endpoint(
    reservation_id: UUID,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
) -> ReservationOut:
    """Fetch one reservation; visible to its participants and admins."""
    try:
        row = reservation_service.get_reservation_for(db_engine, reservation_id, actor)
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_fetch_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
def create_reservation_endpoint(
    payload: ReservationCreatePayload,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
    notifier: Notifier = Depends(get_notifier),
) -> ReservationOut:
    """
    Book a host for an interval. The caller is the customer.

    Args:
        payload: Host, interval and amount
        actor: Calling customer
        db_engine: Database engine
        notifier: Notification gateway

    Returns:
        ReservationOut: The new PENDING reservation
    """
    try:
        row = reservation_service.create_reservation(
            db_engine,
            customer_id=actor["id"],
            host_id=payload.host_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
            amount=payload.amount,
            notifier=notifier,
        )
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_creation_failed", customer_id=str(actor["id"]), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/reservations/{reservation_id}/status")
def override_status_endpoint(
    reservation_id: UUID,
    payload: ReservationStatusPayload,
    admin: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
) -> ReservationOut:
    """Change a reservation's status within the admin transition table (admin only)."""
    try:
        row = reservation_service.override_status(
            db_engine, reservation_id, payload.status, note=payload.reason
        )
        logger.info(
            "reservation_override_requested",
            reservation_id=str(reservation_id),
            admin_id=str(admin["id"]),
        )
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_override_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/reservations/{reservation_id}/cancel")
def cancel_reservation_endpoint(
    reservation_id: UUID,
    payload: ReservationCancelPayload,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
    notifier: Notifier = Depends(get_notifier),
) -> ReservationOut:
    """Cancel a reservation as one of its participants."""
    try:
        row = reservation_service.cancel_reservation(
            db_engine, reservation_id, actor["id"], reason=payload.reason, notifier=notifier
        )
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_cancel_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/reservations/{reservation_id}/reschedule")
def reschedule_reservation_endpoint(
    reservation_id: UUID,
    payload: ReservationReschedulePayload,
    actor: dict[str, Any] = Depends(get_current_actor),
    db_engine: Engine = Depends(get_db_engine),
    notifier: Notifier = Depends(get_notifier),
) -> ReservationOut:
    """
    Move a confirmed reservation to a new interval.

    Returns:
        ReservationOut: The replacement reservation
    """
    try:
        row = reservation_service.reschedule_reservation(
            db_engine,
            reservation_id,
            actor["id"],
            new_start_at=payload.start_at,
            new_end_at=payload.end_at,
            notifier=notifier,
        )
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_reschedule_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/reservations/{reservation_id}/complete")
def complete_reservation_endpoint(
    reservation_id: UUID,
    _: dict[str, Any] = Depends(require_admin),
    db_engine: Engine = Depends(get_db_engine),
) -> ReservationOut:
    """Mark a finished reservation as completed (admin only)."""
    try:
        row = reservation_service.complete_reservation(db_engine, reservation_id)
        return ReservationOut.model_validate(row)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_complete_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")
