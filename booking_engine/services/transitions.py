"""
Reservation state machine tables.

Every status change in the engine goes through ``ensure_transition`` so that
terminal states stay terminal regardless of which code path asks.
"""

from __future__ import annotations

from booking_engine.errors import ConflictError
from booking_engine.models.enums import ReservationStatus

TERMINAL_STATUSES = frozenset(
    {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED, ReservationStatus.NO_SHOW}
)

# Transitions driven by participants and the checkout flow
LIFECYCLE_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

# Admin overrides may additionally record a no-show
ADMIN_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED, ReservationStatus.NO_SHOW}
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}


def is_terminal(status: ReservationStatus) -> bool:
    return status in TERMINAL_STATUSES


def ensure_transition(
    current: ReservationStatus,
    target: ReservationStatus,
    admin: bool = False,
) -> None:
    """
    Raise unless ``current -> target`` is an allowed transition.

    Args:
        current: Status the reservation is in now
        target: Requested status
        admin: Use the wider admin table

    Raises:
        ConflictError: If the transition is not in the table
    """
    table = ADMIN_TRANSITIONS if admin else LIFECYCLE_TRANSITIONS
    if target not in table[current]:
        raise ConflictError(
            f"Cannot move reservation from {current.value} to {target.value}"
        )
