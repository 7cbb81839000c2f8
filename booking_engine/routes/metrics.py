"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP booking_reservation_transitions_total Reservation state machine transitions attempted
        # TYPE booking_reservation_transitions_total counter
        booking_reservation_transitions_total{outcome="success",transition="create"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose every registered metric in the Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
