"""
Settlement of held funds.

A run flags every COMPLETED, unreleased entry older than the retention
window as released. It makes no payout call: funds already travel to the
host's connect account as destination charges, and the flag only records
that the retention period is over.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from booking_engine.config import RETENTION_DAYS
from booking_engine.db.writers.transactions import claim_matured_releases
from booking_engine.metrics import settlement_duration, settlement_released
from booking_engine.models.enums import NotificationKind
from booking_engine.network.notifications import Notifier
from booking_engine.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)


def process_releases(
    engine: Engine,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
    retention_days: int = RETENTION_DAYS,
) -> list[dict[str, Any]]:
    """
    Release every matured escrow entry.

    An entry created at T is eligible once ``now >= T + retention_days``.
    Claiming is a single conditional UPDATE, so overlapping runs never
    release the same entry twice and a rerun with nothing new returns an
    empty list.

    Args:
        engine: SQLAlchemy engine
        now: Reference time (defaults to current UTC time)
        notifier: Optional notification gateway; each host is told about its release
        retention_days: Minimum age of an entry before release

    Returns:
        list[dict]: The entries released by this run
    """
    now = ensure_utc(now) if now else utc_now()
    cutoff = now - timedelta(days=retention_days)
    start_time = time.time()

    with engine.begin() as conn:
        released = claim_matured_releases(conn, cutoff, now)

    settlement_duration.observe(time.time() - start_time)
    settlement_released.inc(len(released))

    for entry in released:
        logger.info(
            "settlement_released",
            transaction_id=str(entry["id"]),
            host_id=str(entry["host_id"]),
            net_amount=str(entry["net_amount"]),
        )
        if notifier is not None:
            notifier.notify(
                str(entry["host_id"]),
                NotificationKind.PAYMENT_RELEASED,
                "Funds released",
                f"{entry['net_amount']} {entry['currency']} from a past session is now released.",
                related_id=str(entry["reservation_id"]),
                metadata={"transactionId": str(entry["id"])},
            )

    logger.info("settlement_run_completed", released=len(released), cutoff=cutoff.isoformat())
    return released
