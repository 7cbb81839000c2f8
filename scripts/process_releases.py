"""
Run one settlement pass: release every escrow entry past the retention window.

Intended to be invoked by an external scheduler (cron, Kubernetes CronJob):

    python scripts/process_releases.py
    python scripts/process_releases.py --as-of 2026-03-09T00:00:00Z --no-notify
"""

import argparse
from datetime import datetime
from typing import Optional

import structlog

from booking_engine.config import RETENTION_DAYS
from booking_engine.db.engine import engine
from booking_engine.logging_config import setup_logging
from booking_engine.network.notifications import HttpNotifier
from booking_engine.services.settlement import process_releases
from booking_engine.utils.datetime import ensure_utc

setup_logging()
logger = structlog.get_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Release matured escrow entries.")
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="Reference time (ISO 8601, UTC assumed when naive); defaults to now",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=RETENTION_DAYS,
        help=f"Minimum entry age in days (default: {RETENTION_DAYS})",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not notify hosts about released funds",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    now = ensure_utc(args.as_of) if args.as_of else None
    notifier = None if args.no_notify else HttpNotifier()

    try:
        released = process_releases(
            engine,
            now=now,
            notifier=notifier,
            retention_days=args.retention_days,
        )
    except Exception:
        logger.exception("settlement_script_failed")
        raise

    logger.info("settlement_script_completed", released=len(released))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
