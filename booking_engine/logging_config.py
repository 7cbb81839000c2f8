from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, Optional, cast

import structlog

from booking_engine.config import LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "booking-engine"

QUIET_LOGGERS = ("urllib3", "requests", "stripe", "uvicorn.access", "alembic.runtime.migration")


def _add_service(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for the API and the CLI scripts.

    JSON lines are emitted at INFO and above so log shippers can parse them;
    DEBUG switches to the coloured console renderer for local work. Request
    IDs bound by ``RequestIDMiddleware`` are merged in from contextvars.

    Args:
        level: Log level name; defaults to LOG_LEVEL from the environment
    """
    level = (level or LOG_LEVEL).upper()

    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.dev.ConsoleRenderer(colors=True)
            if level == "DEBUG"
            else structlog.processors.JSONRenderer()
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
