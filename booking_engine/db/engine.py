"""
Application-wide SQLAlchemy engine.

Services open their own short transactions with ``engine.begin()``; route
handlers receive the engine through ``booking_engine.dependencies.get_db_engine``
so tests can substitute an in-memory database.
"""

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from booking_engine.config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_SIZE, SQL_ECHO

logger = structlog.get_logger(__name__)

engine: Engine = create_engine(
    DATABASE_URL,
    pool_size=DB_POOL_SIZE,
    max_overflow=DB_MAX_OVERFLOW,
    pool_pre_ping=True,  # detect stale connections
    pool_recycle=3600,
    echo=SQL_ECHO,
)


def check_engine_health(db_engine: Engine = engine) -> bool:
    """
    Probe the database with ``SELECT 1`` for the /ready endpoint.

    Args:
        db_engine: Engine to probe (defaults to the application engine)

    Returns:
        bool: True if the database answered, False otherwise
    """
    try:
        with db_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("database_probe_failed", error=str(e))
        return False
