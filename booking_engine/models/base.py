from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from booking_engine.utils.datetime import ensure_utc


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models in this application inherit from this base class to provide
    consistent table metadata and ORM functionality across the database schema.
    """

    pass


class UTCDateTime(TypeDecorator[datetime]):
    """
    Timestamp column that always binds and returns timezone-aware UTC.

    PostgreSQL stores ``timestamptz`` natively; backends without timezone
    support (SQLite in tests) get the UTC wall time and have the zone
    re-attached on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Dialect) -> Any:
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value)
