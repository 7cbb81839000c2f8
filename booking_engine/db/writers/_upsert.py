"""
Generic upsert helper with IS DISTINCT FROM optimization.

Picks the dialect-specific INSERT construct (PostgreSQL in production, SQLite
in tests) and only rewrites a row when one of the tracked columns actually
changed, so updated_at does not move on no-op pushes.
"""

from typing import Any

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def _insert_for(conn: Connection, table: type) -> Any:
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def upsert_with_distinct_check(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_column: str,
    update_columns: list[str],
    touch_column: str = "updated_at",
) -> None:
    """
    Perform upsert that skips rows whose tracked columns are unchanged.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., User)
        rows: List of row dicts to upsert
        conflict_column: Column name for ON CONFLICT (usually "id")
        update_columns: Columns copied from the incoming row on conflict
        touch_column: Timestamp column refreshed whenever the row changes

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=User,
        ...         rows=[{"id": user_id, "email": "a@b.c", ...}],
        ...         conflict_column="id",
        ...         update_columns=["email", "display_name"],
        ...     )
    """
    if not rows:
        return

    stmt = _insert_for(conn, table).values(rows)

    set_dict = {col: getattr(stmt.excluded, col) for col in [*update_columns, touch_column]}

    distinct_check = or_(
        *(
            getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
            for col in update_columns
        )
    )

    stmt = stmt.on_conflict_do_update(
        index_elements=[conflict_column],
        set_=set_dict,
        where=distinct_check,
    )

    conn.execute(stmt)
