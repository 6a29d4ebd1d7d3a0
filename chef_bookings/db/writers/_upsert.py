"""
Dialect-aware INSERT ... ON CONFLICT helpers.

Production runs on PostgreSQL, tests and local runs on SQLite; both dialects
ship an ``insert`` construct with ``on_conflict_do_update`` /
``on_conflict_do_nothing`` and an ``excluded`` namespace. Writers build their
statements through ``dialect_insert`` so the same upsert code serves both.
"""

from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def dialect_insert(conn: Connection, table: Any) -> Any:
    """
    Return the INSERT construct supporting ON CONFLICT for the connection's dialect.

    Args:
        conn: Active database connection
        table: SQLAlchemy ORM class or Table

    Returns:
        A dialect-specific Insert construct

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support
    """
    name = conn.dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on dialect {name!r}")


def upsert_with_distinct_check(
    conn: Connection,
    table: Any,
    rows: list[dict[str, Any]],
    conflict_column: str,
    distinct_column: str,
    update_columns: list[str] | None = None,
    coalesce_columns: list[str] | None = None,
) -> None:
    """
    Perform upsert with IS DISTINCT FROM optimization.

    Only updates rows where the distinct_column value has actually changed,
    so resubmitting identical rows is a no-op write.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., BlackoutRange)
        rows: List of row dicts to upsert; conflict keys must be unique within the batch
        conflict_column: Column name for ON CONFLICT
        distinct_column: Column to check for changes
        update_columns: Columns overwritten on conflict (default: [distinct_column])
        coalesce_columns: Columns that keep the stored value when the new one is NULL

    Example:
        >>> with engine.begin() as conn:
        ...     upsert_with_distinct_check(
        ...         conn=conn,
        ...         table=BlackoutRange,
        ...         rows=[{"start_date": date(2025, 12, 24), "end_date": ..., "reason": None}],
        ...         conflict_column="start_date",
        ...         distinct_column="end_date",
        ...         coalesce_columns=["reason"],
        ...     )
    """
    if not rows:
        return

    if update_columns is None:
        update_columns = [distinct_column]
    coalesce_columns = coalesce_columns or []

    stmt = dialect_insert(conn, table).values(rows)

    set_dict: dict[str, Any] = {col: getattr(stmt.excluded, col) for col in update_columns}
    for col in coalesce_columns:
        set_dict[col] = func.coalesce(getattr(stmt.excluded, col), getattr(table, col))

    changed = [
        getattr(table, col).is_distinct_from(getattr(stmt.excluded, col))
        for col in [distinct_column, *update_columns]
    ]
    changed += [
        getattr(table, col).is_distinct_from(set_dict[col]) for col in coalesce_columns
    ]

    stmt = stmt.on_conflict_do_update(
        index_elements=[conflict_column],
        set_=set_dict,
        where=or_(*changed),
    )

    conn.execute(stmt)
