from datetime import date
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.engine import Connection, Engine

from chef_bookings.db.writers._upsert import upsert_with_distinct_check
from chef_bookings.errors import NotFoundError, ValidationError
from chef_bookings.models.blackouts import BlackoutRange
from chef_bookings.utils.datetime import single_day

logger = structlog.get_logger(__name__)

MAX_BULK_DATES = 365


def _blackout_rows(days: Iterable[date], reason: Optional[str]) -> list[dict[str, Any]]:
    cleaned_reason = (reason or "").strip() or None
    rows: dict[date, dict[str, Any]] = {}
    for day in days:
        start, end = single_day(day)
        # Deduplicate on range start; ON CONFLICT cannot touch one row twice per statement
        rows[start] = {"start_date": start, "end_date": end, "reason": cleaned_reason}
    return [rows[key] for key in sorted(rows)]


def _upsert_blackouts(conn: Connection, rows: list[dict[str, Any]]) -> None:
    upsert_with_distinct_check(
        conn=conn,
        table=BlackoutRange,
        rows=rows,
        conflict_column="start_date",
        distinct_column="end_date",
        coalesce_columns=["reason"],
    )


def add_blackout(conn: Connection, day: date, reason: Optional[str] = None) -> dict[str, Any]:
    """
    Upsert a single-day blackout keyed by its start date.

    Args:
        conn: Active connection inside a transaction
        day: Calendar day to block
        reason: Optional note; an empty reason keeps the stored one

    Returns:
        dict: The stored blackout row
    """
    rows = _blackout_rows([day], reason)
    _upsert_blackouts(conn, rows)

    row = conn.execute(
        select(BlackoutRange).where(BlackoutRange.start_date == rows[0]["start_date"])
    ).mappings().one()

    logger.info("blackout_upserted", start_date=day.isoformat(), reason=row["reason"])
    return dict(row)


def bulk_add_blackouts(
    engine: Engine, days: list[date], reason: Optional[str] = None
) -> dict[str, int]:
    """
    Upsert many single-day blackouts in one transaction.

    Resubmitting the same dates is a no-op: existing starts are updated only
    when their values differ, and duplicate dates in the request collapse.

    Args:
        engine: SQLAlchemy engine
        days: Days to block (1-365 entries)
        reason: Optional note applied to every range

    Returns:
        dict: ``{"inserted": n, "updated": m}`` counted over distinct dates

    Raises:
        ValidationError: If the list is empty or too long
    """
    if not days:
        raise ValidationError("Provide dates: list of YYYY-MM-DD")
    if len(days) > MAX_BULK_DATES:
        raise ValidationError(f"Too many dates (limit {MAX_BULK_DATES} per request).")

    rows = _blackout_rows(days, reason)
    starts = [row["start_date"] for row in rows]

    with engine.begin() as conn:
        existing = set(
            conn.execute(
                select(BlackoutRange.start_date).where(BlackoutRange.start_date.in_(starts))
            ).scalars()
        )
        _upsert_blackouts(conn, rows)

    inserted = len([start for start in starts if start not in existing])
    updated = len(starts) - inserted

    logger.info("blackouts_bulk_upserted", inserted=inserted, updated=updated)
    return {"inserted": inserted, "updated": updated}


def delete_blackout(conn: Connection, blackout_id: int) -> None:
    """
    Delete a blackout by id.

    Raises:
        NotFoundError: If no blackout has this id
    """
    result = conn.execute(delete(BlackoutRange).where(BlackoutRange.id == blackout_id))
    if result.rowcount == 0:
        raise NotFoundError(f"Blackout {blackout_id} not found")

    logger.info("blackout_deleted", blackout_id=blackout_id)
