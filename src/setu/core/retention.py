"""Data retention and purge utilities.

Finalized action rows (notification attempted) are kept for audit for a
configurable number of days and then deleted.  Rows still pending
notification are never touched, whatever their age.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import timedelta

from setu.core.dialect import Dialect, SQLiteDialect
from setu.core.protocols import Connection
from setu.core.timestamps import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


@dataclass
class PurgeResult:
    """Result of a purge operation."""

    table: str
    deleted: int
    cutoff: str


def compute_cutoff(days: int) -> str:
    """Compute the durable-format cutoff timestamp for retention.

    Parameters
    ----------
    days
        Number of days to retain. Records older than this are eligible
        for purging.
    """
    return to_db_timestamp(utc_now() - timedelta(days=days))


def purge_table(
    conn: Connection,
    table: str,
    timestamp_column: str,
    cutoff: str,
    extra_condition: str | None = None,
    dialect: Dialect | None = None,
) -> PurgeResult:
    """Purge records older than cutoff from a single table.

    Parameters
    ----------
    conn
        Database connection.
    table
        Table name to purge.
    timestamp_column
        Column containing the timestamp to compare.
    cutoff
        Durable-format timestamp. Records older than this are deleted.
    extra_condition
        Optional additional WHERE clause (e.g., "post_notify_sent = 1").
    """
    dialect = dialect or SQLiteDialect()
    where = f"{timestamp_column} < {dialect.placeholder(0)}"
    if extra_condition:
        where = f"{where} AND {extra_condition}"

    sql = f"DELETE FROM {table} WHERE {where}"  # noqa: S608
    lock = getattr(conn, "lock", None)
    with lock if lock is not None else nullcontext():
        cursor = conn.execute(sql, (cutoff,))
        deleted = getattr(cursor, "rowcount", 0) or 0
    conn.commit()

    logger.info(
        "retention.purged",
        extra={"table": table, "deleted": deleted, "cutoff": cutoff},
    )
    return PurgeResult(table=table, deleted=deleted, cutoff=cutoff)


def purge_finalized_actions(
    conn: Connection,
    days: int = DEFAULT_RETENTION_DAYS,
    dialect: Dialect | None = None,
) -> PurgeResult | None:
    """Delete finalized ``action_history`` rows older than *days*.

    Returns ``None`` (and deletes nothing) when *days* is not positive.
    """
    if days <= 0:
        return None
    return purge_table(
        conn,
        "action_history",
        "created_at",
        compute_cutoff(days),
        extra_condition="post_notify_sent = 1",
        dialect=dialect,
    )


__all__ = [
    "DEFAULT_RETENTION_DAYS",
    "PurgeResult",
    "compute_cutoff",
    "purge_table",
    "purge_finalized_actions",
]
