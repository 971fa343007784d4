"""Base class for setu's table repositories.

A repository owns one table and speaks SQL through a
:class:`~setu.core.dialect.Dialect`, so ``action_history`` and
``asset_ownership`` code never mentions a driver.  Rows come back as plain
dicts whatever the cursor type.

Usage:
    >>> class LeaseRepo(BaseRepository):
    ...     def holder(self, action_id: str):
    ...         return self.query_one(
    ...             f"SELECT locked_by FROM action_leases WHERE action_id = {self.ph(1)}",
    ...             (action_id,),
    ...         )

Tags:
    repository, database, portability
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any

from setu.core.dialect import Dialect, SQLiteDialect
from setu.core.protocols import Connection


def _rows_as_dicts(rows: list[Any], description: Any) -> list[dict[str, Any]]:
    if not rows:
        return []
    first = rows[0]
    if isinstance(first, dict) or hasattr(first, "keys"):
        return [dict(row) for row in rows]
    columns = [col[0] for col in description or ()]
    if not columns:
        return [dict(enumerate(row)) for row in rows]
    return [dict(zip(columns, row, strict=False)) for row in rows]


class BaseRepository:
    """Connection + dialect pair shared by every repository.

    Parameters:
        conn: Anything satisfying :class:`~setu.core.protocols.Connection`.
        dialect: Defaults to :class:`~setu.core.dialect.SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def ph(self, count: int) -> str:
        """``count`` placeholders, for embedding in f-string SQL."""
        return self.dialect.placeholders(count)

    def _guard(self) -> Any:
        # one shared cursor: execute and fetch must not interleave across threads
        lock = getattr(self.conn, "lock", None)
        return lock if lock is not None else nullcontext()

    def execute(self, sql: str, params: tuple = ()) -> Any:
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Run a SELECT; every row as a dict keyed by column name."""
        with self._guard():
            cursor = self.conn.execute(sql, params)
            rows = cursor.fetchall()
            description = getattr(cursor, "description", None)
        return _rows_as_dicts(rows, description)

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def rowcount(self, sql: str, params: tuple = ()) -> int:
        """Run an UPDATE/DELETE/INSERT and return how many rows it touched."""
        with self._guard():
            cursor = self.conn.execute(sql, params)
            return getattr(cursor, "rowcount", 0) or 0

    def insert(self, table: str, values: dict[str, Any]) -> Any:
        columns = ", ".join(values)
        sql = f"INSERT INTO {table} ({columns}) VALUES ({self.ph(len(values))})"
        return self.conn.execute(sql, tuple(values.values()))

    def commit(self) -> None:
        self.conn.commit()


__all__ = ["BaseRepository"]
