"""
SQL dialects for the durable tables.

setu runs against a local SQLite file by default and against a shared
PostgreSQL database when several watcher instances cooperate through
leases.  The two differ only in placeholders, insert-if-absent and a
couple of DDL column types, which is all a :class:`Dialect` models.

Tags:
    database, dialect, portability, setu-core
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """What repositories and :mod:`setu.core.schema` ask of a database."""

    name: str

    def placeholder(self, index: int) -> str:
        """Placeholder for the 0-based parameter *index*."""
        ...

    def placeholders(self, count: int) -> str:
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """INSERT that leaves an existing row with the same key untouched."""
        ...

    def text_primary_key(self) -> str:
        ...

    def auto_increment(self) -> str:
        ...


class _PositionalDialect:
    """Shared SQL for drivers with a single, position-independent marker."""

    name = "generic"
    marker = "?"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return self.marker

    def placeholders(self, count: int) -> str:
        return ", ".join([self.marker] * count)

    def _values(self, table: str, columns: list[str]) -> str:
        return f"INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"


class SQLiteDialect(_PositionalDialect):
    """``sqlite3``: ``?`` markers, ``INSERT OR IGNORE``."""

    name = "sqlite"
    marker = "?"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        return f"INSERT OR IGNORE {self._values(table, columns)}"

    def text_primary_key(self) -> str:
        return "TEXT NOT NULL PRIMARY KEY"

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"


class PostgreSQLDialect(_PositionalDialect):
    """psycopg: ``%s`` markers, ``ON CONFLICT DO NOTHING``."""

    name = "postgresql"
    marker = "%s"

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        return f"INSERT {self._values(table, columns)} ON CONFLICT DO NOTHING"

    def text_primary_key(self) -> str:
        return "VARCHAR(64) NOT NULL PRIMARY KEY"

    def auto_increment(self) -> str:
        return "SERIAL PRIMARY KEY"


__all__ = ["Dialect", "SQLiteDialect", "PostgreSQLDialect"]
