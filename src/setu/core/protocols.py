"""
Protocol for the durable row store.

Repositories, retention and leases depend on the :class:`Connection`
shape only.  :class:`~setu.core.sqlite_conn.SqliteConnection` is the
default implementation; a psycopg connection fits when paired with
:class:`~setu.core.dialect.PostgreSQLDialect`.

Tags:
    protocol, connection, database, setu-core
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Synchronous connection used by every repository.

    Examples:
        >>> cursor = conn.execute("SELECT metadata FROM action_history WHERE action_id = ?", ("1234",))
        >>> row = cursor.fetchone()
        >>> conn.commit()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Run *sql* and return a cursor-like object."""
        ...

    def fetchall(self) -> list:
        """Rows of the last statement."""
        ...

    def commit(self) -> None:
        ...


__all__ = ["Connection"]
