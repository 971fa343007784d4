"""SQLite backing for the action history.

:class:`SqliteConnection` is the default :class:`~setu.core.protocols.Connection`.
The file's parent directory is created on first use, so
``SETU_DATABASE_PATH=~/.setu/setu.db`` works on a fresh machine.

The dispatcher, the watcher and the retention task share one connection
across threads; every call holds a re-entrant lock, which repositories
also take around execute + fetch (see :attr:`SqliteConnection.lock`).

Usage::

    conn = SqliteConnection("/var/lib/setu/setu.db")
    create_core_tables(conn)
    conn.execute("SELECT COUNT(*) FROM action_history").fetchone()
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any


class SqliteConnection:
    """Thread-shared ``sqlite3`` connection with one cursor."""

    def __init__(self, path: str = ":memory:") -> None:
        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            path = str(Path(path).expanduser())
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._cursor = self._conn.cursor()
        self._lock = threading.RLock()

    def execute(self, sql: str, params: tuple = ()) -> Any:
        with self._lock:
            return self._cursor.execute(sql, params)

    def fetchone(self) -> Any:
        with self._lock:
            return self._cursor.fetchone()

    def fetchall(self) -> list:
        with self._lock:
            return self._cursor.fetchall()

    def commit(self) -> None:
        with self._lock:
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"
