"""Per-record leases for multi-instance watchers.

Manifesto:
    Two watcher processes sharing one durable store must not both notify
    for the same action.  Before processing a record, a watcher claims a
    TTL lease on its ``action_id``; a record leased by another instance is
    skipped for that tick.  Leases expire on their own, so a crashed
    instance never blocks a record for longer than the TTL.

Tags:
    setu-core, scheduling, leases, TTL, concurrency

Doc-Types:
    api-reference
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from datetime import timedelta
from typing import Any
from uuid import uuid4

from setu.core.dialect import Dialect, SQLiteDialect
from setu.core.protocols import Connection
from setu.core.timestamps import to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

LEASE_TABLE = "action_leases"
LEASE_COLUMNS = ["action_id", "locked_by", "locked_at", "expires_at"]


class LeaseManager:
    """TTL leases over ``action_leases``.

    Example:
        >>> leases = LeaseManager(conn, instance_id="watcher-1")
        >>> if leases.acquire("1234"):
        ...     try:
        ...         process(record)
        ...     finally:
        ...         leases.release("1234")
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        instance_id: str | None = None,
        ttl_seconds: int = 300,
    ) -> None:
        self.conn = conn
        self.dialect = dialect or SQLiteDialect()
        self.instance_id = instance_id or str(uuid4())
        self.ttl_seconds = ttl_seconds

    def _ph(self, index: int) -> str:
        return self.dialect.placeholder(index - 1)

    def _guard(self) -> Any:
        lock = getattr(self.conn, "lock", None)
        return lock if lock is not None else nullcontext()

    def _holder(self, action_id: str) -> str | None:
        sql = (
            f"SELECT locked_by FROM {LEASE_TABLE} "
            f"WHERE action_id = {self._ph(1)} AND expires_at > {self._ph(2)}"
        )
        params = (action_id, to_db_timestamp(utc_now()))
        with self._guard():
            row = self.conn.execute(sql, params).fetchone()
        return row[0] if row else None

    def acquire(self, action_id: str, ttl_seconds: int | None = None) -> bool:
        """Claim *action_id*.  Re-acquiring an own lease refreshes its expiry.

        Returns ``False`` when another instance holds a live lease or the
        store could not be reached.
        """
        now = utc_now()
        expires = now + timedelta(seconds=ttl_seconds or self.ttl_seconds)
        try:
            with self._guard():
                self.conn.execute(
                    f"DELETE FROM {LEASE_TABLE} WHERE action_id = {self._ph(1)} AND expires_at <= {self._ph(2)}",
                    (action_id, to_db_timestamp(now)),
                )
                cursor = self.conn.execute(
                    self.dialect.insert_or_ignore(LEASE_TABLE, LEASE_COLUMNS),
                    (action_id, self.instance_id, to_db_timestamp(now), to_db_timestamp(expires)),
                )
                inserted = getattr(cursor, "rowcount", 0) or 0
            self.conn.commit()
            if inserted > 0:
                logger.debug(f"Acquired lease for action {action_id}")
                return True

            if self._holder(action_id) == self.instance_id:
                self.conn.execute(
                    f"UPDATE {LEASE_TABLE} SET expires_at = {self._ph(1)} "
                    f"WHERE action_id = {self._ph(2)} AND locked_by = {self._ph(3)}",
                    (to_db_timestamp(expires), action_id, self.instance_id),
                )
                self.conn.commit()
                logger.debug(f"Refreshed lease for action {action_id}")
                return True

            logger.debug(f"Lease already held for action {action_id}")
            return False
        except Exception as e:
            logger.error(f"Lease acquire failed for action {action_id}: {e}")
            return False

    def release(self, action_id: str) -> bool:
        """Release a lease held by this instance."""
        try:
            with self._guard():
                cursor = self.conn.execute(
                    f"DELETE FROM {LEASE_TABLE} WHERE action_id = {self._ph(1)} AND locked_by = {self._ph(2)}",
                    (action_id, self.instance_id),
                )
                released = getattr(cursor, "rowcount", 0) or 0
            self.conn.commit()
            return released > 0
        except Exception as e:
            logger.error(f"Lease release failed for action {action_id}: {e}")
            return False

    def holder(self, action_id: str) -> str | None:
        """Instance currently holding a live lease on *action_id*."""
        return self._holder(action_id)

    def cleanup_expired(self) -> int:
        """Remove expired leases left behind by crashed instances."""
        with self._guard():
            cursor = self.conn.execute(
                f"DELETE FROM {LEASE_TABLE} WHERE expires_at <= {self._ph(1)}",
                (to_db_timestamp(utc_now()),),
            )
            count = getattr(cursor, "rowcount", 0) or 0
        self.conn.commit()
        if count > 0:
            logger.info(f"Cleaned up {count} expired leases")
        return count


__all__ = ["LeaseManager", "LEASE_TABLE"]
