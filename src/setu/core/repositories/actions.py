"""Action history repository.

Tags:
    setu-core, repository, actions

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from setu.core.repository import BaseRepository


class ActionHistoryRepository(BaseRepository):
    """CRUD for the ``action_history`` table."""

    TABLE = "action_history"
    COLUMNS = ["action_id", "metadata", "post_notify_sent", "created_at"]

    def insert_action(self, action_id: str, metadata: str, created_at: str) -> bool:
        """Insert a pending row.  Returns ``False`` if the id already exists."""
        sql = self.dialect.insert_or_ignore(self.TABLE, self.COLUMNS)
        inserted = self.rowcount(sql, (action_id, metadata, 0, created_at))
        self.commit()
        return inserted > 0

    def list_pending(self) -> list[dict[str, Any]]:
        """Rows whose post-completion notification has not fired."""
        return self.query(
            f"SELECT action_id, metadata, post_notify_sent, created_at "
            f"FROM {self.TABLE} WHERE post_notify_sent = 0 ORDER BY created_at ASC",
        )

    def get(self, action_id: str) -> dict[str, Any] | None:
        return self.query_one(
            f"SELECT action_id, metadata, post_notify_sent, created_at "
            f"FROM {self.TABLE} WHERE action_id = {self.ph(1)}",
            (action_id,),
        )

    def mark_notified(
        self,
        action_id: str,
        *,
        metadata: str | None = None,
        created_at: str | None = None,
    ) -> None:
        """Set ``post_notify_sent`` (update-or-insert).

        When the original insert never reached the table, the row is
        created already finalized from *metadata* and *created_at*.
        """
        updated = self.rowcount(
            f"UPDATE {self.TABLE} SET post_notify_sent = 1 WHERE action_id = {self.ph(1)}",
            (action_id,),
        )
        if updated == 0 and metadata is not None and created_at is not None:
            sql = self.dialect.insert_or_ignore(self.TABLE, self.COLUMNS)
            self.execute(sql, (action_id, metadata, 1, created_at))
        self.commit()

    def latest_action_id(self) -> str | None:
        """Id of the most recently created row, finalized or not."""
        row = self.query_one(
            f"SELECT action_id FROM {self.TABLE} ORDER BY created_at DESC, action_id DESC LIMIT 1",
        )
        return str(row["action_id"]) if row else None

    def count(self, *, notified: bool | None = None) -> int:
        if notified is None:
            row = self.query_one(f"SELECT COUNT(*) AS cnt FROM {self.TABLE}")
        else:
            row = self.query_one(
                f"SELECT COUNT(*) AS cnt FROM {self.TABLE} WHERE post_notify_sent = {self.ph(1)}",
                (1 if notified else 0,),
            )
        return int((row or {}).get("cnt", 0))
