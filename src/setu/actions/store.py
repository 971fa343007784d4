"""
Action Store: in-memory map backed by ``action_history``.

Manifesto:
    The memory map is authoritative for the life of the process; the
    durable table exists so a restart can pick up where the last process
    left off.  A durable failure therefore never fails the caller:

    - **add:** memory insert-if-absent, then durable insert; failure logged
    - **mark_finalized:** memory flag first, then durable update; failure
      logged and the id queued for :meth:`ActionStore.reconcile`
    - **recover:** durable rows with ``post_notify_sent = 0`` loaded into
      memory; called at startup and again on every watcher tick
    - **sync_finalized:** a durable finalization made by another instance
      is copied into memory
    - **cleanup:** durable-only, age-bounded delete of finalized rows

Architecture::

    Dispatcher ──add()──────────┐
                                ▼
                   ┌─────────────────────────┐      ┌──────────────────┐
                   │ _records {id: Record}   │ ───► │ action_history   │
                   │ _last_action_id         │      │ (durable)        │
                   │ _pending_sync {id}      │ ◄─── │                  │
                   └─────────────────────────┘      └──────────────────┘
                                ▲   recover() / reconcile()
    Watcher ──pending()/mark_finalized()

Every per-key mutation happens under one re-entrant lock; there is no
cross-key transaction.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from setu.actions.models import ActionRecord
from setu.core.logging import get_logger
from setu.core.repositories import ActionHistoryRepository
from setu.core.retention import DEFAULT_RETENTION_DAYS, PurgeResult, purge_finalized_actions
from setu.core.timestamps import to_db_timestamp

logger = get_logger(__name__)


class ActionStore:
    """Dual-backed record of every issued action.

    Args:
        repository: Durable table access.  ``None`` keeps the store
            memory-only (useful for dry runs and tests).
    """

    def __init__(self, repository: ActionHistoryRepository | None = None) -> None:
        self.repository = repository
        self._records: dict[str, ActionRecord] = {}
        self._last_action_id: str | None = None
        self._pending_sync: set[str] = set()
        self._lock = threading.RLock()

    # -- read paths --------------------------------------------------------

    @property
    def last_action_id(self) -> str | None:
        """Id of the most recently added action in this process."""
        return self._last_action_id

    def get(self, action_id: str) -> ActionRecord | None:
        """Copy of the record for *action_id*, if known."""
        with self._lock:
            record = self._records.get(str(action_id))
            return replace(record) if record else None

    def pending(self) -> list[ActionRecord]:
        """Copies of all records whose post-completion notification has not fired."""
        with self._lock:
            return [replace(r) for r in self._records.values() if not r.post_notify_sent]

    def is_finalized(self, action_id: str) -> bool:
        with self._lock:
            record = self._records.get(str(action_id))
            return bool(record and record.post_notify_sent)

    @property
    def pending_sync(self) -> frozenset[str]:
        """Ids finalized in memory whose durable update has not landed yet."""
        with self._lock:
            return frozenset(self._pending_sync)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, action_id: object) -> bool:
        with self._lock:
            return str(action_id) in self._records

    # -- write paths -------------------------------------------------------

    def add(self, record: ActionRecord) -> bool:
        """Store a newly issued action.

        Returns ``False`` when the id is already present (nothing written).
        Records without an ``action_id`` are rejected with ``ValueError``.
        """
        if not record.action_id:
            raise ValueError("An action record needs an action_id before it can be stored")
        action_id = str(record.action_id)
        with self._lock:
            if action_id in self._records:
                logger.warning("action_already_stored", action_id=action_id)
                return False
            self._records[action_id] = replace(record, action_id=action_id)
            self._last_action_id = action_id

        if self.repository is not None:
            try:
                self.repository.insert_action(
                    action_id,
                    record.to_metadata(),
                    to_db_timestamp(record.created_at),
                )
                logger.info("action_saved", action_id=action_id, stage=record.stage)
            except Exception as e:
                logger.warning("action_persist_failed", action_id=action_id, error=str(e))
        return True

    def mark_finalized(self, action_id: str) -> bool:
        """Flip ``post_notify_sent`` in memory, then durably.

        Returns ``False`` when the record is unknown or already finalized.
        """
        action_id = str(action_id)
        with self._lock:
            record = self._records.get(action_id)
            if record is None or record.post_notify_sent:
                return False
            record.post_notify_sent = True
            snapshot = replace(record)

        if not self._write_finalized(snapshot):
            with self._lock:
                self._pending_sync.add(action_id)
        return True

    def _write_finalized(self, record: ActionRecord) -> bool:
        if self.repository is None:
            return True
        try:
            self.repository.mark_notified(
                record.action_id,
                metadata=record.to_metadata(),
                created_at=to_db_timestamp(record.created_at),
            )
            logger.info("action_finalized", action_id=record.action_id)
            return True
        except Exception as e:
            logger.warning("action_finalize_persist_failed", action_id=record.action_id, error=str(e))
            return False

    def sync_finalized(self, action_id: str) -> bool:
        """Adopt a finalization already made durable by another instance.

        Returns ``True`` when the durable row is finalized; the memory
        record is then flagged without writing back.  A failed lookup
        counts as not finalized.
        """
        action_id = str(action_id)
        if self.repository is None:
            return self.is_finalized(action_id)
        try:
            row = self.repository.get(action_id)
        except Exception as e:
            logger.warning("action_lookup_failed", action_id=action_id, error=str(e))
            return False
        if not row or not row["post_notify_sent"]:
            return False
        with self._lock:
            record = self._records.get(action_id)
            if record is not None and not record.post_notify_sent:
                record.post_notify_sent = True
                logger.info("action_finalized_elsewhere", action_id=action_id)
        return True

    def reconcile(self) -> int:
        """Retry durable finalization for every id on the pending-sync set.

        Returns the number of ids that are now in sync.
        """
        with self._lock:
            queued = [self._records[i] for i in self._pending_sync if i in self._records]
        synced = 0
        for record in queued:
            if self._write_finalized(replace(record)):
                with self._lock:
                    self._pending_sync.discard(record.action_id)
                synced += 1
        if synced:
            logger.info("actions_reconciled", count=synced, remaining=len(self._pending_sync))
        return synced

    # -- recovery & retention ----------------------------------------------

    def recover(self) -> int:
        """Load durable rows still pending notification into memory.

        Rows already present in memory are left alone; rows whose metadata
        cannot be parsed are skipped with a warning.  Returns the number
        of records loaded.
        """
        if self.repository is None:
            return 0
        try:
            rows = self.repository.list_pending()
        except Exception as e:
            logger.error("action_recovery_failed", error=str(e))
            return 0

        loaded = 0
        for row in rows:
            action_id = str(row["action_id"])
            try:
                record = ActionRecord.from_metadata(
                    row["metadata"],
                    post_notify_sent=bool(row["post_notify_sent"]),
                )
            except (ValueError, TypeError) as e:
                logger.warning("action_metadata_unreadable", action_id=action_id, error=str(e))
                continue
            with self._lock:
                if action_id in self._records:
                    continue
                self._records[action_id] = replace(record, action_id=action_id)
            loaded += 1

        if loaded:
            logger.info("actions_recovered", count=loaded)
        else:
            logger.debug("actions_recovered", count=0)
        return loaded

    def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> PurgeResult | None:
        """Delete finalized durable rows older than *retention_days*.

        A non-positive retention disables cleanup.  Memory is not touched.
        """
        if self.repository is None or retention_days <= 0:
            return None
        try:
            return purge_finalized_actions(
                self.repository.conn,
                retention_days,
                dialect=self.repository.dialect,
            )
        except Exception as e:
            logger.warning("action_cleanup_failed", error=str(e))
            return None


__all__ = ["ActionStore"]
