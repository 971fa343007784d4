"""Tests for the dual-backed ActionStore."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from setu.actions.models import ActionRecord
from setu.actions.store import ActionStore
from setu.core.repositories import ActionHistoryRepository
from setu.core.schema import create_core_tables
from setu.core.sqlite_conn import SqliteConnection


def _record(action_id="9001", **kw) -> ActionRecord:
    defaults = dict(
        created_at=datetime(2026, 10, 17, 10, 0, tzinfo=UTC),
        stage="Pilot",
        source_document="<BES/>",
        baseline_name="Patch_A",
        baseline_site="ActionSite",
        baseline_fixlet_id="1001",
        group_name="SRV-GRP",
        group_id="42",
        group_site="ActionSite",
        group_type="Automatic",
        completion_offset="PT2H",
        pre_notify_requested=True,
        notify_channel_ready=True,
        triggered_by="jdoe",
        recipients={"to": "ops@test"},
    )
    defaults.update(kw)
    return ActionRecord(action_id=action_id, **defaults)


@pytest.fixture
def repo(conn):
    return ActionHistoryRepository(conn)


@pytest.fixture
def store(repo):
    return ActionStore(repo)


class TestAdd:
    def test_add_writes_memory_and_durable(self, store, repo):
        assert store.add(_record()) is True
        assert "9001" in store
        assert store.last_action_id == "9001"
        assert repo.get("9001")["post_notify_sent"] == 0

    def test_duplicate_is_rejected(self, store, repo):
        store.add(_record(stage="Pilot"))
        assert store.add(_record(stage="Production")) is False
        assert store.get("9001").stage == "Pilot"
        assert len(store) == 1

    def test_missing_id_rejected(self, store):
        with pytest.raises(ValueError):
            store.add(_record(action_id=""))

    def test_durable_failure_is_not_fatal(self, store, repo):
        with patch.object(repo, "insert_action", side_effect=RuntimeError("disk full")):
            assert store.add(_record()) is True
        assert store.get("9001") is not None
        assert repo.get("9001") is None

    def test_get_returns_copy(self, store):
        store.add(_record())
        copy = store.get("9001")
        copy.post_notify_sent = True
        assert store.is_finalized("9001") is False


class TestMarkFinalized:
    def test_flips_memory_and_durable(self, store, repo):
        store.add(_record())
        assert store.mark_finalized("9001") is True
        assert store.is_finalized("9001")
        assert repo.get("9001")["post_notify_sent"] == 1
        assert store.pending() == []

    def test_is_one_way(self, store):
        store.add(_record())
        store.mark_finalized("9001")
        assert store.mark_finalized("9001") is False

    def test_unknown_id(self, store):
        assert store.mark_finalized("nope") is False

    def test_row_missing_durably_is_inserted_finalized(self, store, repo):
        with patch.object(repo, "insert_action", side_effect=RuntimeError("disk full")):
            store.add(_record())
        store.mark_finalized("9001")
        assert repo.get("9001")["post_notify_sent"] == 1

    def test_durable_failure_queues_for_reconcile(self, store, repo):
        store.add(_record())
        with patch.object(repo, "mark_notified", side_effect=RuntimeError("locked")):
            assert store.mark_finalized("9001") is True
        assert store.is_finalized("9001")
        assert store.pending_sync == frozenset({"9001"})
        assert repo.get("9001")["post_notify_sent"] == 0

        assert store.reconcile() == 1
        assert store.pending_sync == frozenset()
        assert repo.get("9001")["post_notify_sent"] == 1

    def test_reconcile_keeps_failing_ids(self, store, repo):
        store.add(_record())
        with patch.object(repo, "mark_notified", side_effect=RuntimeError("locked")):
            store.mark_finalized("9001")
            assert store.reconcile() == 0
        assert store.pending_sync == frozenset({"9001"})


class TestRecover:
    def test_restart_restores_pending_records(self, store, repo):
        original = _record()
        store.add(original)
        store.add(_record("9002"))
        store.mark_finalized("9002")

        fresh = ActionStore(repo)
        assert fresh.recover() == 1
        assert fresh.get("9001") == original
        assert fresh.get("9002") is None

    def test_recover_leaves_memory_records_alone(self, store, repo):
        store.add(_record())
        assert store.recover() == 0

    def test_unreadable_rows_are_skipped(self, store, repo):
        repo.insert_action("bad", "{not json", "2026-10-17T10:00:00")
        store.add(_record())
        fresh = ActionStore(repo)
        assert fresh.recover() == 1
        assert "bad" not in fresh

    def test_rows_added_through_another_connection_are_loaded(self, tmp_path):
        path = str(tmp_path / "setu.db")
        first = SqliteConnection(path)
        second = SqliteConnection(path)
        try:
            create_core_tables(first)
            watching = ActionStore(ActionHistoryRepository(first))
            assert watching.recover() == 0

            ActionStore(ActionHistoryRepository(second)).add(_record())

            assert watching.recover() == 1
            assert "9001" in watching
            assert watching.recover() == 0
        finally:
            first.close()
            second.close()

    def test_memory_only_store(self):
        store = ActionStore()
        store.add(_record())
        assert store.recover() == 0
        assert store.mark_finalized("9001") is True
        assert store.cleanup(30) is None


class TestCleanup:
    def test_deletes_old_finalized_only(self, store, repo):
        old = datetime.now(UTC) - timedelta(days=60)
        store.add(_record("1", created_at=old))
        store.add(_record("2", created_at=old))
        store.mark_finalized("1")

        result = store.cleanup(30)
        assert result.deleted == 1
        assert repo.get("1") is None
        assert repo.get("2") is not None
        assert "1" in store

    def test_disabled(self, store):
        assert store.cleanup(0) is None

    def test_failure_is_logged_not_raised(self, store, repo):
        with patch("setu.actions.store.purge_finalized_actions", side_effect=RuntimeError("boom")):
            assert store.cleanup(30) is None


def test_pending_returns_copies(store):
    store.add(_record())
    pending = store.pending()
    pending[0].post_notify_sent = True
    assert store.pending()[0].post_notify_sent is False
    assert replace(pending[0], post_notify_sent=False) == store.get("9001")


class TestSyncFinalized:
    def test_durable_finalization_is_adopted(self, store, repo):
        store.add(_record())
        other = ActionStore(repo)
        other.recover()
        store.mark_finalized("9001")

        assert other.is_finalized("9001") is False
        assert other.sync_finalized("9001") is True
        assert other.is_finalized("9001") is True
        assert other.pending() == []

    def test_pending_row_is_not_finalized(self, store):
        store.add(_record())
        assert store.sync_finalized("9001") is False
        assert store.is_finalized("9001") is False

    def test_missing_row_and_lookup_failure(self, store, repo):
        assert store.sync_finalized("404") is False
        store.add(_record())
        with patch.object(repo, "get", side_effect=RuntimeError("locked")):
            assert store.sync_finalized("9001") is False

    def test_memory_only_store_uses_memory_flag(self):
        store = ActionStore()
        store.add(_record())
        store.mark_finalized("9001")
        assert store.sync_finalized("9001") is True
