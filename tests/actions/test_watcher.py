"""Tests for the LifecycleWatcher."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import httpx
import pytest

from setu.actions.models import ActionRecord
from setu.actions.store import ActionStore
from setu.actions.synthesizer import build_action_document
from setu.actions.watcher import (
    LifecycleWatcher,
    hydrate_from_document,
    infer_baseline_from_title,
    infer_stage_from_title,
)
from setu.bigfix.client import BigFixClient
from setu.core.errors import UpstreamError
from setu.core.repositories import ActionHistoryRepository
from setu.core.scheduling import LeaseManager
from setu.core.scheduling.lease_manager import LEASE_TABLE
from setu.core.schema import create_core_tables
from setu.core.settings import MIN_WATCHER_INTERVAL_SECONDS
from setu.core.sqlite_conn import SqliteConnection
from setu.notify.protocol import Recipients

DEFAULTS = Recipients(from_address="setu@test", to=("ops@test",))


def _record(action_id="9001", **kw) -> ActionRecord:
    defaults = dict(
        stage="Pilot",
        baseline_name="Patch_A",
        group_name="SRV-GRP",
        group_id="42",
        pre_notify_requested=True,
        notify_channel_ready=True,
    )
    defaults.update(kw)
    return ActionRecord(action_id=action_id, **defaults)


@pytest.fixture
def repo(conn):
    return ActionHistoryRepository(conn)


@pytest.fixture
def store(repo):
    return ActionStore(repo)


@pytest.fixture
def client(bigfix):
    c = BigFixClient("https://bf.test", transport=httpx.MockTransport(bigfix.handler))
    yield c
    c.close()


@pytest.fixture
def make_watcher(store, client, channel):
    def _make(**kw):
        kw.setdefault("default_recipients", DEFAULTS)
        kw.setdefault("post_notify_enabled", True)
        return LifecycleWatcher(store, client, kw.pop("channel", channel), **kw)

    return _make


@pytest.fixture
def watcher(make_watcher):
    return make_watcher()


class TestTick:
    def test_running_action_is_untouched(self, watcher, store, bigfix, channel):
        store.add(_record())
        bigfix.set_status("9001", "Running")

        summary = watcher.tick()

        assert summary.checked == 1
        assert summary.untouched == 1
        assert channel.sent == []
        assert not store.is_finalized("9001")

    def test_expired_action_notifies_once(self, watcher, store, repo, bigfix, channel):
        store.add(_record())
        bigfix.set_status("9001", "Running")
        watcher.tick()
        bigfix.set_status("9001", "Expired")
        bigfix.results["9001"] = [["srv-01", "KB1", "The action executed successfully.", "s", "e"]]

        summary = watcher.tick()

        assert summary.notified == ["9001"]
        assert summary.finalized == ["9001"]
        assert len(channel.sent) == 1
        message = channel.sent[0]
        assert message.subject == "Post-Patching Status Pilot - Patch_A"
        assert message.recipients.to == ("ops@test",)
        assert message.attachments[0].filename == "Pilot_Action_Results.csv"
        assert "srv-01" in message.attachments[0].content
        assert store.is_finalized("9001")
        assert repo.get("9001")["post_notify_sent"] == 1

    def test_repeated_ticks_do_not_resend(self, watcher, store, bigfix, channel):
        store.add(_record())
        bigfix.set_status("9001", "Expired")
        watcher.tick()
        watcher.tick()
        watcher.tick()
        assert len(channel.sent) == 1

    def test_status_comparison_is_case_insensitive(self, watcher, store, bigfix):
        store.add(_record())
        bigfix.set_status("9001", "EXPIRED")
        assert watcher.tick().notified == ["9001"]

    def test_window_times_come_from_status(self, watcher, store, bigfix, channel):
        store.add(_record())
        bigfix.set_status("9001", "Expired")
        watcher.tick()
        assert "Sat, 17 Oct 2026 12:00:00 +0000" in channel.sent[0].text

    def test_record_recipient_overrides_win(self, watcher, store, bigfix, channel):
        store.add(_record(recipients={"to": "team@test; lead@test"}))
        bigfix.set_status("9001", "Expired")
        watcher.tick()
        assert channel.sent[0].recipients.to == ("team@test", "lead@test")
        assert channel.sent[0].recipients.from_address == "setu@test"

    def test_only_pending_records_are_checked(self, watcher, store, bigfix):
        store.add(_record("1"))
        store.add(_record("2"))
        store.mark_finalized("2")
        bigfix.set_status("1", "Open")
        assert watcher.tick().checked == 1

    def test_action_triggered_by_another_process_is_notified(self, tmp_path, client, channel, bigfix):
        path = str(tmp_path / "setu.db")
        watch_conn = SqliteConnection(path)
        trigger_conn = SqliteConnection(path)
        try:
            create_core_tables(watch_conn)
            watch_store = ActionStore(ActionHistoryRepository(watch_conn))
            watcher = LifecycleWatcher(
                watch_store, client, channel, default_recipients=DEFAULTS, post_notify_enabled=True
            )
            assert watch_store.recover() == 0

            ActionStore(ActionHistoryRepository(trigger_conn)).add(_record())
            bigfix.set_status("9001", "Expired")
            summary = watcher.tick()
        finally:
            watch_conn.close()
            trigger_conn.close()

        assert summary.checked == 1
        assert summary.notified == ["9001"]
        assert len(channel.sent) == 1


class TestFailureHandling:
    @pytest.mark.parametrize("behaviour", [{"fail": True}, {"raises": True}])
    def test_failed_send_still_finalizes(self, make_watcher, make_channel, store, bigfix, behaviour):
        failing = make_channel(**behaviour)
        watcher = make_watcher(channel=failing)
        store.add(_record())
        bigfix.set_status("9001", "Expired")

        assert watcher.tick().notified == ["9001"]
        assert store.is_finalized("9001")
        watcher.tick()
        assert len(failing.sent) == 1

    def test_status_transport_error_leaves_record(self, watcher, store, bigfix, channel):
        store.add(_record())
        bigfix.fail_status_with = httpx.ConnectTimeout("timed out")
        summary = watcher.tick()
        assert summary.untouched == 1
        assert not store.is_finalized("9001")
        assert channel.sent == []

    def test_status_not_found_leaves_record(self, watcher, store, channel):
        store.add(_record())
        assert watcher.tick().untouched == 1
        assert not store.is_finalized("9001")

    def test_results_failure_sends_without_attachment(self, make_watcher, store, bigfix, channel):
        store.add(_record())
        bigfix.set_status("9001", "Expired")
        with patch.object(BigFixClient, "action_results", side_effect=UpstreamError("x", status=500)):
            make_watcher().tick()
        assert len(channel.sent) == 1
        assert channel.sent[0].attachments == []

    def test_unexpected_error_leaves_only_that_record(self, watcher, store, bigfix, channel):
        store.add(_record("1"))
        store.add(_record("2"))
        bigfix.set_status("1", "Expired")
        bigfix.set_status("2", "Expired")
        real = watcher.process_record

        def explode_on_first(record):
            if record.action_id == "1":
                raise KeyError("Status")
            return real(record)

        with patch.object(watcher, "process_record", side_effect=explode_on_first):
            summary = watcher.tick()

        assert summary.untouched == 1
        assert summary.notified == ["2"]
        assert not store.is_finalized("1")
        assert len(channel.sent) == 1

    def test_reconcile_runs_first(self, watcher, store, repo, bigfix):
        store.add(_record())
        with patch.object(repo, "mark_notified", side_effect=RuntimeError("locked")):
            store.mark_finalized("9001")
        summary = watcher.tick()
        assert summary.reconciled == 1
        assert summary.checked == 0
        assert repo.get("9001")["post_notify_sent"] == 1


class TestGuards:
    def _expired(self, store, bigfix, **kw):
        store.add(_record(**kw))
        bigfix.set_status("9001", "Expired")

    def test_global_switch_off(self, make_watcher, store, bigfix, channel):
        self._expired(store, bigfix)
        summary = make_watcher(post_notify_enabled=False).tick()
        assert summary.finalized == ["9001"]
        assert summary.notified == []
        assert channel.sent == []
        assert store.is_finalized("9001")

    def test_record_did_not_ask(self, watcher, store, bigfix, channel):
        self._expired(store, bigfix, pre_notify_requested=False)
        watcher.tick()
        assert channel.sent == []
        assert store.is_finalized("9001")

    def test_channel_was_not_ready_at_trigger(self, watcher, store, bigfix, channel):
        self._expired(store, bigfix, notify_channel_ready=False)
        watcher.tick()
        assert channel.sent == []
        assert store.is_finalized("9001")

    def test_no_channel(self, make_watcher, store, bigfix):
        self._expired(store, bigfix)
        assert make_watcher(channel=None).tick().finalized == ["9001"]


class TestLeases:
    def test_record_leased_elsewhere_is_skipped(self, make_watcher, conn, store, bigfix, channel):
        LeaseManager(conn, instance_id="other").acquire("9001")
        watcher = make_watcher(leases=LeaseManager(conn, instance_id="me"))
        store.add(_record())
        bigfix.set_status("9001", "Expired")

        summary = watcher.tick()

        assert summary.skipped == 1
        assert channel.sent == []
        assert not store.is_finalized("9001")

    def test_lease_released_after_processing(self, make_watcher, conn, store, bigfix):
        leases = LeaseManager(conn, instance_id="me")
        watcher = make_watcher(leases=leases)
        store.add(_record())
        bigfix.set_status("9001", "Running")
        watcher.tick()
        assert leases.holder("9001") is None

    def test_second_instance_does_not_notify_again(self, conn, store, client, channel, bigfix):
        store.add(_record())
        other_store = ActionStore(ActionHistoryRepository(conn))
        assert other_store.recover() == 1
        bigfix.set_status("9001", "Expired")

        def _watcher(s, instance_id):
            return LifecycleWatcher(
                s,
                client,
                channel,
                default_recipients=DEFAULTS,
                post_notify_enabled=True,
                leases=LeaseManager(conn, instance_id=instance_id),
            )

        first = _watcher(store, "a").tick()
        second = _watcher(other_store, "b").tick()

        assert first.notified == ["9001"]
        assert second.notified == []
        assert second.skipped == 1
        assert len(channel.sent) == 1
        assert other_store.is_finalized("9001")


class TestHydration:
    def test_title_inference(self):
        assert infer_stage_from_title("BPS_Patch_A_pilot") == "Pilot"
        assert infer_stage_from_title("Something else") == "Baseline"
        assert infer_stage_from_title(None) == "Baseline"
        assert infer_baseline_from_title("BPS_Patch_A_Production") == "Patch_A"
        assert infer_baseline_from_title(None) == "(unknown)"

    def test_blank_fields_filled_from_document(self):
        document = build_action_document(
            site="Win", fixlet_id="55", target_expression="true", offset="PT1H", title="BPS_Patch_B_Sandbox"
        )
        record = hydrate_from_document(ActionRecord(action_id="1", source_document=document))
        assert record.stage == "Sandbox"
        assert record.baseline_name == "Patch_B"
        assert record.baseline_site == "Win"
        assert record.baseline_fixlet_id == "55"
        assert record.group_name == "(unknown group)"

    def test_existing_fields_kept(self):
        record = hydrate_from_document(_record())
        assert record.stage == "Pilot"
        assert record.baseline_name == "Patch_A"
        assert record.group_name == "SRV-GRP"


class TestRetention:
    def test_cleanup_never_deletes_pending(self, make_watcher, store, repo):
        old = datetime.now(UTC) - timedelta(days=90)
        store.add(_record("1", created_at=old))
        store.add(_record("2", created_at=old))
        store.mark_finalized("2")

        result = make_watcher(retention_days=30).run_cleanup()

        assert result.deleted == 1
        assert repo.get("1") is not None
        assert repo.get("2") is None

    def test_disabled_retention(self, make_watcher, store, repo):
        store.add(_record(created_at=datetime.now(UTC) - timedelta(days=90)))
        store.mark_finalized("9001")
        assert make_watcher(retention_days=0).run_cleanup() is None
        assert repo.get("9001") is not None

    def test_cleanup_removes_dead_leases(self, make_watcher, conn):
        conn.execute(
            f"INSERT INTO {LEASE_TABLE} (action_id, locked_by, locked_at, expires_at) VALUES (?, ?, ?, ?)",
            ("1", "crashed", "2000-01-01T00:00:00", "2000-01-01T00:05:00"),
        )
        conn.commit()

        make_watcher(leases=LeaseManager(conn, instance_id="me")).run_cleanup()

        assert conn.execute(f"SELECT COUNT(*) FROM {LEASE_TABLE}").fetchone()[0] == 0


class TestLifecycle:
    def test_interval_floor(self, make_watcher):
        assert make_watcher(interval_seconds=1).interval_seconds == MIN_WATCHER_INTERVAL_SECONDS

    def test_start_recovers_and_stop_halts(self, make_watcher, store, repo):
        store.add(_record())
        fresh = ActionStore(repo)
        watcher = LifecycleWatcher(fresh, make_watcher().client, None, retention_interval_seconds=3600)

        assert watcher.start() == 1
        try:
            assert watcher.is_running
            assert watcher.health()["pending"] == 1
        finally:
            watcher.stop()
        assert not watcher.is_running
        assert watcher.wait(0) is True
