"""Tests for ThreadTaskBackend."""

import threading
import time

from setu.core.scheduling import BackendHealth, TaskBackend, ThreadTaskBackend


class TestThreadTaskBackend:
    def test_satisfies_protocol(self):
        assert isinstance(ThreadTaskBackend(), TaskBackend)

    def test_run_immediately_ticks_before_interval(self):
        ticked = threading.Event()
        backend = ThreadTaskBackend("test")
        backend.start(ticked.set, interval_seconds=60, run_immediately=True)
        try:
            assert ticked.wait(2.0)
            assert backend.tick_count == 1
            assert backend.is_running
        finally:
            backend.stop()
        assert not backend.is_running

    def test_ticks_repeat_on_interval(self):
        calls = []
        backend = ThreadTaskBackend("test")
        backend.start(lambda: calls.append(1), interval_seconds=0.01)
        deadline = time.monotonic() + 2.0
        while len(calls) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        backend.stop()
        assert len(calls) >= 3

    def test_failed_tick_does_not_kill_loop(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        backend = ThreadTaskBackend("test")
        backend.start(flaky, interval_seconds=0.01, run_immediately=True)
        deadline = time.monotonic() + 2.0
        while len(calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        backend.stop()
        assert len(calls) >= 2
        assert backend.get_health().failed_ticks == 1

    def test_stop_waits_for_inflight_tick(self):
        entered = threading.Event()
        finished = threading.Event()

        def slow():
            entered.set()
            time.sleep(0.2)
            finished.set()

        backend = ThreadTaskBackend("test")
        backend.start(slow, interval_seconds=60, run_immediately=True)
        assert entered.wait(2.0)
        backend.stop()
        assert finished.is_set()

    def test_second_start_is_ignored(self):
        calls = []
        backend = ThreadTaskBackend("test")
        backend.start(lambda: calls.append("a"), interval_seconds=60, run_immediately=True)
        backend.start(lambda: calls.append("b"), interval_seconds=60, run_immediately=True)
        time.sleep(0.1)
        backend.stop()
        assert "b" not in calls

    def test_stop_before_start_is_noop(self):
        ThreadTaskBackend().stop()

    def test_wait_returns_after_stop(self):
        backend = ThreadTaskBackend("test")
        backend.start(lambda: None, interval_seconds=60)
        assert backend.wait(0.01) is False
        backend.stop()
        assert backend.wait(0.01) is True


class TestBackendHealth:
    def test_to_dict(self):
        health = ThreadTaskBackend("watcher").health()
        assert health["backend"] == "watcher"
        assert health["healthy"] is False
        assert health["tick_count"] == 0
        assert health["last_tick"] is None
        assert health["interval_seconds"] == 60.0

    def test_extra_is_merged(self):
        d = BackendHealth(healthy=True, backend="x", extra={"k": 1}).to_dict()
        assert d["k"] == 1
