"""Threading-based periodic task backend.

::

    start(callback, interval, run_immediately)
        │
        ▼
    daemon thread:
        if run_immediately: callback()
        while not stop_event.wait(interval):
            tick_count += 1
            callback()          ◄── exceptions logged, loop continues

    stop()
        stop_event.set()
        thread.join(timeout=stop_timeout)   ◄── current tick finishes

The stop event doubles as the cancellation token: the wait between ticks
returns as soon as it is set, but a tick already running is never cut
short.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Any

from .protocol import BackendHealth, TickCallback

logger = logging.getLogger(__name__)


class ThreadTaskBackend:
    """Run a synchronous callback on a fixed interval in a daemon thread.

    Example:
        >>> backend = ThreadTaskBackend(name="watcher")
        >>> backend.start(watcher.tick, interval_seconds=60.0)
        >>> # ... later ...
        >>> backend.stop()

    Args:
        name: Label used in thread names, logs and health output.
        stop_timeout: Seconds ``stop()`` waits for an in-flight tick.
            ``None`` waits as long as the tick takes.
    """

    def __init__(self, name: str = "task", *, stop_timeout: float | None = None) -> None:
        self.name = name
        self._stop_timeout = stop_timeout
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._failed_ticks = 0
        self._last_tick: datetime | None = None
        self._interval: float = 60.0
        self._started = False
        self._lock = threading.Lock()

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 60.0,
        *,
        run_immediately: bool = False,
    ) -> None:
        """Start the loop.

        Args:
            tick_callback: Function called on each tick.
            interval_seconds: Seconds between ticks.
            run_immediately: Tick once before the first wait.
        """
        if self._started:
            logger.warning(f"ThreadTaskBackend[{self.name}] already started")
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _loop() -> None:
            logger.info(f"ThreadTaskBackend[{self.name}] started (interval={interval_seconds}s)")
            if run_immediately:
                self._run_tick(tick_callback)
            while not self._stop_event.wait(interval_seconds):
                self._run_tick(tick_callback)
            logger.info(f"ThreadTaskBackend[{self.name}] stopped")

        self._thread = threading.Thread(target=_loop, daemon=True, name=f"setu-{self.name}")
        self._thread.start()
        self._started = True

    def _run_tick(self, tick_callback: TickCallback) -> None:
        with self._lock:
            self._tick_count += 1
            self._last_tick = datetime.now(UTC)
        try:
            tick_callback()
        except Exception as e:
            with self._lock:
                self._failed_ticks += 1
            logger.exception(f"ThreadTaskBackend[{self.name}] tick failed: {e}")

    def stop(self) -> None:
        """Signal cancellation and wait for the current tick to complete."""
        if not self._started:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self._stop_timeout)
            if self._thread.is_alive():
                logger.warning(f"ThreadTaskBackend[{self.name}] did not stop cleanly")

        self._started = False
        logger.info(f"ThreadTaskBackend[{self.name}] shutdown complete")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until ``stop()`` is requested.  Returns ``True`` once stopped."""
        return self._stop_event.wait(timeout)

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            failed_ticks=self._failed_ticks,
            extra={"interval_seconds": self._interval},
        )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
