"""Periodic task backend protocol.

A backend controls only timing.  It calls a plain synchronous callback
every ``interval_seconds`` until stopped::

    ┌──────────────────┐   tick()   ┌────────────────────────┐
    │ ThreadTaskBackend│ ─────────► │ LifecycleWatcher.tick  │
    └──────────────────┘            └────────────────────────┘
    ┌──────────────────┐   tick()   ┌────────────────────────┐
    │ ThreadTaskBackend│ ─────────► │ ActionStore.cleanup    │
    └──────────────────┘            └────────────────────────┘

``stop()`` must let an in-flight tick run to completion; a watcher tick
that was interrupted between "notification attempted" and "record
finalized" would re-send on the next start.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Any]


@runtime_checkable
class TaskBackend(Protocol):
    """Protocol for pluggable periodic timing backends."""

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 60.0,
        *,
        run_immediately: bool = False,
    ) -> None:
        """Start calling *tick_callback* every *interval_seconds*."""
        ...

    def stop(self) -> None:
        """Signal the loop to stop and wait for the current tick."""
        ...

    def health(self) -> dict[str, Any]:
        """Return at least ``healthy``, ``backend``, ``tick_count``, ``last_tick``."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    failed_ticks: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "failed_ticks": self.failed_ticks,
            **self.extra,
        }
