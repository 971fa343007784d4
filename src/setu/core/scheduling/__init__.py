"""Periodic task backends and per-record leases.

The watcher and the retention task are each driven by their own
:class:`ThreadTaskBackend`; the backend owns *when* a tick happens, the
callback owns *what* happens.  :class:`LeaseManager` gives multi-instance
deployments a way to claim one action record at a time.
"""

from setu.core.scheduling.lease_manager import LeaseManager
from setu.core.scheduling.protocol import BackendHealth, TaskBackend, TickCallback
from setu.core.scheduling.thread_backend import ThreadTaskBackend

__all__ = [
    "BackendHealth",
    "LeaseManager",
    "TaskBackend",
    "ThreadTaskBackend",
    "TickCallback",
]
