"""
Lifecycle Watcher.

Polls every non-finalized action until BigFix reports it ``Expired``,
then sends the post-completion notification and finalizes the record.

Per-record chain (strictly sequential)::

    status poll ──(transport/parse failure)──► untouched, retried next tick
        │
        ├── status != "expired" ─────────────► untouched
        │
        ▼ expired
    guards (global switch, record asked for mail, channel was ready)
        │                     │
        │ pass                └── blocked ──► finalize without sending
        ▼
    fetch results ──(failure)──► empty attachment
        │
        ▼
    send notification ──(failure)──► logged
        │
        ▼
    store.mark_finalized()        ◄── only after the send attempt returned

Delivery is attempted once per action, success or failure.  Finalizing
after a failed send keeps a misconfigured mail server from turning into
an endless retry loop.

Each tick starts by retrying durable finalization for records whose
earlier durable update failed (:meth:`ActionStore.reconcile`), then loads
pending rows written by other processes (:meth:`ActionStore.recover`).
After taking a record's lease the durable row is re-read, so a record
another instance already finalized is skipped.  An unexpected failure on
one record leaves that record untouched and the tick moves on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

from setu.actions.models import ActionRecord, ResultRow
from setu.actions.store import ActionStore
from setu.bigfix.client import BigFixClient
from setu.bigfix.query import pick_tag
from setu.core.errors import SetuError
from setu.core.logging import LogContext, get_logger
from setu.core.retention import DEFAULT_RETENTION_DAYS, PurgeResult
from setu.core.scheduling import LeaseManager, ThreadTaskBackend
from setu.core.settings import MIN_WATCHER_INTERVAL_SECONDS
from setu.notify.protocol import NotificationChannel, Recipients
from setu.notify.templates import post_completion_notification

logger = get_logger(__name__)

TERMINAL_STATUS = "expired"

_STAGE_SUFFIX = re.compile(r"_(Sandbox|Pilot|Production)$", re.IGNORECASE)


def infer_stage_from_title(title: str | None) -> str:
    """``BPS_Patch_A_pilot`` -> ``Pilot``; anything else -> ``Baseline``."""
    if not title:
        return "Baseline"
    match = _STAGE_SUFFIX.search(title.strip())
    return match.group(1).capitalize() if match else "Baseline"


def infer_baseline_from_title(title: str | None) -> str:
    """``BPS_Patch_A_Pilot`` -> ``Patch_A``."""
    if not title:
        return "(unknown)"
    return _STAGE_SUFFIX.sub("", title.removeprefix("BPS_"))


def hydrate_from_document(record: ActionRecord) -> ActionRecord:
    """Fill blank identity fields from the stored action document."""
    title = pick_tag(record.source_document, "Title")
    return replace(
        record,
        stage=record.stage or infer_stage_from_title(title),
        baseline_name=record.baseline_name or infer_baseline_from_title(title),
        baseline_site=pick_tag(record.source_document, "Sitename") or record.baseline_site or "(unknown site)",
        baseline_fixlet_id=pick_tag(record.source_document, "FixletID") or record.baseline_fixlet_id or "(?)",
        group_name=record.group_name or "(unknown group)",
        group_id=record.group_id or "(?)",
        group_site=record.group_site or "(?)",
        group_type=record.group_type or "(?)",
    )


@dataclass
class TickSummary:
    """What one watcher tick did."""

    checked: int = 0
    untouched: int = 0
    finalized: list[str] = field(default_factory=list)
    notified: list[str] = field(default_factory=list)
    skipped: int = 0
    reconciled: int = 0

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "untouched": self.untouched,
            "finalized": list(self.finalized),
            "notified": list(self.notified),
            "skipped": self.skipped,
            "reconciled": self.reconciled,
        }


class LifecycleWatcher:
    """Background poller that finalizes expired actions exactly once.

    Args:
        store: Shared action store (also written by the dispatcher).
        client: BigFix client for status polls and result fetches.
        channel: Notification channel; ``None`` finalizes without sending.
        default_recipients: Used when a record carries no per-trigger overrides.
        post_notify_enabled: Global post-completion notification switch.
        interval_seconds: Poll interval, floored at
            :data:`~setu.core.settings.MIN_WATCHER_INTERVAL_SECONDS`.
        retention_days: Age after which finalized rows are deleted; ``<= 0`` disables.
        retention_interval_seconds: How often retention runs.
        leases: Optional per-record leases for multi-instance deployments.
    """

    def __init__(
        self,
        store: ActionStore,
        client: BigFixClient,
        channel: NotificationChannel | None = None,
        *,
        default_recipients: Recipients | None = None,
        post_notify_enabled: bool = False,
        interval_seconds: float = 60.0,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        retention_interval_seconds: float = 3600.0,
        leases: LeaseManager | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.channel = channel
        self.default_recipients = default_recipients or Recipients()
        self.post_notify_enabled = post_notify_enabled
        self.interval_seconds = max(MIN_WATCHER_INTERVAL_SECONDS, float(interval_seconds or 0))
        self.retention_days = retention_days
        self.retention_interval_seconds = retention_interval_seconds
        self.leases = leases
        self._poll_backend = ThreadTaskBackend("watcher")
        self._retention_backend = ThreadTaskBackend("retention")

    # -- one tick ----------------------------------------------------------

    def tick(self) -> TickSummary:
        """Process every pending record once.

        Rows persisted by other processes since the last tick (``setu
        trigger`` runs as its own process) are loaded first.
        """
        summary = TickSummary(reconciled=self.store.reconcile())
        self.store.recover()
        for record in self.store.pending():
            summary.checked += 1
            if self.leases is not None and not self.leases.acquire(record.action_id):
                summary.skipped += 1
                continue
            try:
                with LogContext(action_id=record.action_id):
                    if self.store.sync_finalized(record.action_id):
                        summary.skipped += 1
                        continue
                    outcome = self.process_record(record)
            except Exception as e:
                logger.error("record_processing_failed", action_id=record.action_id, error=str(e))
                outcome = "untouched"
            finally:
                if self.leases is not None:
                    self.leases.release(record.action_id)
            if outcome == "untouched":
                summary.untouched += 1
            else:
                summary.finalized.append(record.action_id)
                if outcome == "notified":
                    summary.notified.append(record.action_id)

        if summary.finalized or summary.reconciled:
            logger.info("watcher_tick", **summary.to_dict())
        return summary

    def process_record(self, record: ActionRecord) -> str:
        """Run the status -> results -> notify -> finalize chain for one record.

        Returns ``"untouched"``, ``"finalized"`` (no notification attempted)
        or ``"notified"`` (notification attempted, whatever its outcome).
        """
        if self.store.is_finalized(record.action_id):
            return "untouched"
        try:
            http_status, status_xml = self.client.fetch_action_status(record.action_id)
        except SetuError as e:
            logger.warning("status_poll_failed", error=str(e))
            return "untouched"
        if not 200 <= http_status < 300 or not status_xml:
            logger.debug("status_poll_not_ok", http_status=http_status)
            return "untouched"

        state = (pick_tag(status_xml, "Status") or "").lower()
        if state != TERMINAL_STATUS:
            return "untouched"

        record = hydrate_from_document(record)
        if not self.should_notify(record):
            logger.info("action_expired_without_notification", stage=record.stage)
            self.store.mark_finalized(record.action_id)
            return "finalized"

        results = self.fetch_results(record.action_id)
        notification = post_completion_notification(
            record,
            self.default_recipients.override(record.recipients),
            results=results,
            window_start=pick_tag(status_xml, "StartTime"),
            window_end=pick_tag(status_xml, "EndTime"),
        )
        try:
            delivery = self.channel.send(notification)
        except Exception as e:
            logger.warning("post_notification_failed", error=str(e))
        else:
            if delivery.success:
                logger.info("post_notification_sent", results=len(results))
            else:
                logger.warning("post_notification_failed", error=delivery.message)

        self.store.mark_finalized(record.action_id)
        return "notified"

    def should_notify(self, record: ActionRecord) -> bool:
        """Global switch, per-record request and channel readiness at creation."""
        if not self.post_notify_enabled or self.channel is None:
            return False
        if record.post_notify_sent:
            return False
        return record.pre_notify_requested and record.notify_channel_ready

    def fetch_results(self, action_id: str) -> list[ResultRow]:
        """Result rows for the attachment; any failure degrades to ``[]``."""
        try:
            return [ResultRow.from_parts(parts) for parts in self.client.action_results(action_id)]
        except SetuError as e:
            logger.warning("results_fetch_failed", error=str(e))
            return []

    def run_cleanup(self) -> PurgeResult | None:
        """Retention pass: finalized rows past the horizon, then dead leases."""
        result = self.store.cleanup(self.retention_days)
        if result is not None and result.deleted:
            logger.info("retention_cleanup", deleted=result.deleted, retention_days=self.retention_days)
        if self.leases is not None:
            try:
                self.leases.cleanup_expired()
            except Exception as e:
                logger.warning("lease_cleanup_failed", error=str(e))
        return result

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> int:
        """Recover pending records, then start polling and retention.

        Returns the number of records recovered from durable storage.
        """
        recovered = self.store.recover()
        self._poll_backend.start(self.tick, self.interval_seconds)
        self._retention_backend.start(
            self.run_cleanup,
            self.retention_interval_seconds,
            run_immediately=True,
        )
        logger.info(
            "watcher_started",
            recovered=recovered,
            interval_seconds=self.interval_seconds,
            retention_days=self.retention_days,
            leases=self.leases is not None,
        )
        return recovered

    def stop(self) -> None:
        """Signal both loops to stop; an in-flight tick runs to completion."""
        self._poll_backend.stop()
        self._retention_backend.stop()
        logger.info("watcher_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`stop` is requested or *timeout* elapses."""
        return self._poll_backend.wait(timeout)

    @property
    def is_running(self) -> bool:
        return self._poll_backend.is_running

    def health(self) -> dict:
        return {
            "watcher": self._poll_backend.health(),
            "retention": self._retention_backend.health(),
            "pending": len(self.store.pending()),
            "pending_sync": len(self.store.pending_sync),
        }


__all__ = [
    "LifecycleWatcher",
    "TickSummary",
    "hydrate_from_document",
    "infer_baseline_from_title",
    "infer_stage_from_title",
]
