"""
Component wiring.

One :class:`Services` instance is built at startup and shared by the
dispatcher (trigger operations) and the lifecycle watcher, so both see
the same :class:`~setu.actions.store.ActionStore`.  There is no module
level state: tests build their own instance with in-memory SQLite and
``httpx.MockTransport``.

Usage::

    services = build_services(get_settings())
    ctx = OperationContext(services=services, caller="cli")
    result = trigger_baseline(ctx, TriggerRequest("Patch_A", "SRV-GRP", window={"hours": 2}))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from setu.actions.resolver import TargetResolver
from setu.actions.store import ActionStore
from setu.actions.synthesizer import local_utc_offset_ms
from setu.actions.watcher import LifecycleWatcher
from setu.bigfix.client import BigFixClient
from setu.changes.servicenow import ServiceNowValidator
from setu.core.logging import get_logger
from setu.core.protocols import Connection
from setu.core.repositories import ActionHistoryRepository, AssetOwnershipRepository
from setu.core.scheduling import LeaseManager
from setu.core.schema import create_core_tables
from setu.core.settings import SetuSettings, get_settings
from setu.core.sqlite_conn import SqliteConnection
from setu.notify.channels import EmailChannel
from setu.notify.protocol import NotificationChannel, Recipients

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything an operation or the watcher needs, wired once."""

    settings: SetuSettings
    conn: Connection
    store: ActionStore
    ownership: AssetOwnershipRepository
    validator: ServiceNowValidator
    channel: NotificationChannel | None
    bigfix_factory: Callable[[], BigFixClient]
    utc_offset_ms: Callable[[], int] = local_utc_offset_ms
    _bigfix: BigFixClient | None = field(default=None, repr=False)

    @property
    def bigfix(self) -> BigFixClient:
        """BigFix client, created on first use.

        Raises:
            ConfigError: If ``BIGFIX_BASE_URL`` is not set.
        """
        if self._bigfix is None:
            self._bigfix = self.bigfix_factory()
        return self._bigfix

    @property
    def resolver(self) -> TargetResolver:
        return TargetResolver(self.bigfix, self.ownership)

    @property
    def default_recipients(self) -> Recipients:
        return Recipients.from_settings(self.settings.smtp)

    @property
    def notify_ready(self) -> bool:
        return self.channel is not None and self.channel.ready

    def build_watcher(self) -> LifecycleWatcher:
        s = self.settings
        leases = None
        if s.watcher_claim_leases:
            leases = LeaseManager(
                self.conn,
                instance_id=s.instance_id or None,
                ttl_seconds=s.lease_ttl_seconds,
            )
        return LifecycleWatcher(
            self.store,
            self.bigfix,
            self.channel,
            default_recipients=self.default_recipients,
            post_notify_enabled=s.post_notify_enabled,
            interval_seconds=s.effective_watcher_interval,
            retention_days=s.retention_days,
            retention_interval_seconds=s.retention_interval_seconds,
            leases=leases,
        )

    def close(self) -> None:
        if self._bigfix is not None:
            self._bigfix.close()
            self._bigfix = None


def build_services(
    settings: SetuSettings | None = None,
    *,
    conn: Connection | None = None,
    channel: NotificationChannel | None = None,
    bigfix_transport: httpx.BaseTransport | None = None,
    servicenow_transport: httpx.BaseTransport | None = None,
    utc_offset_ms: Callable[[], int] | None = None,
) -> Services:
    """Wire components from *settings* (defaults to :func:`get_settings`).

    The durable tables are created if missing.  When no *channel* is
    given, an :class:`EmailChannel` is built from the SMTP settings.
    """
    settings = settings or get_settings()
    if conn is None:
        conn = SqliteConnection(settings.database_path)
    create_core_tables(conn)

    if channel is None:
        channel = EmailChannel.from_settings(settings.smtp)

    services = Services(
        settings=settings,
        conn=conn,
        store=ActionStore(ActionHistoryRepository(conn)),
        ownership=AssetOwnershipRepository(conn),
        validator=ServiceNowValidator(settings.servicenow, transport=servicenow_transport),
        channel=channel,
        bigfix_factory=lambda: BigFixClient.from_settings(settings.bigfix, transport=bigfix_transport),
    )
    if utc_offset_ms is not None:
        services.utc_offset_ms = utc_offset_ms
    logger.debug(
        "services_built",
        database=getattr(settings, "database_path", None),
        bigfix=settings.bigfix.configured,
        smtp=settings.smtp.ready,
        servicenow=settings.servicenow.configured,
    )
    return services


__all__ = ["Services", "build_services"]
