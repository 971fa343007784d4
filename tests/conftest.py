"""
Shared pytest fixtures for setu tests.

This module provides:
- In-memory SQLite with the setu tables created
- ``FakeBigFix``: an ``httpx.MockTransport`` handler serving the handful of
  BigFix endpoints setu talks to, backed by plain dicts
- ``RecordingChannel``: a notification channel that records what it was
  asked to send
- ``settings`` / ``services`` / ``ctx`` wired against the fakes

Usage:
    def test_something(ctx, bigfix):
        bigfix.add_baseline("Patch_A", "ActionSite", "1001")
        ...
"""

from __future__ import annotations

import re
from typing import Any

import httpx
import pytest

from setu.core.schema import create_core_tables
from setu.core.settings import (
    BigFixSettings,
    ServiceNowSettings,
    SetuSettings,
    SmtpSettings,
    clear_settings_cache,
)
from setu.core.sqlite_conn import SqliteConnection
from setu.notify.protocol import DeliveryResult, Notification
from setu.ops.context import OperationContext
from setu.ops.services import build_services

BIGFIX_URL = "https://bigfix.test:52311"
SN_URL = "https://sn.test"

_NAME_IN_RELEVANCE = re.compile(r'name of it is "((?:[^"\\]|\\.)*)"')
_ID_IN_RELEVANCE = re.compile(r"id of it = (\d+)")


# =============================================================================
# Fakes
# =============================================================================


class FakeBigFix:
    """In-memory BigFix REST API for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.baselines: dict[str, Any] = {}
        self.groups: dict[str, Any] = {}
        self.members: dict[str, list[str]] = {}
        self.results: dict[str, list[list[str]]] = {}
        self.statuses: dict[str, str] = {}
        self.next_action_id = 9001
        self.post_status = 200
        self.post_body: str | None = None
        self.posted: list[str] = []
        self.requests: list[httpx.Request] = []
        self.fail_status_with: Exception | None = None

    # -- fixtures helpers -------------------------------------------------

    def add_baseline(self, name: str, site: str, fixlet_id: str) -> None:
        self.baselines[name] = {"Answer": [site, int(fixlet_id)]}

    def add_group(self, name: str, group_id: str, site: str, kind: str = "Automatic") -> None:
        self.groups[name] = [name, int(group_id), site, kind]

    def set_status(self, action_id: str, status: str) -> None:
        self.statuses[str(action_id)] = status

    # -- transport --------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/query":
            return self._query(request.url.params.get("relevance", ""))
        if path == "/api/actions" and request.method == "POST":
            document = request.content.decode("utf-8")
            self.posted.append(document)
            if self.post_status >= 300:
                return httpx.Response(self.post_status, text=self.post_body or "Bad request")
            action_id = str(self.next_action_id)
            self.next_action_id += 1
            body = self.post_body or (
                '<?xml version="1.0" encoding="UTF-8"?><BESAPI>'
                f'<Action Resource="{BIGFIX_URL}/api/action/{action_id}" LastModified="Sat, 17 Oct 2026 10:00:00 +0000">'
                f"<Name>Action</Name><ID>{action_id}</ID></Action></BESAPI>"
            )
            return httpx.Response(200, text=body)
        match = re.fullmatch(r"/api/action/(\w+)/status", path)
        if match:
            if self.fail_status_with is not None:
                raise self.fail_status_with
            action_id = match.group(1)
            status = self.statuses.get(action_id)
            if status is None:
                return httpx.Response(404, text="Action id not found")
            return httpx.Response(200, text=status_xml(action_id, status))
        return httpx.Response(404, text="no such endpoint")

    def _query(self, relevance: str) -> httpx.Response:
        if "of bes baseline whose" in relevance:
            name = self._name(relevance)
            row = self.baselines.get(name)
            return httpx.Response(200, json={"result": [row] if row is not None else []})
        if "of bes computer group whose (name of it" in relevance:
            name = self._name(relevance)
            row = self.groups.get(name)
            return httpx.Response(200, json={"result": [row] if row is not None else []})
        if "names of members of bes computer group" in relevance:
            group_id = _ID_IN_RELEVANCE.search(relevance).group(1)
            return httpx.Response(200, json={"result": self.members.get(group_id, [])})
        if "results of bes action" in relevance:
            action_id = _ID_IN_RELEVANCE.search(relevance).group(1)
            return httpx.Response(200, json={"result": self.results.get(action_id, [])})
        return httpx.Response(400, text="unsupported relevance")

    @staticmethod
    def _name(relevance: str) -> str:
        return _NAME_IN_RELEVANCE.search(relevance).group(1).replace('\\"', '"')


def status_xml(action_id: str, status: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?><BESAPI>'
        f'<ActionResults Resource="{BIGFIX_URL}/api/action/{action_id}/status">'
        f"<ActionID>{action_id}</ActionID><Status>{status}</Status>"
        "<DateIssued>Sat, 17 Oct 2026 10:00:00 +0000</DateIssued>"
        "<StartTime>Sat, 17 Oct 2026 10:00:00 +0000</StartTime>"
        "<EndTime>Sat, 17 Oct 2026 12:00:00 +0000</EndTime>"
        '<Computer ID="1" Name="srv-01"><Status>The action executed successfully.</Status></Computer>'
        "</ActionResults></BESAPI>"
    )


class RecordingChannel:
    """Notification channel that remembers every message."""

    name = "recording"

    def __init__(self, *, ready: bool = True, fail: bool = False, raises: bool = False) -> None:
        self._ready = ready
        self.fail = fail
        self.raises = raises
        self.sent: list[Notification] = []

    @property
    def ready(self) -> bool:
        return self._ready

    def send(self, notification: Notification) -> DeliveryResult:
        self.sent.append(notification)
        if self.raises:
            raise RuntimeError("smtp exploded")
        if self.fail:
            return DeliveryResult.fail(self.name, ConnectionError("mail server down"))
        return DeliveryResult.ok(self.name, "<msg@test>")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def conn():
    """In-memory SQLite connection with all setu tables."""
    connection = SqliteConnection(":memory:")
    create_core_tables(connection)
    yield connection
    connection.close()


@pytest.fixture
def bigfix() -> FakeBigFix:
    fake = FakeBigFix()
    fake.add_baseline("Patch_A", "ActionSite", "1001")
    fake.add_group("SRV-GRP", "42", "ActionSite", "Automatic")
    return fake


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def settings() -> SetuSettings:
    return SetuSettings(
        database_path=":memory:",
        require_change_ticket=False,
        post_notify_enabled=True,
        default_stage="Sandbox",
        bigfix=BigFixSettings(base_url=BIGFIX_URL, user="bfadmin", password="secret"),
        smtp=SmtpSettings(host="smtp.test", from_address="setu@test", to="ops@test"),
        servicenow=ServiceNowSettings(url=SN_URL, user="sn", password="sn-secret"),
    )


@pytest.fixture
def servicenow_handler():
    """Mutable ServiceNow responder: set ``.response`` per test."""

    class _Responder:
        def __init__(self) -> None:
            self.response = httpx.Response(200, json={"result": [{"number": "CHG0001", "state": "Implement"}]})
            self.requests: list[httpx.Request] = []

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.response

    return _Responder()


@pytest.fixture
def services(settings, conn, channel, bigfix, servicenow_handler):
    svc = build_services(
        settings,
        conn=conn,
        channel=channel,
        bigfix_transport=httpx.MockTransport(bigfix.handler),
        servicenow_transport=httpx.MockTransport(servicenow_handler),
        utc_offset_ms=lambda: 0,
    )
    yield svc
    svc.close()


@pytest.fixture
def ctx(services) -> OperationContext:
    return OperationContext(services=services, caller="test")


@pytest.fixture
def make_channel():
    """Factory for channels with non-default behaviour (``ready``/``fail``/``raises``)."""
    return RecordingChannel
