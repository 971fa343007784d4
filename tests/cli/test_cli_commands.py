"""CLI smoke tests via CliRunner, wired to the in-memory fixtures."""

from __future__ import annotations

import json
import sys

import httpx
import pytest
import structlog
from typer.testing import CliRunner

from setu import __version__
from setu.cli.app import app
from setu.ops.actions import trigger_baseline
from setu.ops.requests import TriggerRequest

runner = CliRunner()


@pytest.fixture(autouse=True)
def _wired(monkeypatch, services):
    """Every command gets the fixture services; logging stays unconfigured."""
    monkeypatch.setattr("setu.cli.utils.make_services", lambda database=None: services)
    monkeypatch.setattr("setu.cli.watch.make_services", lambda database=None: services)
    monkeypatch.setattr("setu.core.logging.configure_logging", lambda **kwargs: None)
    # Like the real configure_logging, keep log lines off stdout so --json output parses.
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield services
    structlog.reset_defaults()


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"setu {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "trigger" in result.output


class TestDbCommands:
    def test_init_json(self):
        result = runner.invoke(app, ["db", "init", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["tables"] == ["action_history", "asset_ownership", "action_leases"]
        assert payload["actions"] == 0

    def test_init_dry_run(self):
        result = runner.invoke(app, ["db", "init", "--dry-run", "--json"])
        assert json.loads(result.stdout)["dryRun"] is True


class TestTrigger:
    def test_trigger_json(self, bigfix):
        result = runner.invoke(app, ["trigger", "Patch_A", "SRV-GRP", "--hours", "2", "--stage", "Pilot", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["actionId"] == "9001"
        assert payload["endOffset"] == "PT2H"
        assert payload["title"] == "BPS_Patch_A_Pilot"
        assert len(bigfix.posted) == 1

    def test_dry_run_prints_document(self, bigfix):
        result = runner.invoke(app, ["trigger", "Patch_A", "SRV-GRP", "--minutes", "30", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "<SourcedFixletAction>" in result.stdout
        assert bigfix.posted == []

    def test_zero_window_exits_1(self, bigfix):
        result = runner.invoke(app, ["trigger", "Patch_A", "SRV-GRP"])
        assert result.exit_code == 1
        assert "VALIDATION_FAILED" in result.output
        assert bigfix.posted == []

    def test_unknown_group_json_error(self):
        result = runner.invoke(app, ["trigger", "Patch_A", "NOPE", "--hours", "1", "--json"])
        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["success"] is False
        assert payload["error"]["code"] == "NOT_FOUND"

    def test_change_check_skipped_on_request(self, services, bigfix):
        services.settings = services.settings.model_copy(update={"require_change_ticket": True})
        blocked = runner.invoke(app, ["trigger", "Patch_A", "SRV-GRP", "--hours", "1"])
        assert blocked.exit_code == 1
        allowed = runner.invoke(app, ["trigger", "Patch_A", "SRV-GRP", "--hours", "1", "--no-change-check"])
        assert allowed.exit_code == 0, allowed.output
        assert len(bigfix.posted) == 1

    def test_recipient_overrides(self, channel):
        result = runner.invoke(
            app,
            ["trigger", "Patch_A", "SRV-GRP", "--hours", "1", "--notify", "--to", "a@test;b@test", "--json"],
        )
        assert result.exit_code == 0, result.output
        assert channel.sent[0].recipients.to == ("a@test", "b@test")


class TestReadCommands:
    def test_status_json(self, bigfix):
        bigfix.set_status("9001", "Open")
        result = runner.invoke(app, ["status", "9001", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"actionId": "9001", "state": "open", "notified": False}

    def test_status_invalid_id(self):
        result = runner.invoke(app, ["status", "null"])
        assert result.exit_code == 1
        assert "VALIDATION_FAILED" in result.output

    def test_results_summary_line(self, bigfix):
        bigfix.results["55"] = [["srv-01", "KB1", "The action executed successfully.", "s", "e", "bob"]]
        result = runner.invoke(app, ["results", "55"])
        assert result.exit_code == 0, result.output
        assert "1 of 1 succeeded" in result.stdout

    def test_last_and_pending(self, ctx):
        trigger_baseline(ctx, TriggerRequest("Patch_A", "SRV-GRP", window={"hours": 1}))

        last = runner.invoke(app, ["last", "--json"])
        assert json.loads(last.stdout) == {"actionId": "9001"}

        pending = runner.invoke(app, ["pending", "--json"])
        rows = json.loads(pending.stdout)
        assert [row["action_id"] for row in rows] == ["9001"]

    def test_cleanup_dry_run(self):
        result = runner.invoke(app, ["cleanup", "--days", "7", "--dry-run", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["retentionDays"] == 7
        assert payload["dryRun"] is True


class TestValidateChange:
    def test_approved(self):
        result = runner.invoke(app, ["validate-change", "CHG0001", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["code"] == "APPROVED"

    def test_not_approved_exits_2(self, servicenow_handler):
        servicenow_handler.response = httpx.Response(403, text="forbidden")
        result = runner.invoke(app, ["validate-change", "CHG0001", "--json"])
        assert result.exit_code == 2
        assert json.loads(result.stdout)["code"] == "NOT_FOUND_OR_FORBIDDEN"


class TestWatch:
    def test_once_finalizes_expired(self, ctx, bigfix):
        trigger_baseline(ctx, TriggerRequest("Patch_A", "SRV-GRP", window={"hours": 1}))
        bigfix.set_status("9001", "Expired")

        result = runner.invoke(app, ["watch", "--once", "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["checked"] == 1
        assert payload["finalized"] == ["9001"]
        assert payload["notified"] == []
