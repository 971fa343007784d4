"""Tests for notification templates and CSV manifests."""

from setu.actions.models import ActionRecord, ResultRow
from setu.notify.protocol import Recipients
from setu.notify.templates import (
    RESULTS_HEADER,
    post_completion_notification,
    pre_trigger_notification,
    render_html,
    results_csv,
    server_list_csv,
)

RCPT = Recipients("setu@x", ("ops@x",))


def _record(**kw):
    defaults = dict(action_id="9001", stage="Pilot", baseline_name="Patch_A", group_name="SRV-GRP")
    defaults.update(kw)
    return ActionRecord(**defaults)


class TestServerListCsv:
    def test_quoted_crlf_no_trailing_newline(self):
        assert server_list_csv(["srv-01", 'odd "name"']) == 'ServerName\r\n"srv-01"\r\n"odd ""name"""'

    def test_empty_is_none(self):
        assert server_list_csv([]) is None


class TestResultsCsv:
    def test_header_and_minimal_quoting(self):
        rows = [ResultRow("srv-01", "KB1, KB2", "Fixed", "s", "e")]
        lines = results_csv(rows).split("\r\n")
        assert lines[0] == ",".join(RESULTS_HEADER)
        assert lines[1] == 'srv-01,"KB1, KB2",Fixed,s,e'
        assert len(lines) == 2

    def test_empty_is_none(self):
        assert results_csv([]) is None


class TestRenderHtml:
    def test_values_are_escaped(self):
        html = render_html("T", [("Baseline", "<script>alert(1)</script>")], csv_attached=False, year=2026)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "No detailed report was attached." in html
        assert "2026" in html


class TestPreTrigger:
    def test_subject_and_manifest(self):
        n = pre_trigger_notification(_record(), RCPT, member_names=["srv-01", "srv-02"])
        assert n.subject == "Pre-Patching Triggered For Baseline Patch_A"
        assert n.attachments[0].filename == "Pilot_Target_Server_List.csv"
        assert n.attachments[0].content.startswith("ServerName\r\n")
        assert "Action ID: 9001" in n.text
        assert n.metadata["kind"] == "pre_trigger"

    def test_no_members_no_attachment(self):
        n = pre_trigger_notification(_record(), RCPT)
        assert n.attachments == []
        assert "No detailed report was attached." in n.html


class TestPostCompletion:
    def test_subject_details_and_results(self):
        n = post_completion_notification(
            _record(),
            RCPT,
            results=[ResultRow("srv-01", "KB1", "Fixed", "s", "e")],
            window_start="start",
            window_end="end",
        )
        assert n.subject == "Post-Patching Status Pilot - Patch_A"
        assert n.attachments[0].filename == "Pilot_Action_Results.csv"
        assert "Window Start: start" in n.text
        assert "Window End: end" in n.text
        assert "A detailed CSV report is attached" in n.html

    def test_missing_fields_have_placeholders(self):
        n = post_completion_notification(_record(stage="", group_name=""), RCPT)
        assert n.subject == "Post-Patching Status Baseline - Patch_A"
        assert "Target Group: (unknown group)" in n.text
        assert "Window End: N/A" in n.text
