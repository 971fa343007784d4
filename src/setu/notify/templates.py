"""
Message templates and CSV manifests.

Two messages exist:

* **pre-trigger** -- sent by the dispatcher right after submission, with
  the group's member list as ``<stage>_Target_Server_List.csv``;
* **post-completion** -- sent by the watcher once an action expires, with
  per-computer results as ``<stage>_Action_Results.csv``.

All values are HTML-escaped before they reach the HTML body.
"""

from __future__ import annotations

import csv
import html
import io
from collections.abc import Iterable
from datetime import datetime

from setu.actions.models import ActionRecord, ResultRow
from setu.notify.protocol import Attachment, Notification, Recipients

TRIGGERED_COLOR = "#0078D4"
COMPLETED_COLOR = "#107C10"
FAILED_COLOR = "#D83B01"

RESULTS_HEADER = ["Server Name", "Patch Name", "Status", "Start Time", "End Time"]

_STYLES = {
    "body": "font-family: 'Segoe UI', 'Roboto', 'Helvetica Neue', Arial, sans-serif; margin: 0; padding: 0; background-color: #f8f9fa;",
    "container": "width: 90%; max-width: 680px; margin: 20px auto; background-color: #ffffff; border: 1px solid #dee2e6; border-radius: 8px; overflow: hidden;",
    "header_title": "margin: 0; font-size: 24px; font-weight: 600;",
    "content": "padding: 30px;",
    "table": "width: 100%; border-collapse: collapse;",
    "td_key": "padding: 12px 0; font-size: 14px; color: #6c757d; font-weight: 600; border-bottom: 1px solid #e9ecef; width: 35%;",
    "td_value": "padding: 12px 0; font-size: 14px; color: #212529; border-bottom: 1px solid #e9ecef;",
    "note": "font-size: 14px; color: #495057; margin-top: 24px; padding-top: 16px; border-top: 1px solid #e9ecef;",
    "footer": "padding: 30px; text-align: center; font-size: 12px; color: #adb5bd; background-color: #f1f3f5;",
}


# -- CSV -----------------------------------------------------------------


def server_list_csv(names: Iterable[str]) -> str | None:
    """``ServerName`` header then one quoted name per line, CRLF separated."""
    names = list(names)
    if not names:
        return None
    buffer = io.StringIO()
    buffer.write("ServerName\r\n")
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n").writerows([n] for n in names)
    return buffer.getvalue().removesuffix("\r\n")


def results_csv(rows: Iterable[ResultRow]) -> str | None:
    """Results table with minimal quoting, CRLF separated."""
    rows = list(rows)
    if not rows:
        return None
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(RESULTS_HEADER)
    for row in rows:
        writer.writerow([row.server, row.patch, row.status, row.start, row.end])
    return buffer.getvalue().removesuffix("\r\n")


# -- bodies --------------------------------------------------------------


def render_html(
    title: str,
    details: list[tuple[str, str]],
    *,
    csv_attached: bool,
    status_color: str = TRIGGERED_COLOR,
    year: int | None = None,
) -> str:
    rows = "".join(
        f'<tr><td style="{_STYLES["td_key"]}">{html.escape(str(key))}</td>'
        f'<td style="{_STYLES["td_value"]}">{html.escape(str(value))}</td></tr>'
        for key, value in details
    )
    note = (
        "A detailed CSV report is attached to this email."
        if csv_attached
        else "No detailed report was attached."
    )
    year = year or datetime.now().year
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        f"<title>{html.escape(title)}</title></head>"
        f'<body style="{_STYLES["body"]}"><div style="{_STYLES["container"]}">'
        f'<div style="background-color: {status_color}; color: #ffffff; padding: 24px 30px;">'
        f'<h1 style="{_STYLES["header_title"]}">{html.escape(title)}</h1></div>'
        f'<div style="{_STYLES["content"]}"><table style="{_STYLES["table"]}" cellpadding="0" cellspacing="0">'
        f"<tbody>{rows}</tbody></table>"
        f'<p style="{_STYLES["note"]}">{note}</p></div>'
        f'<div style="{_STYLES["footer"]}">BigFix Patch Setu &copy; {year}</div>'
        "</div></body></html>"
    )


def render_text(details: list[tuple[str, str]]) -> str:
    return "\n".join(f"{key}: {value}" for key, value in details)


# -- messages ------------------------------------------------------------


def pre_trigger_notification(
    record: ActionRecord,
    recipients: Recipients,
    *,
    member_names: list[str] | None = None,
) -> Notification:
    stage = record.stage or "Baseline"
    details = [
        ("Stage", stage),
        ("Action ID", record.action_id or "Unknown"),
        ("Baseline", record.baseline_name),
        ("Target Group", record.group_name),
    ]
    manifest = server_list_csv(member_names or [])
    attachments = [Attachment(f"{stage}_Target_Server_List.csv", manifest)] if manifest else []
    return Notification(
        subject=f"Pre-Patching Triggered For Baseline {record.baseline_name}",
        text=render_text(details),
        html=render_html(f"{stage} Patching Triggered", details, csv_attached=bool(manifest)),
        recipients=recipients,
        attachments=attachments,
        metadata={"action_id": record.action_id, "kind": "pre_trigger"},
    )


def post_completion_notification(
    record: ActionRecord,
    recipients: Recipients,
    *,
    results: list[ResultRow] | None = None,
    window_start: str | None = None,
    window_end: str | None = None,
    overall_status: str = "Expired",
) -> Notification:
    stage = record.stage or "Baseline"
    details = [
        ("Stage", stage),
        ("Action ID", record.action_id or "Unknown"),
        ("Baseline", record.baseline_name),
        ("Target Group", record.group_name or "(unknown group)"),
        ("Window Start", window_start or "N/A"),
        ("Window End", window_end or "N/A"),
    ]
    manifest = results_csv(results or [])
    attachments = [Attachment(f"{stage}_Action_Results.csv", manifest)] if manifest else []
    color = COMPLETED_COLOR if overall_status.lower() == "expired" else FAILED_COLOR
    return Notification(
        subject=f"Post-Patching Status {stage} - {record.baseline_name}",
        text=render_text(details),
        html=render_html(
            f"{stage} Post Patching Completed",
            details,
            csv_attached=bool(manifest),
            status_color=color,
        ),
        recipients=recipients,
        attachments=attachments,
        metadata={"action_id": record.action_id, "kind": "post_completion"},
    )


__all__ = [
    "RESULTS_HEADER",
    "server_list_csv",
    "results_csv",
    "render_html",
    "render_text",
    "pre_trigger_notification",
    "post_completion_notification",
]
