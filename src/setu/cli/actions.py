"""
CLI: action commands (``setu trigger``, ``setu status``, ``setu results``, ...).
"""

from __future__ import annotations

import typer

from setu.cli.utils import console, make_context, output_result, print_table


def trigger(
    baseline: str = typer.Argument(..., help="Baseline name"),
    group: str = typer.Argument(..., help="Computer group name"),
    stage: str | None = typer.Option(None, "--stage", "-s", help="Sandbox / Pilot / Production"),
    days: float = typer.Option(0, "--days", help="Patch window days"),
    hours: float = typer.Option(0, "--hours", help="Patch window hours"),
    minutes: float = typer.Option(0, "--minutes", help="Patch window minutes"),
    change: str | None = typer.Option(None, "--change", "-c", help="ServiceNow change number"),
    no_change_check: bool = typer.Option(False, "--no-change-check", help="Skip the change-ticket check"),
    notify: bool = typer.Option(False, "--notify", help="Send pre/post notifications"),
    mail_to: str | None = typer.Option(None, "--to", help="Override recipients (comma/semicolon separated)"),
    mail_cc: str | None = typer.Option(None, "--cc"),
    mail_bcc: str | None = typer.Option(None, "--bcc"),
    mail_from: str | None = typer.Option(None, "--from"),
    triggered_by: str = typer.Option("Unknown", "--by", help="Identity recorded for audit"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve and build the action without submitting"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Issue a baseline action against a computer group."""
    from setu.ops.actions import trigger_baseline
    from setu.ops.requests import TriggerRequest

    recipients = {
        key: value
        for key, value in (("to", mail_to), ("cc", mail_cc), ("bcc", mail_bcc), ("from", mail_from))
        if value
    }
    request = TriggerRequest(
        baseline_name=baseline,
        group_name=group,
        stage=stage,
        window={"days": days, "hours": hours, "minutes": minutes},
        change_ticket=change,
        require_change_ticket=False if no_change_check else None,
        notify=notify,
        recipients=recipients,
        triggered_by=triggered_by,
    )
    ctx = make_context(database, dry_run=dry_run, user=triggered_by)
    result = trigger_baseline(ctx, request)
    output_result(result, as_json=json_out, title="Action Triggered" if not dry_run else "Dry Run")


def status(
    action_id: str = typer.Argument(..., help="BigFix action id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the current state of an action."""
    from setu.ops.actions import get_action_status

    ctx = make_context(database)
    output_result(get_action_status(ctx, action_id), as_json=json_out, title=f"Action {action_id}")


def results(
    action_id: str = typer.Argument(..., help="BigFix action id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show per-computer results of an action."""
    from setu.ops.actions import get_action_results

    ctx = make_context(database)
    result = get_action_results(ctx, action_id)
    if json_out or not result.success:
        output_result(result, as_json=json_out)
        return
    view = result.data
    if view.rows:
        print_table(view.rows, title=f"Action {action_id} results")
    console.print(f"[bold]{view.success}[/bold] of {view.total} succeeded")


def last(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the most recently issued action id."""
    from setu.ops.actions import get_last_action_id

    ctx = make_context(database)
    output_result(get_last_action_id(ctx), as_json=json_out, title="Last Action")


def pending(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List actions still waiting for their post-completion step."""
    from setu.ops.actions import list_pending_actions

    ctx = make_context(database)
    ctx.services.store.recover()
    result = list_pending_actions(ctx)
    if json_out or not result.success or not result.data:
        output_result(result, as_json=json_out)
        return
    print_table(
        result.data,
        title="Pending Actions",
        columns=["action_id", "created_at", "stage", "baseline_name", "group_name", "pre_notify_requested"],
    )


def cleanup(
    days: int | None = typer.Option(None, "--days", help="Retention in days (default: SETU_RETENTION_DAYS)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Delete finalized action rows older than the retention window."""
    from setu.ops.actions import cleanup_actions
    from setu.ops.requests import CleanupRequest

    ctx = make_context(database, dry_run=dry_run)
    result = cleanup_actions(ctx, CleanupRequest(retention_days=days))
    output_result(result, as_json=json_out, title="Cleanup")


def validate_change(
    number: str = typer.Argument(..., help="Change number (CHG...)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check whether a change ticket is at the Implement stage."""
    from setu.ops.actions import validate_change as _validate

    ctx = make_context()
    result = _validate(ctx, number)
    output_result(result, as_json=json_out, title=f"Change: {number}")
    if result.data is not None and not result.data.approved:
        raise typer.Exit(code=2)
