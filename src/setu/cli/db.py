"""
CLI: ``setu db`` database commands.
"""

from __future__ import annotations

import typer

from setu.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changes"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create the action history, ownership and lease tables."""
    from setu.ops.actions import initialize_database

    ctx = make_context(database, dry_run=dry_run)
    result = initialize_database(ctx)
    output_result(result, as_json=json_out, title="Database Init")

