"""
Root Typer application for the setu CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="setu",
    help="setu: trigger BigFix baseline actions and follow them to completion.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from setu import __version__

        typer.echo(f"setu {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """setu CLI: trigger, inspect and watch baseline actions."""
    from setu.core.logging import configure_logging
    from setu.core.settings import get_settings

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


# ── Command registration ─────────────────────────────────────────────────

from setu.cli import actions as _actions  # noqa: E402
from setu.cli.db import app as db_app  # noqa: E402
from setu.cli.watch import watch  # noqa: E402

app.command("trigger")(_actions.trigger)
app.command("status")(_actions.status)
app.command("results")(_actions.results)
app.command("last")(_actions.last)
app.command("pending")(_actions.pending)
app.command("cleanup")(_actions.cleanup)
app.command("validate-change")(_actions.validate_change)
app.command("watch")(watch)
app.add_typer(db_app, name="db", help="Database operations.")
