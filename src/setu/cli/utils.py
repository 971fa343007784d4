"""
CLI utility helpers: output formatting and service wiring.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from setu.core.settings import get_settings
from setu.ops.context import OperationContext
from setu.ops.result import OperationResult
from setu.ops.services import Services, build_services

console = Console()
err_console = Console(stderr=True)


# ── Context helper ───────────────────────────────────────────────────────


def make_services(database: str | None = None) -> Services:
    """Wire services from settings.  ``--database`` overrides ``SETU_DATABASE_PATH``."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": database})
    return build_services(settings)


def make_context(
    database: str | None = None,
    *,
    dry_run: bool = False,
    user: str | None = None,
) -> OperationContext:
    """Create an ``OperationContext`` for CLI commands."""
    return OperationContext(
        services=make_services(database),
        caller="cli",
        user=user,
        dry_run=dry_run,
    )


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert a response object / dataclass / dict to a plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_result(
    result: OperationResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render an ``OperationResult`` to the terminal; failures exit 1."""
    if not result.success:
        err = result.error
        msg = err.message if err else "Unknown error"
        code = err.code if err else "ERROR"
        if as_json:
            console.print_json(json.dumps(result.to_dict(), default=str))
        else:
            err_console.print(f"[bold red]Error[/bold red] ({code}): {msg}")
            if err and err.details:
                for k, v in err.details.items():
                    err_console.print(f"  [dim]{k}[/dim]: {v}")
        raise typer.Exit(code=1)

    for warning in result.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")

    data = result.data

    if as_json:
        payload = _to_dict(data) if not isinstance(data, list | tuple) else [_to_dict(d) for d in data]
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def print_table(items: list, *, title: str = "", columns: list[str] | None = None) -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    rows = [_to_dict(item) for item in items]
    cols = columns or list(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in cols:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(row.get(c, "")) for c in cols))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}", soft_wrap=True)
