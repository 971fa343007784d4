"""
CLI: ``setu watch`` runs the lifecycle watcher in the foreground.
"""

from __future__ import annotations

import typer

from setu.cli.utils import console, make_services


def watch(
    database: str | None = typer.Option(None, "--database", "-d"),
    once: bool = typer.Option(False, "--once", help="Recover, run a single tick and exit"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Poll pending actions until interrupted (Ctrl-C)."""
    import json

    services = make_services(database)
    watcher = services.build_watcher()

    if once:
        recovered = services.store.recover()
        summary = watcher.tick()
        payload = {"recovered": recovered, **summary.to_dict()}
        if json_out:
            console.print_json(json.dumps(payload))
        else:
            for k, v in payload.items():
                console.print(f"  [cyan]{k}[/cyan]: {v}")
        services.close()
        return

    recovered = watcher.start()
    console.print(
        f"[green]Watching[/green] {len(services.store.pending())} pending action(s) "
        f"({recovered} recovered), interval {watcher.interval_seconds:.0f}s. Ctrl-C to stop."
    )
    try:
        while not watcher.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("[dim]Stopping watcher...[/dim]")
    finally:
        watcher.stop()
        services.close()
