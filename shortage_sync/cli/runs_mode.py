"""Runs mode: list recorded sync runs."""

from datetime import datetime, timezone
from typing import Optional

import typer
from rich.table import Table

from shortage_sync.db import init_db
from shortage_sync.db.repositories import sync_run_repo

from .shared import console, logger


def _parse(value: Optional[str], option: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        console.print(f"[red]Invalid {option}: {value!r} (expected ISO date or datetime)[/red]")
        raise typer.Exit(2)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def runs(
    since: Optional[str] = typer.Option(None, "--since", help="ISO date or datetime (inclusive)"),
    until: Optional[str] = typer.Option(None, "--until", help="ISO date or datetime (inclusive)"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=500),
) -> None:
    """Show sync runs, newest first."""
    init_db()
    rows = sync_run_repo.list_runs(since=_parse(since, "--since"), until=_parse(until, "--until"), limit=limit)
    logger.info("runs.list", count=len(rows))
    if not rows:
        console.print("[dim]No sync runs recorded.[/dim]")
        return
    table = Table(title="Sync runs")
    table.add_column("Id", justify="right")
    table.add_column("Started")
    table.add_column("Completed")
    table.add_column("Success")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Errors", justify="right")
    for run in rows:
        completed = run["completed_at"].isoformat(timespec="seconds") if run["completed_at"] else "running"
        table.add_row(
            str(run["id"]),
            run["started_at"].isoformat(timespec="seconds"),
            completed,
            "[green]yes[/green]" if run["success"] else "[red]no[/red]",
            str(run["products_created"]),
            str(run["products_updated"]),
            str(len(run["errors"])),
        )
    console.print(table)
