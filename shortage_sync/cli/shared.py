"""Shared CLI helpers: console, logger, summary rendering."""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from shortage_sync.config import OUTPUT_DIR
from shortage_sync.models.sync import SyncReport
from shortage_sync.utils.logger import get_logger

console = Console()
logger = get_logger("shortage_sync.cli")


def write_json_result(result_dict: dict, path: Path | None = None) -> Path:
    path = path or OUTPUT_DIR / "last_sync.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(result_dict, f, indent=2, ensure_ascii=False, default=str)
    logger.info("results.write_json", path=str(path))
    return path


def print_report(report: SyncReport) -> None:
    """Print a sync summary to the console."""
    if report.skipped:
        console.print(f"[yellow]Skipped: sync run {report.sync_run_id} is still in progress.[/yellow]")
        return
    color = "green" if report.success else "red"
    console.print(f"\n[bold]Sync run {report.sync_run_id}[/bold] [{color}]success={report.success}[/{color}]")
    console.print(f"  Strategy: {report.strategy}")
    console.print(f"  Shortage entries: {report.shortage_entries} (tension: {report.tension_entries})")
    console.print(f"  Products created: {report.created}, updated: {report.updated}")
    moves = ", ".join(f"{status}={count}" for status, count in report.moved_to.items() if count)
    console.print(f"  Status moves: {moves or 'none'}")
    console.print(f"  Change events: {report.change_events}")
    console.print(f"  Duration: {report.duration_ms} ms")

    files = Table(title="Source files")
    files.add_column("File")
    files.add_column("Lines", justify="right")
    files.add_column("Previous", justify="right")
    files.add_column("+", justify="right")
    files.add_column("-", justify="right")
    files.add_column("Error")
    for f in report.files:
        files.add_row(
            f.filename,
            str(f.new_lines),
            str(f.previous_lines),
            str(f.added_lines),
            str(f.removed_lines),
            f.error or "",
        )
    console.print(files)

    if report.notifications is not None:
        n = report.notifications
        console.print(
            f"  Notifications: {n.notified_users} users, push {n.push_succeeded}/{n.push_attempted}, "
            f"email {n.emails_sent}/{n.emails_attempted}"
        )
    for error in report.errors:
        console.print(f"  [red]{error}[/red]")
