"""Sync mode: run one sync pass from the command line."""

from pathlib import Path
from typing import Optional

import typer

from shortage_sync.config import CHANGE_DETECTION_STRATEGY
from shortage_sync.db import init_db
from shortage_sync.exceptions import RunAbort
from shortage_sync.registry.reader import RegistryReader
from shortage_sync.sync.change_detector import STRATEGIES
from shortage_sync.sync.orchestrator import run_sync_pass

from .shared import console, logger, print_report, write_json_result


def sync(
    source_dir: Optional[Path] = typer.Option(
        None, "--source-dir", "-s", help="Read registry files from this directory instead of downloading them"
    ),
    notify: bool = typer.Option(True, "--notify/--no-notify", help="Fan out notifications for detected changes"),
    strategy: str = typer.Option(
        CHANGE_DETECTION_STRATEGY, "--strategy", help=f"Change detection: {', '.join(STRATEGIES)}"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON summary to this path"),
) -> None:
    """Fetch the registry files, reconcile statuses, and notify subscribers."""
    if strategy.lower() not in STRATEGIES:
        console.print(f"[red]Unknown strategy {strategy!r}. Expected one of: {', '.join(STRATEGIES)}[/red]")
        raise typer.Exit(2)
    init_db()
    log = logger.bind(command="sync", source_dir=str(source_dir) if source_dir else None)
    log.info("sync_cli.start")
    with RegistryReader(source_dir=source_dir) as reader:
        try:
            report = run_sync_pass(reader=reader, strategy=strategy, notify=notify)
        except RunAbort as e:
            console.print(f"[red]Sync aborted: {e}[/red]")
            log.error("sync_cli.aborted", error=str(e))
            if e.report is not None:
                write_json_result(e.report.model_dump(mode="json"), output)
            raise typer.Exit(1)
    print_report(report)
    path = write_json_result(report.model_dump(mode="json"), output)
    console.print(f"[green]Wrote {path}[/green]")
    if report.skipped:
        raise typer.Exit(3)
    if not report.success:
        raise typer.Exit(1)
