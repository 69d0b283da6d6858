"""Diff mode: list shortage entries present in a new availability file but not in an old one."""

from pathlib import Path

import typer
from rich.table import Table

from shortage_sync.exceptions import DecodeError
from shortage_sync.registry.diff import compute_lines_diff, detect_new_shortages
from shortage_sync.registry.parser import classify_status
from shortage_sync.registry.reader import SHORTAGE, decode_registry_bytes

from .shared import console, logger


def _read_lines(path: Path) -> list[str]:
    if not path.is_file():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return decode_registry_bytes(path.read_bytes(), SHORTAGE)
    except DecodeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def diff(
    old: Path = typer.Argument(..., help="Previous availability file"),
    new: Path = typer.Argument(..., help="Current availability file"),
) -> None:
    """Compare two availability files and print the new shortage entries."""
    log = logger.bind(command="diff", old=str(old), new=str(new))
    old_lines = _read_lines(old)
    new_lines = _read_lines(new)
    added, removed = compute_lines_diff(old_lines, new_lines)
    entries = detect_new_shortages(old_lines, new_lines)
    log.info("diff.complete", added=added, removed=removed, new_entries=len(entries))

    console.print(f"Lines: {len(old_lines)} -> {len(new_lines)} (+{added} / -{removed})")
    if not entries:
        console.print("[green]No new shortage entries.[/green]")
        return
    table = Table(title=f"{len(entries)} new shortage entries")
    table.add_column("Code")
    table.add_column("Status")
    table.add_column("Text")
    table.add_column("Since")
    table.add_column("Until")
    for entry in entries:
        table.add_row(
            entry.product_code,
            classify_status(entry.status_text).value,
            entry.status_text,
            entry.start_date,
            entry.end_date,
        )
    console.print(table)
