"""CLI commands: one module per mode (sync, diff, runs, serve, init-db)."""

from typer import Typer

from shortage_sync.cli import db_mode, diff_mode, runs_mode, server_mode, sync_mode
from shortage_sync.utils.tracing import init_tracing

init_tracing()

app = Typer(help="BDPM drug shortage sync")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(sync_mode.sync)
    app.command()(diff_mode.diff)
    app.command()(runs_mode.runs)
    app.command()(server_mode.serve)
    app.command(name="init-db")(db_mode.init_db_command)


register_commands()
