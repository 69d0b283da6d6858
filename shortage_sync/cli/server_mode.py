"""Serve mode: run the HTTP trigger (cron endpoint) with uvicorn."""

import sys

import typer
import uvicorn

from shortage_sync.config import CRON_SECRET, SERVER_PORT
from shortage_sync.db import init_db
from shortage_sync.server.app import create_app

from .shared import console, logger


def serve(
    port: int = typer.Option(SERVER_PORT, "--port", "-p", help="Port for the HTTP trigger"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind host"),
) -> None:
    """Start the HTTP trigger: /cron/sync, /sync/latest, /sync/runs, /health."""
    init_db()
    log = logger.bind(command="serve", port=port)
    log.info("serve.start")
    if not CRON_SECRET:
        console.print("[yellow]CRON_SECRET is empty: /cron/sync is not protected.[/yellow]")
        log.warning("serve.no_cron_secret")
    app = create_app()
    console.print(f"[green]Starting sync server on http://{host}:{port}[/green]")
    console.print("[dim]Endpoints: GET|POST /cron/sync, GET /sync/latest, GET /sync/runs, GET /health[/dim]")
    try:
        uvicorn.run(app, host=host, port=port, log_level="info", timeout_graceful_shutdown=15)
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down...[/dim]")
        sys.exit(0)
