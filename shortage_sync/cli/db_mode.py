"""init-db: create the database tables."""

from shortage_sync.config import DATABASE_URL
from shortage_sync.db import init_db

from .shared import console, logger


def init_db_command() -> None:
    """Create all tables in DATABASE_URL (no-op for tables that exist)."""
    init_db()
    logger.info("init_db.complete")
    console.print(f"[green]Database ready: {DATABASE_URL}[/green]")
