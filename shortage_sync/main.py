"""Entry point: delegates to the CLI app (sync, diff, runs, serve, init-db)."""

from rich.traceback import install

from shortage_sync.cli import app
from shortage_sync.utils.tracing import shutdown_tracing

if __name__ == "__main__":
    try:
        install(show_locals=False, max_frames=5, word_wrap=True)
        app()
    finally:
        shutdown_tracing()
