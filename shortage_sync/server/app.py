"""FastAPI trigger for scheduled sync passes (cron) plus run history."""

import secrets
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

from shortage_sync.config import CRON_SECRET
from shortage_sync.db import init_db
from shortage_sync.exceptions import RunAbort
from shortage_sync.notify.protocol import EmailSender, PushProvider
from shortage_sync.registry.reader import RegistryReader
from shortage_sync.registry.snapshots import SnapshotStore
from shortage_sync.server.runs_routes import router as runs_router
from shortage_sync.sync.orchestrator import run_sync_pass
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.server")


def _check_bearer(authorization: Optional[str], secret: str) -> None:
    """401 unless `Authorization: Bearer <secret>`. An empty secret disables the check."""
    if not secret:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), secret):
        logger.warning("server.cron.unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")


def create_app(
    cron_secret: str | None = None,
    source_dir: str | Path | None = None,
    snapshots: SnapshotStore | None = None,
    push_provider: PushProvider | None = None,
    email_sender: EmailSender | None = None,
) -> FastAPI:
    """Create the app. Arguments left as None fall back to configuration at request time."""
    secret = CRON_SECRET if cron_secret is None else cron_secret
    init_db()
    app = FastAPI(title="BDPM Shortage Sync", version="0.1.0")
    app.include_router(runs_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # Plain def: the pass is blocking and runs its own event loop for fan-out,
    # so FastAPI executes it in the threadpool.
    @app.api_route("/cron/sync", methods=["GET", "POST"])
    def cron_sync(
        authorization: Optional[str] = Header(None),
        notify: bool = True,
    ) -> Any:
        _check_bearer(authorization, secret)
        log = logger.bind(route="/cron/sync")
        log.info("server.cron.trigger")
        reader = RegistryReader(source_dir=source_dir)
        try:
            report = run_sync_pass(
                reader=reader,
                snapshots=snapshots,
                push_provider=push_provider,
                email_sender=email_sender,
                notify=notify,
            )
        except RunAbort as e:
            log.error("server.cron.aborted", error=str(e))
            body: dict[str, Any] = e.report.model_dump(mode="json") if e.report is not None else {}
            body.update({"success": False, "error": str(e)})
            return JSONResponse(status_code=500, content=body)
        finally:
            reader.close()
        body = report.model_dump(mode="json")
        if report.skipped:
            return JSONResponse(status_code=409, content=body)
        return body

    return app
