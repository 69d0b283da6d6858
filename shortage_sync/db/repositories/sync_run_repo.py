"""Sync run repository: single-flight start, one-shot finalize, time-range queries."""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from shortage_sync.db import get_session
from shortage_sync.db.base import as_utc, utcnow
from shortage_sync.db.models.sync_run import SyncLock, SyncRun
from shortage_sync.exceptions import SyncAlreadyRunning

ABANDONED_ERROR = "Run abandoned: no completion recorded before the stale timeout"
RUN_LOCK_NAME = "sync_pass"


def _acquire_run_lock(session: Session) -> None:
    """Hold the database write lock until the session commits.

    SQLite takes its single writer lock up front with BEGIN IMMEDIATE; other
    databases lock one named row FOR UPDATE.
    """
    if session.get_bind().dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
        return
    lock = session.scalars(
        select(SyncLock).where(SyncLock.name == RUN_LOCK_NAME).with_for_update()
    ).first()
    if lock is None:
        session.add(SyncLock(name=RUN_LOCK_NAME))
        session.flush()


def _unfinished_runs(session: Session) -> list[SyncRun]:
    return list(
        session.scalars(
            select(SyncRun).where(SyncRun.completed_at.is_(None)).order_by(SyncRun.started_at.desc())
        ).all()
    )


def start_run(stale_after_seconds: int, now: datetime | None = None) -> int:
    """Insert a new run row and return its id.

    Raises SyncAlreadyRunning if an unfinished run started within stale_after_seconds.
    Older unfinished runs are finalized as failed (abandoned) first. The check and
    the insert share one transaction under the write lock, so concurrent starts
    serialise and only one of them succeeds.
    """
    now = now or utcnow()
    stale_before = now - timedelta(seconds=stale_after_seconds)
    with get_session() as session:
        _acquire_run_lock(session)
        for run in _unfinished_runs(session):
            if as_utc(run.started_at) > stale_before:
                raise SyncAlreadyRunning(run.id)
            run.completed_at = now
            run.success = False
            run.errors = [*(run.errors or []), ABANDONED_ERROR]
        run = SyncRun(started_at=now, errors=[], success=False)
        session.add(run)
        session.flush()
        return run.id


def finalize_run(
    run_id: int,
    success: bool,
    products_created: int = 0,
    products_updated: int = 0,
    errors: list[str] | None = None,
    summary: dict[str, Any] | None = None,
    completed_at: datetime | None = None,
) -> bool:
    """Write the run's outcome. Returns False if the run is missing or already finalized."""
    with get_session() as session:
        run = session.get(SyncRun, run_id)
        if run is None or run.completed_at is not None:
            return False
        run.completed_at = completed_at or utcnow()
        run.success = success
        run.products_created = products_created
        run.products_updated = products_updated
        run.errors = list(errors or [])
        run.summary = summary
        return True


def run_to_dict(run: SyncRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "started_at": as_utc(run.started_at),
        "completed_at": as_utc(run.completed_at),
        "products_created": run.products_created,
        "products_updated": run.products_updated,
        "errors": list(run.errors or []),
        "summary": run.summary,
        "success": run.success,
    }


def get_run(run_id: int) -> Optional[dict[str, Any]]:
    with get_session() as session:
        run = session.get(SyncRun, run_id)
        return run_to_dict(run) if run is not None else None


def latest_run() -> Optional[dict[str, Any]]:
    with get_session() as session:
        run = session.scalars(select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc())).first()
        return run_to_dict(run) if run is not None else None


def list_runs(
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """Runs whose start falls in [since, until], newest first."""
    with get_session() as session:
        q = select(SyncRun)
        if since is not None:
            q = q.where(SyncRun.started_at >= since)
        if until is not None:
            q = q.where(SyncRun.started_at <= until)
        q = q.order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)
        return [run_to_dict(run) for run in session.scalars(q).all()]


def last_successful_completion() -> Optional[datetime]:
    """completed_at of the newest successful run, or None if no run has succeeded yet."""
    with get_session() as session:
        completed = session.scalar(
            select(SyncRun.completed_at)
            .where(SyncRun.success == True, SyncRun.completed_at.is_not(None))  # noqa: E712
            .order_by(SyncRun.completed_at.desc())
            .limit(1)
        )
        return as_utc(completed)
