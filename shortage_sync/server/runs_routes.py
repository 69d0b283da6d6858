"""Sync run history API: latest run and runs within a time range."""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query

from shortage_sync.db.repositories import sync_run_repo

router = APIRouter(prefix="/sync", tags=["sync"])


def parse_datetime_param(value: Optional[str]) -> Optional[datetime]:
    """Parse an optional ISO date or datetime query param (naive values are UTC)."""
    if not value or not value.strip():
        return None
    s = value.strip().replace("Z", "+00:00")
    try:
        if len(s) <= 10:
            return datetime.fromisoformat(s + "T00:00:00+00:00")
        parsed = datetime.fromisoformat(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@router.get("/latest")
def latest_run() -> dict[str, Any]:
    run = sync_run_repo.latest_run()
    if run is None:
        raise HTTPException(status_code=404, detail="No sync run recorded yet")
    return run


@router.get("/runs")
def list_runs(
    since: Optional[str] = Query(None, description="ISO date or datetime (inclusive)"),
    until: Optional[str] = Query(None, description="ISO date or datetime (inclusive)"),
    limit: int = Query(100, ge=1, le=500),
) -> dict[str, Any]:
    """Runs started in [since, until], newest first."""
    runs = sync_run_repo.list_runs(
        since=parse_datetime_param(since),
        until=parse_datetime_param(until),
        limit=limit,
    )
    return {"runs": runs, "count": len(runs), "since": since, "until": until}
