"""ORM model for the per-invocation sync audit record."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from shortage_sync.db.base import Base, utcnow


class SyncRun(Base):
    """Created when a pass starts, finalized once when it ends (completed_at set)."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    products_created: Mapped[int] = mapped_column(nullable=False, default=0)
    products_updated: Mapped[int] = mapped_column(nullable=False, default=0)
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    summary: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SyncLock(Base):
    """Named row locked FOR UPDATE while a run starts (databases with row locks)."""

    __tablename__ = "sync_locks"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
