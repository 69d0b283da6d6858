"""Database package: engine, session factory, init_db(), get_session()."""

import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from shortage_sync.config import DATABASE_URL
from shortage_sync.db.base import Base

# Import all models so Base.metadata has all tables
from shortage_sync.db.models import (  # noqa: F401
    Alert,
    Notification,
    Product,
    PushToken,
    StatusHistory,
    SyncLock,
    SyncRun,
    User,
)

_init_lock = threading.Lock()
_engine: Engine | None = None
_engine_url: str | None = None
_SessionLocal: sessionmaker | None = None


def _get_engine(url: str) -> Engine:
    """Create engine with check_same_thread=False for use from worker threads."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, echo=False, pool_pre_ping=True)


def init_db(database_url: str | None = None) -> None:
    """Create engine and tables once. Passing a different database_url re-points the engine."""
    global _engine, _engine_url, _SessionLocal
    url = database_url or _engine_url or DATABASE_URL
    with _init_lock:
        if _SessionLocal is not None and url == _engine_url:
            return
        if _engine is not None:
            _engine.dispose()
        _engine = _get_engine(url)
        _engine_url = url
        Base.metadata.create_all(bind=_engine)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)


def is_sqlite() -> bool:
    init_db()
    return (_engine_url or "").startswith("sqlite")


def effective_workers(requested: int) -> int:
    """Bound a worker count; SQLite serialises writers, so it always gets one."""
    if is_sqlite():
        return 1
    return max(1, min(requested, 32))


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager yielding a DB session. Calls init_db() on first use."""
    init_db()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
