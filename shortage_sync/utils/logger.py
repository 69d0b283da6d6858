"""structlog setup: colour console for operators, JSONL file for the sync audit trail.

Every entry carries the context bound with bind_context(), so all events of one
pass share its sync_run_id.
"""

import logging
from typing import Any

import structlog

from shortage_sync.config import LOG_FILE, LOG_LEVEL, VERBOSE_LOGGING

# Full-file downloads and per-product upserts flood these at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

_configured = False


def _level() -> int:
    if VERBOSE_LOGGING:
        return logging.DEBUG
    if LOG_LEVEL.isdigit():
        return int(LOG_LEVEL)
    level = logging.getLevelName(LOG_LEVEL)
    return level if isinstance(level, int) else logging.INFO


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _handler(handler: logging.Handler, renderer, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=_shared_processors())
    )
    return handler


def _configure() -> None:
    global _configured
    level = _level()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(), structlog.dev.ConsoleRenderer(colors=True), level))
    root.addHandler(
        _handler(logging.FileHandler(LOG_FILE, encoding="utf-8"), structlog.processors.JSONRenderer(), level)
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str = "shortage_sync", **bindings: Any):
    """Named structured logger; logging is configured on first call."""
    if not _configured:
        _configure()
    logger = structlog.get_logger(name)
    return logger.bind(**bindings) if bindings else logger


def bind_context(**context: Any) -> None:
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
