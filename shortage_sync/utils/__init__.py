"""Utility modules."""

from shortage_sync.utils.logger import bind_context, get_logger, unbind_context
from shortage_sync.utils.tracing import get_tracer, init_tracing, shutdown_tracing

__all__ = [
    "get_logger",
    "bind_context",
    "unbind_context",
    "init_tracing",
    "get_tracer",
    "shutdown_tracing",
]
