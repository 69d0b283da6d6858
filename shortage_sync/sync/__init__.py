"""Sync pass: reconcile registry tables into storage, detect changes, orchestrate a run."""

from shortage_sync.sync.change_detector import (
    AUTO,
    FILE_DIFF,
    STATEFUL,
    STRATEGIES,
    detect_file_diff,
    detect_stateful,
    resolve_strategy,
)
from shortage_sync.sync.orchestrator import run_sync_pass
from shortage_sync.sync.reconciler import apply_reconciliation, reconcile

__all__ = [
    "AUTO",
    "FILE_DIFF",
    "STATEFUL",
    "STRATEGIES",
    "resolve_strategy",
    "detect_stateful",
    "detect_file_diff",
    "reconcile",
    "apply_reconciliation",
    "run_sync_pass",
]
