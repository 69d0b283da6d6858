"""Pydantic models and enums for the sync pass."""

from shortage_sync.models.registry import (
    CatalogEntry,
    CompositionEntry,
    RegistryDocument,
    RegistryTables,
    ShortageEntry,
)
from shortage_sync.models.status import AlertType, NotificationType, ProductStatus
from shortage_sync.models.sync import (
    ChangeEvent,
    FanOutResult,
    FanOutSummary,
    FileFetchSummary,
    PushResult,
    ReconciledProduct,
    SyncReport,
    UpsertOutcome,
    UpsertReport,
    order_change_events,
)

__all__ = [
    "ProductStatus",
    "AlertType",
    "NotificationType",
    "CatalogEntry",
    "CompositionEntry",
    "ShortageEntry",
    "RegistryTables",
    "RegistryDocument",
    "ReconciledProduct",
    "UpsertOutcome",
    "UpsertReport",
    "ChangeEvent",
    "order_change_events",
    "PushResult",
    "FanOutResult",
    "FanOutSummary",
    "FileFetchSummary",
    "SyncReport",
]
