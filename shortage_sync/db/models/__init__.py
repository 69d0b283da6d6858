"""Re-export all ORM models so Base.metadata has all tables."""

from shortage_sync.db.models.product import Product, StatusHistory
from shortage_sync.db.models.sync_run import SyncLock, SyncRun
from shortage_sync.db.models.user import Alert, Notification, PushToken, User

__all__ = [
    "Product",
    "StatusHistory",
    "User",
    "Alert",
    "PushToken",
    "Notification",
    "SyncRun",
    "SyncLock",
]
