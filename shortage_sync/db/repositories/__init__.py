"""DB repositories: sync functions, one short transaction per call."""

from shortage_sync.db.repositories.history_repo import changes_since as history_changes_since
from shortage_sync.db.repositories.notification_repo import insert_many as notification_insert_many
from shortage_sync.db.repositories.product_repo import (
    mark_available as product_mark_available,
    upsert_product as product_upsert,
)
from shortage_sync.db.repositories.subscription_repo import (
    SubscriptionTarget,
    find_active_for_product as subscription_find_active_for_product,
    touch_last_notified as subscription_touch_last_notified,
)
from shortage_sync.db.repositories.sync_run_repo import (
    finalize_run as sync_run_finalize,
    latest_run as sync_run_latest,
    list_runs as sync_run_list,
    start_run as sync_run_start,
)

__all__ = [
    "product_upsert",
    "product_mark_available",
    "history_changes_since",
    "SubscriptionTarget",
    "subscription_find_active_for_product",
    "subscription_touch_last_notified",
    "notification_insert_many",
    "sync_run_start",
    "sync_run_finalize",
    "sync_run_latest",
    "sync_run_list",
]
