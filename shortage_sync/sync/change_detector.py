"""Change Detector: which products changed status during this pass.

Two interchangeable strategies produce the same ordered list of ChangeEvents:

- stateful: every status-history row written since the run started is a change;
- file_diff: shortage rows whose (product_code, start_date) key is new compared with
  the previous snapshot of the shortage file.
"""

from datetime import datetime
from typing import Optional

from shortage_sync.db.repositories import history_repo, product_repo
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ChangeEvent, order_change_events
from shortage_sync.registry.diff import detect_new_shortages
from shortage_sync.registry.parser import classify_status
from shortage_sync.sync.reconciler import synthetic_name
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.sync.change_detector")

STATEFUL = "stateful"
FILE_DIFF = "file_diff"
AUTO = "auto"
STRATEGIES = (STATEFUL, FILE_DIFF, AUTO)


def resolve_strategy(requested: str, had_products: bool) -> str:
    """auto means stateful once canonical state exists, file_diff on a first run."""
    requested = (requested or AUTO).lower()
    if requested not in STRATEGIES:
        raise ValueError(f"Unknown change detection strategy: {requested!r}. Expected one of {STRATEGIES}")
    if requested != AUTO:
        return requested
    return STATEFUL if had_products else FILE_DIFF


def detect_stateful(since: datetime, until: Optional[datetime] = None) -> list[ChangeEvent]:
    """Events from history rows created in the run window."""
    events = order_change_events(history_repo.changes_since(since, until))
    logger.info("change_detector.stateful", events=len(events), since=since.isoformat())
    return events


def detect_file_diff(
    previous_lines: Optional[list[str]],
    current_lines: list[str],
    fallback: Optional[ProductStatus] = None,
) -> list[ChangeEvent]:
    """Events for shortage rows that are new since the previous snapshot.

    With no previous snapshot there is nothing to compare against and no event is
    produced. Product ids and names are resolved from storage when the product exists.
    """
    if previous_lines is None:
        logger.info("change_detector.file_diff.no_previous_snapshot")
        return []
    entries = detect_new_shortages(previous_lines, current_lines)
    known = product_repo.get_many_by_code([e.product_code for e in entries])
    events = []
    for entry in entries:
        product = known.get(entry.product_code)
        events.append(
            ChangeEvent(
                product_code=entry.product_code,
                product_id=product["id"] if product else None,
                product_name=product["name"] if product else synthetic_name(entry.product_code),
                status=classify_status(entry.status_text, fallback),
                detected_by="file_diff",
            )
        )
    events = order_change_events(events)
    logger.info("change_detector.file_diff", events=len(events))
    return events
