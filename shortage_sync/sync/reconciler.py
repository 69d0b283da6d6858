"""Status Reconciler + Persistence Upsert.

Joins the catalog, composition and shortage tables into one canonical record per
product, upserts each record in its own transaction on a bounded worker pool, then
resets to AVAILABLE every stored product that dropped out of the shortage file.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from typing import Optional

from shortage_sync.config import STATUS_HISTORY_SOURCE, SYNC_UPSERT_WORKERS
from shortage_sync.db import effective_workers
from shortage_sync.db.base import utcnow
from shortage_sync.db.repositories import product_repo
from shortage_sync.models.registry import RegistryTables, ShortageEntry
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ReconciledProduct, UpsertOutcome, UpsertReport
from shortage_sync.registry.parser import classify_status
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.sync.reconciler")

RETURN_DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d")
RESOLVED_DETAILS = "No longer listed in the availability file"


def synthetic_name(product_code: str) -> str:
    return f"Product {product_code}"


def parse_return_date(value: str) -> Optional[date]:
    value = (value or "").strip()
    for fmt in RETURN_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def shortage_details(entry: ShortageEntry) -> str:
    parts = [entry.status_text or "listed", f"level {entry.level}"]
    if entry.start_date:
        parts.append(f"since {entry.start_date}")
    if entry.end_date:
        parts.append(f"until {entry.end_date}")
    if entry.info_url:
        parts.append(entry.info_url)
    return "; ".join(parts)


def reconcile(tables: RegistryTables, fallback: Optional[ProductStatus] = None) -> list[ReconciledProduct]:
    """One record per code seen in the catalog or the shortage file.

    The shortage file is authoritative for status even when the catalog lacks the row.
    Without a shortage table the status is left undecided (None).
    """
    records = []
    catalog = tables.catalog or {}
    compositions = tables.compositions or {}
    for code in tables.product_codes():
        entry = catalog.get(code)
        composition = compositions.get(code)
        record = ReconciledProduct(
            product_code=code,
            name=entry.name if entry and entry.name else None,
            fallback_name=synthetic_name(code),
            form=entry.form if entry else None,
            route=entry.route if entry else None,
            manufacturer=entry.manufacturer if entry else None,
            active_ingredient=composition.substance if composition else None,
        )
        if tables.shortages is not None:
            shortage = tables.shortages.get(code)
            if shortage is None:
                record.status = ProductStatus.AVAILABLE
            else:
                record.status = classify_status(shortage.status_text, fallback)
                record.expected_return_date = parse_return_date(shortage.end_date)
                record.details = shortage_details(shortage)
        records.append(record)
    return records


def _tally(report: UpsertReport, outcome: UpsertOutcome) -> None:
    if outcome.created:
        report.created += 1
    else:
        report.updated += 1
        if not outcome.status_changed:
            report.unchanged += 1
    if outcome.status_changed:
        report.history_records += 1
        report.record_move(outcome.status)


def apply_reconciliation(
    records: list[ReconciledProduct],
    shortage_codes: Optional[set[str]],
    source: str = STATUS_HISTORY_SOURCE,
    workers: int = SYNC_UPSERT_WORKERS,
    now: datetime | None = None,
) -> UpsertReport:
    """Upsert every record, then reset products absent from shortage_codes.

    The reset runs only after every upsert of this pass has committed, and is skipped
    when shortage_codes is None (shortage file unavailable). Failures are collected
    as (product_code, error) pairs; one bad row never stops the pass.
    """
    now = now or utcnow()
    report = UpsertReport()
    pool_size = effective_workers(workers)
    log = logger.bind(records=len(records), workers=pool_size)
    log.info("reconciler.upsert.start")

    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="upsert") as pool:
        futures = {pool.submit(product_repo.upsert_product, record, source, now): record for record in records}
        for future in as_completed(futures):
            record = futures[future]
            try:
                _tally(report, future.result())
            except Exception as e:
                report.failures.append((record.product_code, str(e)))
                log.warning("reconciler.upsert_failed", product_code=record.product_code, error=str(e))

    if shortage_codes is None:
        log.warning("reconciler.reset_skipped", reason="shortage_table_unavailable")
    else:
        _reset_resolved(report, shortage_codes, source, now)

    report.failures.sort()
    log.info(
        "reconciler.upsert.complete",
        created=report.created,
        updated=report.updated,
        unchanged=report.unchanged,
        history_records=report.history_records,
        failures=len(report.failures),
    )
    return report


def _reset_resolved(report: UpsertReport, shortage_codes: set[str], source: str, now: datetime) -> None:
    try:
        candidates = [code for code in product_repo.list_codes_not_available() if code not in shortage_codes]
    except Exception as e:
        report.failures.append(("*", f"reset query failed: {e}"))
        logger.exception("reconciler.reset_query_failed")
        return
    for code in candidates:
        try:
            outcome = product_repo.mark_available(code, source, RESOLVED_DETAILS, now)
        except Exception as e:
            report.failures.append((code, str(e)))
            logger.warning("reconciler.reset_failed", product_code=code, error=str(e))
            continue
        if outcome is not None:
            report.updated += 1
            report.history_records += 1
            report.record_move(ProductStatus.AVAILABLE)
    if candidates:
        logger.info("reconciler.reset_complete", reset=len(candidates))
