"""Sync Orchestrator: one scheduled pass from registry files to notifications.

    start run -> fetch files -> parse -> reconcile + upsert -> detect changes
              -> snapshot -> fan out -> finalize run

A missing source file degrades the pass; a storage failure aborts it (RunAbort).
Another pass still in progress turns this one into a no-op (skipped report).
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from time import perf_counter
from typing import Optional

from opentelemetry.trace import Status, StatusCode
from sqlalchemy.exc import SQLAlchemyError

from shortage_sync.config import (
    CHANGE_DETECTION_STRATEGY,
    NOTIFY_WORKER_COUNT,
    STATUS_HISTORY_SOURCE,
    SYNC_STALE_RUN_SECONDS,
    SYNC_UPSERT_WORKERS,
)
from shortage_sync.db.base import utcnow
from shortage_sync.db.repositories import product_repo, sync_run_repo
from shortage_sync.exceptions import DecodeError, RunAbort, SourceUnavailable, SyncAlreadyRunning
from shortage_sync.models.registry import RegistryDocument, RegistryTables
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ChangeEvent, FanOutSummary, FileFetchSummary, SyncReport
from shortage_sync.notify.fanout import fan_out
from shortage_sync.notify.protocol import EmailSender, PushProvider
from shortage_sync.notify.providers import get_email_sender, get_push_provider
from shortage_sync.registry.diff import compute_lines_diff
from shortage_sync.registry.parser import classify_status, parse_catalog, parse_compositions, parse_shortages
from shortage_sync.registry.reader import CATALOG, COMPOSITION, FILE_KEYS, SHORTAGE, RegistryReader
from shortage_sync.registry.snapshots import SnapshotStore
from shortage_sync.sync.change_detector import (
    AUTO,
    STATEFUL,
    STRATEGIES,
    detect_file_diff,
    detect_stateful,
    resolve_strategy,
)
from shortage_sync.sync.reconciler import apply_reconciliation, reconcile
from shortage_sync.utils.logger import bind_context, get_logger, unbind_context
from shortage_sync.utils.tracing import get_tracer

logger = get_logger("shortage_sync.sync.orchestrator")


@dataclass
class _FetchedSources:
    documents: dict[str, Optional[RegistryDocument]] = field(default_factory=dict)
    previous_lines: dict[str, Optional[list[str]]] = field(default_factory=dict)


def _fetch_sources(reader: RegistryReader, snapshots: SnapshotStore, report: SyncReport) -> _FetchedSources:
    """Fetch the three files concurrently; an unavailable file is recorded, not raised."""
    fetched = _FetchedSources()
    with ThreadPoolExecutor(max_workers=len(FILE_KEYS), thread_name_prefix="fetch") as pool:
        futures = {key: pool.submit(reader.read, key) for key in FILE_KEYS}
    for key in FILE_KEYS:
        filename = reader.filename(key)
        summary = FileFetchSummary(file_key=key, filename=filename)
        previous = snapshots.previous_lines(filename)
        fetched.previous_lines[key] = previous
        summary.previous_lines = len(previous or [])
        try:
            document = futures[key].result()
        except (SourceUnavailable, DecodeError) as e:
            logger.warning("sync.source_unavailable", file_key=key, error=str(e))
            summary.error = str(e)
            report.errors.append(str(e))
            fetched.documents[key] = None
            report.files.append(summary)
            continue
        fetched.documents[key] = document
        summary.downloaded = True
        summary.new_lines = len(document.lines)
        summary.added_lines, summary.removed_lines = compute_lines_diff(previous or [], document.lines)
        report.files.append(summary)
    return fetched


def _parse_tables(documents: dict[str, Optional[RegistryDocument]]) -> RegistryTables:
    catalog = documents.get(CATALOG)
    composition = documents.get(COMPOSITION)
    shortage = documents.get(SHORTAGE)
    return RegistryTables(
        catalog=parse_catalog(catalog.lines) if catalog else None,
        compositions=parse_compositions(composition.lines) if composition else None,
        shortages=parse_shortages(shortage.lines) if shortage else None,
    )


def _count_shortage_entries(tables: RegistryTables, fallback: Optional[ProductStatus], report: SyncReport) -> None:
    for entry in (tables.shortages or {}).values():
        status = classify_status(entry.status_text, fallback)
        if status is ProductStatus.SHORTAGE:
            report.shortage_entries += 1
        elif status is ProductStatus.TENSION:
            report.tension_entries += 1


def _save_snapshots(snapshots: SnapshotStore, documents: dict[str, Optional[RegistryDocument]], report: SyncReport) -> None:
    for document in documents.values():
        if document is None:
            continue
        try:
            snapshots.save(document)
        except OSError as e:
            logger.warning("sync.snapshot_failed", file_key=document.file_key, error=str(e))
            report.errors.append(f"{document.file_key}: snapshot not saved: {e}")


def _detect_changes(
    strategy: str,
    had_products: bool,
    since: datetime,
    fetched: _FetchedSources,
    fallback: Optional[ProductStatus],
) -> tuple[str, list[ChangeEvent]]:
    resolved = resolve_strategy(strategy, had_products)
    if resolved == STATEFUL:
        # Reach back to the last pass that finished, so changes committed by an
        # aborted pass are still notified.
        last_completed = sync_run_repo.last_successful_completion()
        if last_completed is not None and last_completed < since:
            since = last_completed
        return resolved, detect_stateful(since)
    shortage = fetched.documents.get(SHORTAGE)
    if shortage is None:
        logger.warning("sync.file_diff_skipped", reason="shortage_file_unavailable")
        return resolved, []
    return resolved, detect_file_diff(fetched.previous_lines.get(SHORTAGE), shortage.lines, fallback)


async def _notify(
    events: list[ChangeEvent],
    push_provider: PushProvider,
    email_sender: EmailSender | None,
    worker_count: int,
    close_push: bool,
) -> FanOutSummary:
    try:
        return await fan_out(events, push_provider, email_sender, worker_count=worker_count)
    finally:
        aclose = getattr(push_provider, "aclose", None)
        if close_push and aclose is not None:
            await aclose()


def _run_summary(report: SyncReport) -> dict:
    return report.model_dump(
        mode="json",
        include={
            "strategy",
            "shortage_entries",
            "tension_entries",
            "moved_to",
            "change_events",
            "files",
            "notifications",
        },
    )


def _finalize(report: SyncReport, success: bool, start: float) -> None:
    report.success = success
    report.completed_at = utcnow()
    report.duration_ms = round((perf_counter() - start) * 1000, 2)
    sync_run_repo.finalize_run(
        report.sync_run_id,
        success=success,
        products_created=report.created,
        products_updated=report.updated,
        errors=report.errors,
        summary=_run_summary(report),
        completed_at=report.completed_at,
    )


def run_sync_pass(
    reader: RegistryReader | None = None,
    snapshots: SnapshotStore | None = None,
    push_provider: PushProvider | None = None,
    email_sender: EmailSender | None = None,
    strategy: str = CHANGE_DETECTION_STRATEGY,
    notify: bool = True,
    upsert_workers: int = SYNC_UPSERT_WORKERS,
    notify_workers: int = NOTIFY_WORKER_COUNT,
    stale_after_seconds: int = SYNC_STALE_RUN_SECONDS,
    fallback: Optional[ProductStatus] = None,
) -> SyncReport:
    """Run one sync pass and return its summary.

    Delivery channels default to the configured ones (PUSH_PROVIDER, EMAIL_PROVIDER).
    Raises RunAbort when storage fails mid-pass; the SyncRun row is finalized as
    failed first whenever it can be.
    """
    strategy = (strategy or AUTO).lower()
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown change detection strategy: {strategy!r}. Expected one of {STRATEGIES}")

    tracer = get_tracer()
    start = perf_counter()
    started_at = utcnow()
    report = SyncReport(started_at=started_at, strategy=strategy)

    try:
        run_id = sync_run_repo.start_run(stale_after_seconds, now=started_at)
    except SyncAlreadyRunning as e:
        logger.warning("sync.skipped", running_run_id=e.run_id)
        report.skipped = True
        report.sync_run_id = e.run_id
        report.errors.append(str(e))
        report.completed_at = utcnow()
        return report
    except SQLAlchemyError as e:
        logger.exception("sync.start_failed")
        report.errors.append(f"Could not record sync run: {e}")
        raise RunAbort(f"Could not record sync run: {e}", report) from e

    report.sync_run_id = run_id
    bind_context(sync_run_id=run_id)
    owns_reader = reader is None
    reader = reader or RegistryReader()
    snapshots = snapshots or SnapshotStore()
    logger.info("sync.start", strategy=strategy, notify=notify)

    try:
        with tracer.start_as_current_span(
            "sync_pass",
            attributes={"sync.run_id": run_id, "sync.strategy": strategy},
        ) as root_span:
            try:
                with tracer.start_as_current_span("fetch_sources"):
                    fetched = _fetch_sources(reader, snapshots, report)
                tables = _parse_tables(fetched.documents)
                _count_shortage_entries(tables, fallback, report)
                logger.info("sync.tables_parsed", **tables.counts())

                had_products = product_repo.count_products() > 0
                with tracer.start_as_current_span("reconcile"):
                    records = reconcile(tables, fallback)
                    shortage_codes = set(tables.shortages) if tables.shortages is not None else None
                    upsert = apply_reconciliation(
                        records, shortage_codes, source=STATUS_HISTORY_SOURCE, workers=upsert_workers
                    )
                report.created = upsert.created
                report.updated = upsert.updated
                report.moved_to = dict(upsert.moved_to)
                report.errors.extend(upsert.error_messages)

                with tracer.start_as_current_span("detect_changes"):
                    report.strategy, events = _detect_changes(
                        strategy, had_products, started_at, fetched, fallback
                    )
                report.change_events = len(events)
                root_span.set_attribute("sync.change_events", len(events))

                _save_snapshots(snapshots, fetched.documents, report)

                if notify and events:
                    with tracer.start_as_current_span("fan_out", attributes={"fanout.events": len(events)}):
                        provider = push_provider or get_push_provider()
                        sender = email_sender if email_sender is not None else get_email_sender()
                        report.notifications = asyncio.run(
                            _notify(events, provider, sender, notify_workers, close_push=push_provider is None)
                        )
                elif not notify:
                    logger.info("sync.notify_disabled", events=len(events))

                _finalize(report, success=tables.shortages is not None, start=start)
            except Exception as e:
                root_span.set_status(Status(StatusCode.ERROR, str(e)))
                root_span.record_exception(e)
                logger.exception("sync.aborted", error=str(e))
                report.errors.append(str(e))
                try:
                    _finalize(report, success=False, start=start)
                except SQLAlchemyError as finalize_error:
                    logger.error("sync.finalize_failed", error=str(finalize_error))
                raise RunAbort(str(e), report) from e
    finally:
        if owns_reader:
            reader.close()
        unbind_context("sync_run_id")

    logger.info(
        "sync.complete",
        success=report.success,
        created=report.created,
        updated=report.updated,
        shortage_entries=report.shortage_entries,
        tension_entries=report.tension_entries,
        change_events=report.change_events,
        errors=len(report.errors),
        duration_ms=report.duration_ms,
    )
    return report
