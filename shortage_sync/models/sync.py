"""Results of a sync pass: upsert accumulator, change events, fan-out tallies, run summary."""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shortage_sync.exceptions import UpsertFailure
from shortage_sync.models.status import ProductStatus


class UpsertReport(BaseModel):
    """Outcome of reconciling one pass: counters plus (product_code, error) pairs."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    moved_to: dict[str, int] = Field(default_factory=lambda: {s.value: 0 for s in ProductStatus})
    history_records: int = 0
    failures: list[tuple[str, str]] = Field(default_factory=list)

    def record_move(self, status: ProductStatus) -> None:
        self.moved_to[status.value] = self.moved_to.get(status.value, 0) + 1

    @property
    def error_messages(self) -> list[str]:
        return [str(UpsertFailure(code, error)) for code, error in self.failures]


class ChangeEvent(BaseModel):
    """A product whose canonical status changed."""

    product_code: str
    product_name: str
    status: ProductStatus
    product_id: Optional[int] = None
    previous_status: Optional[ProductStatus] = None
    detected_by: Literal["history", "file_diff"] = "history"


# Shortages fan out first, then tensions, then everything else.
_STATUS_PRIORITY = {
    ProductStatus.SHORTAGE: 0,
    ProductStatus.TENSION: 1,
    ProductStatus.AVAILABLE: 2,
    ProductStatus.UNKNOWN: 3,
}


def order_change_events(events: list[ChangeEvent]) -> list[ChangeEvent]:
    """Stable sort: ruptures before tensions, then by product code."""
    return sorted(events, key=lambda e: (_STATUS_PRIORITY[e.status], e.product_code))


class PushResult(BaseModel):
    """Outcome of one multicast push request."""

    success_count: int = 0
    failure_count: int = 0
    failed_tokens: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class FanOutResult(BaseModel):
    """Fan-out outcome for one change event."""

    product_id: Optional[int] = None
    product_code: str
    status: ProductStatus
    matched_subscriptions: int = 0
    notified_users: int = 0
    push_attempted: int = 0
    push_succeeded: int = 0
    failed_tokens: list[str] = Field(default_factory=list)
    emails_attempted: int = 0
    emails_sent: int = 0
    emails_throttled: int = 0
    notification_ids: list[int] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class FanOutSummary(BaseModel):
    """Tallies across every change event of one pass."""

    events: int = 0
    notified_users: int = 0
    push_attempted: int = 0
    push_succeeded: int = 0
    emails_attempted: int = 0
    emails_sent: int = 0
    failed_tokens: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    results: list[FanOutResult] = Field(default_factory=list, exclude=True)

    def add(self, result: FanOutResult) -> None:
        self.results.append(result)
        self.events += 1
        self.notified_users += result.notified_users
        self.push_attempted += result.push_attempted
        self.push_succeeded += result.push_succeeded
        self.emails_attempted += result.emails_attempted
        self.emails_sent += result.emails_sent
        self.failed_tokens.extend(result.failed_tokens)
        self.errors.extend(result.errors)


class FileFetchSummary(BaseModel):
    """Per-file fetch report (line counts and set-of-lines delta against the previous snapshot)."""

    file_key: str
    filename: str
    downloaded: bool = False
    previous_lines: int = 0
    new_lines: int = 0
    added_lines: int = 0
    removed_lines: int = 0
    error: Optional[str] = None


class SyncReport(BaseModel):
    """Structured summary returned by one orchestrator invocation."""

    sync_run_id: Optional[int] = None
    success: bool = False
    skipped: bool = False
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: float = 0.0
    strategy: str = ""
    shortage_entries: int = 0
    tension_entries: int = 0
    created: int = 0
    updated: int = 0
    moved_to: dict[str, int] = Field(default_factory=dict)
    change_events: int = 0
    files: list[FileFetchSummary] = Field(default_factory=list)
    notifications: Optional[FanOutSummary] = None
    errors: list[str] = Field(default_factory=list)


class ReconciledProduct(BaseModel):
    """Canonical record for one product code after joining the three tables.

    A None attribute means "no information this pass": the stored value is kept.
    A None status means the shortage file was unavailable.
    """

    product_code: str
    name: Optional[str] = None
    fallback_name: str
    form: Optional[str] = None
    route: Optional[str] = None
    manufacturer: Optional[str] = None
    active_ingredient: Optional[str] = None
    status: Optional[ProductStatus] = None
    expected_return_date: Optional[date] = None
    details: Optional[str] = None


class UpsertOutcome(BaseModel):
    """What one product upsert did."""

    product_id: int
    product_code: str
    created: bool
    previous_status: Optional[ProductStatus] = None
    status: ProductStatus
    history_id: Optional[int] = None

    @property
    def status_changed(self) -> bool:
        return self.history_id is not None
