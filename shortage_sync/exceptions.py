"""Error taxonomy for the sync pass.

Per-item errors (UpsertFailure, DeliveryFailure) are collected and returned to the
caller; only RunAbort unwinds a whole pass.
"""


class ShortageSyncError(Exception):
    """Base class for all sync errors."""


class SourceUnavailable(ShortageSyncError):
    """A registry file could not be fetched (HTTP error, timeout, missing local file)."""

    def __init__(self, file_key: str, reason: str):
        self.file_key = file_key
        self.reason = reason
        super().__init__(f"{file_key}: source unavailable: {reason}")


class DecodeError(ShortageSyncError):
    """Raw registry bytes could not be decoded to text."""

    def __init__(self, file_key: str, reason: str):
        self.file_key = file_key
        self.reason = reason
        super().__init__(f"{file_key}: decode failed: {reason}")


class UpsertFailure(ShortageSyncError):
    """Storage write failed for one product."""

    def __init__(self, product_code: str, reason: str):
        self.product_code = product_code
        self.reason = reason
        super().__init__(f"Error processing {product_code}: {reason}")


class DeliveryFailure(ShortageSyncError):
    """One delivery endpoint rejected a notification."""

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Delivery to {endpoint} failed: {reason}")


class RunAbort(ShortageSyncError):
    """The pass could not complete (e.g. storage unreachable); the whole run is failed.

    `report` carries whatever the pass had gathered before it stopped.
    """

    def __init__(self, message: str, report=None):
        self.report = report
        super().__init__(message)


class SyncAlreadyRunning(ShortageSyncError):
    """Another sync run is still in progress."""

    def __init__(self, run_id: int):
        self.run_id = run_id
        super().__init__(f"Sync run {run_id} is still in progress")
