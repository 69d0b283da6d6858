"""Registry source files: reading, snapshots, parsing, diffing."""

from shortage_sync.registry.diff import compute_lines_diff, detect_new_shortages
from shortage_sync.registry.parser import (
    COMPOSITION_MERGE,
    SHORTAGE_MERGE,
    MergeStrategy,
    classify_status,
    parse_catalog,
    parse_compositions,
    parse_shortages,
)
from shortage_sync.registry.reader import (
    CATALOG,
    COMPOSITION,
    FILE_KEYS,
    SHORTAGE,
    RegistryReader,
    decode_registry_bytes,
)
from shortage_sync.registry.snapshots import SnapshotStore

__all__ = [
    "CATALOG",
    "COMPOSITION",
    "SHORTAGE",
    "FILE_KEYS",
    "RegistryReader",
    "decode_registry_bytes",
    "SnapshotStore",
    "MergeStrategy",
    "COMPOSITION_MERGE",
    "SHORTAGE_MERGE",
    "parse_catalog",
    "parse_compositions",
    "parse_shortages",
    "classify_status",
    "compute_lines_diff",
    "detect_new_shortages",
]
