"""Stateless comparison of two registry snapshots.

Files are treated as sets of whole lines, so reordering between snapshots never
produces a change.
"""

from collections.abc import Iterable

from shortage_sync.models.registry import ShortageEntry
from shortage_sync.registry.parser import SHORTAGE_MIN_COLUMNS, parse_shortages, split_fields


def _line_set(lines: Iterable[str]) -> set[str]:
    return {line for line in lines if line.strip()}


def compute_lines_diff(old_lines: Iterable[str], new_lines: Iterable[str]) -> tuple[int, int]:
    """Return (added, removed) whole-line counts between two snapshots."""
    old_set = _line_set(old_lines)
    new_set = _line_set(new_lines)
    return len(new_set - old_set), len(old_set - new_set)


def _shortage_keys(lines: Iterable[str]) -> set[tuple[str, str]]:
    keys = set()
    for line in lines:
        parts = split_fields(line)
        if len(parts) >= SHORTAGE_MIN_COLUMNS and parts[0]:
            keys.add((parts[0], parts[4]))
    return keys


def detect_new_shortages(old_lines: Iterable[str], new_lines: Iterable[str]) -> list[ShortageEntry]:
    """Winning shortage rows of the new file whose (product_code, start_date) key is new.

    Last-wins is applied to the whole new file first, so a product only counts when
    the row the reconciler keeps for it is the new one.
    """
    old_keys = _shortage_keys(old_lines)
    entries = parse_shortages(new_lines)
    return [entry for entry in entries.values() if entry.diff_key not in old_keys]
