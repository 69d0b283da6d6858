"""Registry Parser: turn tab separated lines into tables keyed by product code.

Malformed (short) lines are skipped silently; they never reach the run report.
Composition keeps the first active substance per product, shortage keeps the last
row per product. Both rules are explicit merge strategies below.
"""

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Optional, TypeVar

from shortage_sync.config import SHORTAGE_FALLBACK_STATUS
from shortage_sync.models.registry import CatalogEntry, CompositionEntry, ShortageEntry
from shortage_sync.models.status import ProductStatus
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.registry.parser")

T = TypeVar("T")


class MergeStrategy(str, Enum):
    """Which row survives when a file lists the same product code more than once."""

    FIRST_WINS = "first_wins"
    LAST_WINS = "last_wins"


# CIS_bdpm.txt
CATALOG_MIN_COLUMNS = 11
CATALOG_COL_CODE, CATALOG_COL_NAME, CATALOG_COL_FORM, CATALOG_COL_ROUTE = 0, 1, 2, 3
CATALOG_COL_MANUFACTURER = 10
CATALOG_MERGE = MergeStrategy.LAST_WINS

# CIS_COMPO_bdpm.txt
COMPOSITION_MIN_COLUMNS = 7
COMPOSITION_COL_CODE, COMPOSITION_COL_SUBSTANCE, COMPOSITION_COL_NATURE = 0, 3, 6
ACTIVE_SUBSTANCE_FLAG = "SA"
# Combination drugs list several active substances; only the first is kept.
COMPOSITION_MERGE = MergeStrategy.FIRST_WINS

# CIS_CIP_Dispo_Spec.txt
SHORTAGE_MIN_COLUMNS = 5
SHORTAGE_COL_CODE, SHORTAGE_COL_LEVEL, SHORTAGE_COL_STATUS = 0, 2, 3
SHORTAGE_COL_START, SHORTAGE_COL_END, SHORTAGE_COL_URL = 4, 5, 7
# Later rows are the most recent entry for a product.
SHORTAGE_MERGE = MergeStrategy.LAST_WINS


def split_fields(line: str) -> list[str]:
    """Split a record on tabs and trim each field."""
    return [field.strip() for field in line.split("\t")]


def _field(parts: list[str], index: int) -> str:
    return parts[index] if index < len(parts) else ""


def _parse_table(
    lines: Iterable[str],
    min_columns: int,
    build: Callable[[list[str]], Optional[T]],
    merge: MergeStrategy,
    table_name: str,
) -> dict[str, T]:
    table: dict[str, T] = {}
    skipped = 0
    for line in lines:
        parts = split_fields(line)
        if len(parts) < min_columns or not parts[0]:
            skipped += 1
            continue
        row = build(parts)
        if row is None:
            continue
        code = parts[0]
        if merge is MergeStrategy.FIRST_WINS and code in table:
            continue
        table[code] = row
    if skipped:
        logger.debug("parser.lines_skipped", table=table_name, skipped=skipped)
    return table


def _build_catalog(parts: list[str]) -> CatalogEntry:
    return CatalogEntry(
        product_code=parts[CATALOG_COL_CODE],
        name=parts[CATALOG_COL_NAME],
        form=parts[CATALOG_COL_FORM],
        route=parts[CATALOG_COL_ROUTE],
        manufacturer=parts[CATALOG_COL_MANUFACTURER],
    )


def _build_composition(parts: list[str]) -> Optional[CompositionEntry]:
    if parts[COMPOSITION_COL_NATURE] != ACTIVE_SUBSTANCE_FLAG:
        return None
    return CompositionEntry(
        product_code=parts[COMPOSITION_COL_CODE],
        substance=parts[COMPOSITION_COL_SUBSTANCE],
    )


def parse_level(value: str) -> int:
    """Leading integer of the severity column; 0 when unparsable."""
    digits = ""
    for ch in value.strip():
        if ch.isdigit() or (ch == "-" and not digits):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def _build_shortage(parts: list[str]) -> ShortageEntry:
    return ShortageEntry(
        product_code=parts[SHORTAGE_COL_CODE],
        level=parse_level(parts[SHORTAGE_COL_LEVEL]),
        status_text=parts[SHORTAGE_COL_STATUS],
        start_date=parts[SHORTAGE_COL_START],
        end_date=_field(parts, SHORTAGE_COL_END),
        info_url=_field(parts, SHORTAGE_COL_URL),
    )


def parse_catalog(lines: Iterable[str], merge: MergeStrategy = CATALOG_MERGE) -> dict[str, CatalogEntry]:
    """Catalog rows with at least 11 columns: code, name, form, route, manufacturer."""
    return _parse_table(lines, CATALOG_MIN_COLUMNS, _build_catalog, merge, "catalog")


def parse_compositions(
    lines: Iterable[str], merge: MergeStrategy = COMPOSITION_MERGE
) -> dict[str, CompositionEntry]:
    """Active-substance rows (nature flag SA) with at least 7 columns."""
    return _parse_table(lines, COMPOSITION_MIN_COLUMNS, _build_composition, merge, "composition")


def parse_shortages(lines: Iterable[str], merge: MergeStrategy = SHORTAGE_MERGE) -> dict[str, ShortageEntry]:
    """Availability rows with at least 5 columns."""
    return _parse_table(lines, SHORTAGE_MIN_COLUMNS, _build_shortage, merge, "shortage")


def fallback_status() -> ProductStatus:
    """Configured status for shortage rows whose text matches no known keyword."""
    try:
        status = ProductStatus(SHORTAGE_FALLBACK_STATUS)
    except ValueError:
        logger.warning("parser.invalid_fallback_status", value=SHORTAGE_FALLBACK_STATUS)
        return ProductStatus.TENSION
    if status is ProductStatus.AVAILABLE:
        # A listed product always has some supply problem.
        return ProductStatus.TENSION
    return status


def classify_status(status_text: str, fallback: Optional[ProductStatus] = None) -> ProductStatus:
    """Map shortage-file text to a status: "rupture" -> SHORTAGE, "tension" -> TENSION, else fallback."""
    text = (status_text or "").lower()
    if "rupture" in text:
        return ProductStatus.SHORTAGE
    if "tension" in text:
        return ProductStatus.TENSION
    return fallback if fallback is not None else fallback_status()
