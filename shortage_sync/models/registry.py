"""Typed rows parsed from the three registry files."""

from typing import Optional

from pydantic import BaseModel, Field


class CatalogEntry(BaseModel):
    """Product catalog row (CIS_bdpm)."""

    product_code: str
    name: str
    form: str = ""
    route: str = ""
    manufacturer: str = ""


class CompositionEntry(BaseModel):
    """Active substance of a product (CIS_COMPO_bdpm, nature = SA)."""

    product_code: str
    substance: str


class ShortageEntry(BaseModel):
    """Availability row (CIS_CIP_Dispo_Spec). status_text is kept as published."""

    product_code: str
    level: int = 0
    status_text: str = ""
    start_date: str = ""
    end_date: str = ""
    info_url: str = ""

    @property
    def diff_key(self) -> tuple[str, str]:
        """Composite key used by the file-diff change detector."""
        return (self.product_code, self.start_date)


class RegistryTables(BaseModel):
    """The three parsed tables of one sync pass, keyed by product code.

    A table is None when its source file was unavailable for this pass, which is
    distinct from an empty table.
    """

    catalog: Optional[dict[str, CatalogEntry]] = None
    compositions: Optional[dict[str, CompositionEntry]] = None
    shortages: Optional[dict[str, ShortageEntry]] = None

    def product_codes(self) -> list[str]:
        """All codes seen in the catalog or shortage table, sorted for stable processing order."""
        codes: set[str] = set()
        if self.catalog:
            codes.update(self.catalog)
        if self.shortages:
            codes.update(self.shortages)
        return sorted(codes)

    def counts(self) -> dict[str, int]:
        return {
            "catalog": len(self.catalog or {}),
            "compositions": len(self.compositions or {}),
            "shortages": len(self.shortages or {}),
        }


class RegistryDocument(BaseModel):
    """One fetched registry file: decoded lines plus the raw bytes for snapshotting."""

    file_key: str
    filename: str
    raw: bytes = Field(repr=False)
    lines: list[str]
