"""Product repository: idempotent per-product upsert with status history."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select

from shortage_sync.db import get_session
from shortage_sync.db.base import utcnow
from shortage_sync.db.models.product import Product, StatusHistory
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ReconciledProduct, UpsertOutcome

# Status a product is assumed to have had before it was first seen: not in the shortage file.
IMPLICIT_PREVIOUS_STATUS = ProductStatus.AVAILABLE


def count_products() -> int:
    with get_session() as session:
        return session.scalar(select(func.count(Product.id))) or 0


def _append_history(
    session,
    product: Product,
    status: ProductStatus,
    previous: Optional[ProductStatus],
    source: str,
    details: Optional[str],
    now: datetime,
) -> int:
    entry = StatusHistory(
        product_id=product.id,
        status=status.value,
        previous_status=previous.value if previous is not None else None,
        source=source,
        details=details,
        created_at=now,
    )
    session.add(entry)
    session.flush()
    return entry.id


def upsert_product(record: ReconciledProduct, source: str, now: datetime | None = None) -> UpsertOutcome:
    """Create or update one product in its own transaction.

    History is appended (and flushed) before the status column changes, and only when
    the status differs from the stored one, so replaying the same input appends nothing.
    """
    now = now or utcnow()
    with get_session() as session:
        product = session.scalars(
            select(Product).where(Product.product_code == record.product_code)
        ).first()
        created = product is None
        if created:
            product = Product(
                product_code=record.product_code,
                name=record.name or record.fallback_name,
                status=(record.status or ProductStatus.UNKNOWN).value,
            )
            session.add(product)
            session.flush()
            previous = IMPLICIT_PREVIOUS_STATUS if record.status is not None else None
        else:
            previous = ProductStatus(product.status)
            if record.name:
                product.name = record.name

        for attr in ("form", "route", "manufacturer", "active_ingredient"):
            value = getattr(record, attr)
            if value:
                setattr(product, attr, value)

        new_status = record.status if record.status is not None else ProductStatus(product.status)
        history_id = None
        if record.status is not None and previous is not None and new_status != previous:
            history_id = _append_history(session, product, new_status, previous, source, record.details, now)
        product.status = new_status.value
        if record.status is not None:
            product.expected_return_date = (
                record.expected_return_date if new_status != ProductStatus.AVAILABLE else None
            )
        product.last_checked = now
        session.flush()
        return UpsertOutcome(
            product_id=product.id,
            product_code=product.product_code,
            created=created,
            previous_status=None if created else previous,
            status=new_status,
            history_id=history_id,
        )


def list_codes_not_available() -> list[str]:
    """Codes of every product whose stored status is not AVAILABLE."""
    with get_session() as session:
        return list(
            session.scalars(
                select(Product.product_code)
                .where(Product.status != ProductStatus.AVAILABLE.value)
                .order_by(Product.product_code)
            ).all()
        )


def mark_available(
    product_code: str, source: str, details: Optional[str] = None, now: datetime | None = None
) -> Optional[UpsertOutcome]:
    """Reset one product to AVAILABLE with a history entry. None if already AVAILABLE or missing."""
    now = now or utcnow()
    with get_session() as session:
        product = session.scalars(select(Product).where(Product.product_code == product_code)).first()
        if product is None or product.status == ProductStatus.AVAILABLE.value:
            return None
        previous = ProductStatus(product.status)
        history_id = _append_history(
            session, product, ProductStatus.AVAILABLE, previous, source, details, now
        )
        product.status = ProductStatus.AVAILABLE.value
        product.expected_return_date = None
        product.last_checked = now
        return UpsertOutcome(
            product_id=product.id,
            product_code=product.product_code,
            created=False,
            previous_status=previous,
            status=ProductStatus.AVAILABLE,
            history_id=history_id,
        )


def _to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "product_code": product.product_code,
        "name": product.name,
        "form": product.form,
        "route": product.route,
        "manufacturer": product.manufacturer,
        "active_ingredient": product.active_ingredient,
        "status": product.status,
        "last_checked": product.last_checked,
        "expected_return_date": product.expected_return_date,
    }


def get_by_code(product_code: str) -> Optional[dict[str, Any]]:
    with get_session() as session:
        product = session.scalars(select(Product).where(Product.product_code == product_code)).first()
        return _to_dict(product) if product is not None else None


def get_many_by_code(product_codes: list[str]) -> dict[str, dict[str, Any]]:
    if not product_codes:
        return {}
    with get_session() as session:
        rows = session.scalars(select(Product).where(Product.product_code.in_(product_codes))).all()
        return {row.product_code: _to_dict(row) for row in rows}

