"""Status history repository: read-only queries over the append-only change log."""

from datetime import datetime
from typing import Any

from sqlalchemy import select

from shortage_sync.db import get_session
from shortage_sync.db.models.product import Product, StatusHistory
from shortage_sync.models.status import ProductStatus
from shortage_sync.models.sync import ChangeEvent


def changes_since(since: datetime, until: datetime | None = None) -> list[ChangeEvent]:
    """One event per product for history rows created in [since, until]; the latest row wins."""
    with get_session() as session:
        q = (
            select(StatusHistory, Product)
            .join(Product, Product.id == StatusHistory.product_id)
            .where(StatusHistory.created_at >= since)
            .order_by(StatusHistory.created_at.desc(), StatusHistory.id.desc())
        )
        if until is not None:
            q = q.where(StatusHistory.created_at <= until)
        events: dict[int, ChangeEvent] = {}
        for entry, product in session.execute(q).all():
            if product.id in events:
                continue
            events[product.id] = ChangeEvent(
                product_id=product.id,
                product_code=product.product_code,
                product_name=product.name,
                status=ProductStatus(entry.status),
                previous_status=ProductStatus(entry.previous_status) if entry.previous_status else None,
                detected_by="history",
            )
        return list(events.values())


def list_for_product(product_code: str) -> list[dict[str, Any]]:
    """History rows of one product, oldest first."""
    with get_session() as session:
        q = (
            select(StatusHistory)
            .join(Product, Product.id == StatusHistory.product_id)
            .where(Product.product_code == product_code)
            .order_by(StatusHistory.created_at, StatusHistory.id)
        )
        return [
            {
                "id": row.id,
                "status": row.status,
                "previous_status": row.previous_status,
                "source": row.source,
                "details": row.details,
                "created_at": row.created_at,
            }
            for row in session.scalars(q).all()
        ]
