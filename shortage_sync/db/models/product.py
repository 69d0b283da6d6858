"""ORM models for products and their append-only status history."""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shortage_sync.db.base import Base, TimestampMixin, utcnow
from shortage_sync.models.status import ProductStatus


class Product(Base, TimestampMixin):
    """A regulator-tracked medication, keyed by its immutable CIS code. Never hard-deleted."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    form: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    route: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    active_ingredient: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ProductStatus.AVAILABLE.value, index=True
    )
    last_checked: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    expected_return_date: Mapped[Optional[date]] = mapped_column(nullable=True)

    history: Mapped[list["StatusHistory"]] = relationship("StatusHistory", back_populates="product")


class StatusHistory(Base):
    """One row per status change. Rows are never updated or deleted."""

    __tablename__ = "status_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    previous_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    product: Mapped["Product"] = relationship("Product", back_populates="history")
