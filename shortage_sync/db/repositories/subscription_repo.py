"""Subscription repository: active alerts on a product with their owners' delivery endpoints."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from shortage_sync.db import get_session
from shortage_sync.db.base import as_utc, utcnow
from shortage_sync.db.models.user import Alert, User
from shortage_sync.models.status import AlertType


@dataclass
class SubscriptionTarget:
    """An active alert joined with its owner and the owner's active push tokens."""

    alert_id: int
    alert_type: AlertType
    last_notified: Optional[datetime]
    user_id: int
    user_email: str
    user_name: Optional[str]
    notify_push: bool
    notify_email: bool
    push_tokens: list[str] = field(default_factory=list)


def _alert_type(raw: str) -> Optional[AlertType]:
    try:
        return AlertType(raw)
    except ValueError:
        return None


def find_active_for_product(product_id: int) -> list[SubscriptionTarget]:
    """Active alerts on product_id, ordered by alert id. Unknown alert types are dropped."""
    with get_session() as session:
        q = (
            select(Alert)
            .where(Alert.product_id == product_id, Alert.is_active == True)  # noqa: E712
            .options(selectinload(Alert.user).selectinload(User.push_tokens))
            .order_by(Alert.id)
        )
        targets = []
        for alert in session.scalars(q).all():
            alert_type = _alert_type(alert.type)
            if alert_type is None:
                continue
            user = alert.user
            targets.append(
                SubscriptionTarget(
                    alert_id=alert.id,
                    alert_type=alert_type,
                    last_notified=as_utc(alert.last_notified),
                    user_id=user.id,
                    user_email=user.email,
                    user_name=user.name,
                    notify_push=user.notify_push,
                    notify_email=user.notify_email,
                    push_tokens=[t.token for t in user.push_tokens if t.is_active],
                )
            )
        return targets


def touch_last_notified(alert_ids: list[int], when: datetime | None = None) -> int:
    """Set last_notified on the given alerts; returns the number of rows updated."""
    if not alert_ids:
        return 0
    with get_session() as session:
        result = session.execute(
            update(Alert).where(Alert.id.in_(alert_ids)).values(last_notified=when or utcnow())
        )
        return result.rowcount or 0

