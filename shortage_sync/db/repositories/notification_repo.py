"""Notification repository: in-app notification history rows."""

from typing import Any

from sqlalchemy import select

from shortage_sync.db import get_session
from shortage_sync.db.models.user import Notification


def insert_many(rows: list[dict[str, Any]]) -> list[int]:
    """Insert notification rows in one transaction; returns their ids in input order."""
    if not rows:
        return []
    with get_session() as session:
        notifications = [Notification(**row) for row in rows]
        session.add_all(notifications)
        session.flush()
        return [n.id for n in notifications]


def list_for_user(user_id: int) -> list[dict[str, Any]]:
    with get_session() as session:
        q = select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
        return [
            {
                "id": n.id,
                "type": n.type,
                "title": n.title,
                "message": n.message,
                "data": n.data,
                "sent_push": n.sent_push,
                "sent_email": n.sent_email,
                "created_at": n.created_at,
            }
            for n in session.scalars(q).all()
        ]
