"""Notification repository."""
from typing import Any, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import generate_id, utcnow
from app.infra.db.models.notification import NotificationModel


class NotificationRepository:
    """Notification repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_many(self, rows: List[dict[str, Any]]) -> int:
        """Insert notification rows in one commit. Returns the number inserted.

        Store errors propagate; the caller decides whether they are fatal.
        """
        if not rows:
            return 0
        now = utcnow()
        models = [
            NotificationModel(
                id=generate_id(),
                user_id=row["user_id"],
                title=row["title"],
                body=row["body"],
                type=row.get("type"),
                data=row.get("data"),
                is_read=False,
                created_at=now,
            )
            for row in rows
        ]
        self.session.add_all(models)
        await self.session.commit()
        return len(models)
