"""
Best-effort notification fan-out.

Call ``notify_targets`` (or a ``NotificationFanout`` bound to a session) from any
state change that needs to tell users about it. A row is a dict with
``user_id``, ``title``, ``body`` and optionally ``type`` and ``data``.

Rows missing a target, title or body are dropped. The rest go in with one
batched insert. An insert failure is logged and swallowed: notifications never
block or undo the state transition that produced them.
"""
import logging
from typing import Any, Iterable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.db.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)

NotificationRow = dict[str, Any]


class Notifier(Protocol):
    """Anything that accepts notification rows and reports how many were stored."""

    async def notify(self, rows: Iterable[NotificationRow]) -> int:
        ...


def deliverable(rows: Iterable[Optional[NotificationRow]]) -> list[NotificationRow]:
    """Rows that have a target, a title and a body."""
    return [
        row for row in rows
        if row and row.get("user_id") and row.get("title") and row.get("body")
    ]


async def notify_targets(session: AsyncSession, rows: Iterable[Optional[NotificationRow]]) -> int:
    """Insert deliverable rows in one batch. Returns the number inserted (0 on failure)."""
    payload = deliverable(rows)
    if not payload:
        return 0
    repo = NotificationRepository(session)
    try:
        return await repo.insert_many(payload)
    except Exception as e:
        await session.rollback()
        logger.warning("Notification insert failed (%d rows): %s", len(payload), e)
        return 0


class NotificationFanout:
    """Session-bound Notifier."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def notify(self, rows: Iterable[Optional[NotificationRow]]) -> int:
        return await notify_targets(self.session, rows)
