"""Best-effort notification fan-out."""
from sqlalchemy import select

from app.infra.db.models import NotificationModel
from app.services.notification_service import NotificationFanout, deliverable, notify_targets


def test_deliverable_drops_incomplete_rows():
    rows = [
        {"user_id": "u-1", "title": "T", "body": "B"},
        {"user_id": "", "title": "T", "body": "B"},
        {"user_id": "u-2", "title": "", "body": "B"},
        {"user_id": "u-3", "title": "T"},
        None,
    ]
    assert deliverable(rows) == [{"user_id": "u-1", "title": "T", "body": "B"}]


async def test_notify_targets_inserts_one_batch(db_session):
    inserted = await notify_targets(db_session, [
        {"user_id": "u-1", "title": "T", "body": "B", "type": "admin_approve_driver", "data": {"k": 1}},
        {"user_id": "u-2", "title": "T", "body": "B"},
        {"user_id": None, "title": "T", "body": "B"},
    ])

    assert inserted == 2
    result = await db_session.execute(select(NotificationModel).order_by(NotificationModel.user_id))
    rows = result.scalars().all()
    assert [(n.user_id, n.type, n.is_read) for n in rows] == [
        ("u-1", "admin_approve_driver", False),
        ("u-2", None, False),
    ]
    assert rows[0].data == {"k": 1}


async def test_nothing_deliverable_is_a_no_op(db_session):
    assert await NotificationFanout(db_session).notify([{"user_id": "u-1"}]) == 0


async def test_insert_failure_is_swallowed(db_session, monkeypatch):
    from app.infra.db.repositories.notification_repo import NotificationRepository

    async def broken(self, rows):
        raise RuntimeError("notifications table locked")

    monkeypatch.setattr(NotificationRepository, "insert_many", broken)

    assert await NotificationFanout(db_session).notify([{"user_id": "u-1", "title": "T", "body": "B"}]) == 0
