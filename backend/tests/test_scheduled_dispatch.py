"""Scheduled dispatch: reminder/release phases, driver fan-out and the trigger endpoint."""
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from app.domain.dispatch.scanner import (
    RELEASE_TYPE,
    REMINDER_TYPE,
    ScheduledDispatchScanner,
    format_local_time,
)
from app.infra.db.models import BookingModel, NotificationModel
from app.services.scheduled_dispatch import build_scanner

from conftest import NOW, SCHEDULER_SECRET, SERVICE_ROLE_KEY, add_booking, add_profile, auth_headers, fetch

SCHEDULER_HEADERS = {"x-scheduler-secret": SCHEDULER_SECRET}


async def _notifications(session, type_: str) -> list[NotificationModel]:
    session.expire_all()
    result = await session.execute(select(NotificationModel).where(NotificationModel.type == type_))
    return list(result.scalars().all())


async def test_reminder_fires_once(db_session):
    booking_id = await add_booking(
        db_session, customer_id="customer-1", merchant_id="merchant-1", service_type="food",
        status="pending_merchant", scheduled_at=NOW + timedelta(minutes=10),
    )

    _, first = await build_scanner(db_session, lambda: NOW).run()
    _, second = await build_scanner(db_session, lambda: NOW + timedelta(minutes=1)).run()

    assert (first.remindersScanned, first.remindersMarked) == (1, 1)
    assert first.notificationsInserted == 2
    assert second.remindersScanned == 0
    assert second.notificationsInserted == 0

    row = await fetch(db_session, BookingModel, booking_id)
    assert row.scheduled_reminder_sent_at is not None
    assert row.scheduled_release_processed_at is None
    notes = await _notifications(db_session, REMINDER_TYPE)
    assert sorted(n.user_id for n in notes) == ["customer-1", "merchant-1"]
    # 12:10 UTC is 19:10 in Bangkok
    assert "01/03/2026 19:10" in notes[0].body


async def test_reminder_window_bounds(db_session):
    inside = await add_booking(db_session, scheduled_at=NOW + timedelta(minutes=15))
    outside = await add_booking(db_session, scheduled_at=NOW + timedelta(minutes=16))
    cancelled = await add_booking(db_session, status="cancelled", scheduled_at=NOW + timedelta(minutes=5))

    _, result = await build_scanner(db_session, lambda: NOW).run()

    assert result.remindersScanned == 1
    assert (await fetch(db_session, BookingModel, inside)).scheduled_reminder_sent_at is not None
    assert (await fetch(db_session, BookingModel, outside)).scheduled_reminder_sent_at is None
    assert (await fetch(db_session, BookingModel, cancelled)).scheduled_reminder_sent_at is None


async def test_release_boundary(db_session):
    due = await add_booking(db_session, service_type="food", scheduled_at=NOW - timedelta(seconds=1))
    not_yet = await add_booking(db_session, service_type="food", scheduled_at=NOW + timedelta(seconds=1))

    _, result = await build_scanner(db_session, lambda: NOW).run()

    assert (result.releasesScanned, result.releasesMarked) == (1, 1)
    assert (await fetch(db_session, BookingModel, due)).scheduled_release_processed_at is not None
    assert (await fetch(db_session, BookingModel, not_yet)).scheduled_release_processed_at is None

    _, later = await build_scanner(db_session, lambda: NOW + timedelta(seconds=2)).run()
    assert later.releasesScanned == 1
    assert (await fetch(db_session, BookingModel, not_yet)).scheduled_release_processed_at is not None


async def test_release_notifies_online_drivers_with_matching_vehicle(db_session):
    for i in range(3):
        await add_profile(db_session, f"car-{i}", role="driver", is_online=True, vehicle_type="car")
    await add_profile(db_session, "bike-0", role="driver", is_online=True, vehicle_type="motorbike")
    await add_profile(db_session, "car-offline", role="driver", is_online=False, vehicle_type="car")
    await add_booking(
        db_session, customer_id="customer-1", service_type="ride", vehicle_type="car",
        scheduled_at=NOW - timedelta(minutes=1),
    )

    _, result = await build_scanner(db_session, lambda: NOW).run()

    notes = await _notifications(db_session, RELEASE_TYPE)
    assert sorted(n.user_id for n in notes) == ["car-0", "car-1", "car-2", "customer-1"]
    assert result.notificationsInserted == 4


async def test_parcel_release_ignores_vehicle_and_respects_cap(db_session, test_settings):
    from app.settings import get_config_store

    get_config_store().update({"scheduled_driver_cap": 2})
    for i in range(4):
        await add_profile(db_session, f"driver-{i}", role="driver", is_online=True, vehicle_type="motorbike")
    await add_booking(
        db_session, customer_id="customer-1", service_type="parcel", vehicle_type="car",
        scheduled_at=NOW - timedelta(minutes=1),
    )

    await build_scanner(db_session, lambda: NOW).run()

    notes = await _notifications(db_session, RELEASE_TYPE)
    drivers = sorted(n.user_id for n in notes if n.user_id.startswith("driver-"))
    assert drivers == ["driver-0", "driver-1"]
    assert all(n.data["type"] == RELEASE_TYPE for n in notes)


async def test_food_release_does_not_notify_drivers(db_session):
    await add_profile(db_session, "driver-0", role="driver", is_online=True)
    await add_booking(
        db_session, customer_id="customer-1", merchant_id="merchant-1", service_type="food",
        scheduled_at=NOW - timedelta(minutes=1),
    )

    await build_scanner(db_session, lambda: NOW).run()

    notes = await _notifications(db_session, RELEASE_TYPE)
    assert sorted(n.user_id for n in notes) == ["customer-1", "merchant-1"]


async def test_each_phase_takes_the_soonest_bookings_up_to_the_batch_size(db_session, test_settings):
    from app.settings import get_config_store

    get_config_store().update({"scheduled_batch_size": 2})
    late_release = await add_booking(db_session, service_type="food", scheduled_at=NOW - timedelta(minutes=1))
    first_release = await add_booking(db_session, service_type="food", scheduled_at=NOW - timedelta(minutes=3))
    second_release = await add_booking(db_session, service_type="food", scheduled_at=NOW - timedelta(minutes=2))
    late_reminder = await add_booking(db_session, service_type="food", scheduled_at=NOW + timedelta(minutes=12))
    first_reminder = await add_booking(db_session, service_type="food", scheduled_at=NOW + timedelta(minutes=5))
    second_reminder = await add_booking(db_session, service_type="food", scheduled_at=NOW + timedelta(minutes=10))

    _, result = await build_scanner(db_session, lambda: NOW).run()

    assert (result.remindersScanned, result.remindersMarked) == (2, 2)
    assert (result.releasesScanned, result.releasesMarked) == (2, 2)
    for booking_id in (first_reminder, second_reminder):
        assert (await fetch(db_session, BookingModel, booking_id)).scheduled_reminder_sent_at is not None
    assert (await fetch(db_session, BookingModel, late_reminder)).scheduled_reminder_sent_at is None
    for booking_id in (first_release, second_release):
        assert (await fetch(db_session, BookingModel, booking_id)).scheduled_release_processed_at is not None
    assert (await fetch(db_session, BookingModel, late_release)).scheduled_release_processed_at is None

    _, rest = await build_scanner(db_session, lambda: NOW).run()
    assert (rest.remindersMarked, rest.releasesMarked) == (1, 1)


async def test_failed_mark_aborts_the_run_and_leaves_bookings_for_the_next_scan(client, db_session, monkeypatch):
    from app.domain.common.errors import UpstreamStoreError
    from app.infra.db.repositories.booking_repo import BookingRepository

    upcoming = await add_booking(db_session, customer_id="customer-1", scheduled_at=NOW + timedelta(minutes=5))
    due = await add_booking(
        db_session, customer_id="customer-2", service_type="food", scheduled_at=NOW - timedelta(minutes=1),
    )

    async def mark_fails(self, booking_ids, stamp, now):
        raise UpstreamStoreError("write timeout")

    monkeypatch.setattr(BookingRepository, "mark_stamp", mark_fails)
    resp = await client.post("/process-scheduled-orders", headers=SCHEDULER_HEADERS)

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "write timeout"}
    assert (await fetch(db_session, BookingModel, upcoming)).scheduled_reminder_sent_at is None
    assert (await fetch(db_session, BookingModel, due)).scheduled_release_processed_at is None
    # Reminders went out before the mark failed; the release phase never started
    assert len(await _notifications(db_session, REMINDER_TYPE)) == 1
    assert await _notifications(db_session, RELEASE_TYPE) == []

    monkeypatch.undo()
    _, retry = await build_scanner(db_session, lambda: NOW).run()

    assert (retry.remindersMarked, retry.releasesMarked) == (1, 1)
    assert (await fetch(db_session, BookingModel, upcoming)).scheduled_reminder_sent_at is not None
    assert len(await _notifications(db_session, REMINDER_TYPE)) == 2


class _Bookings:
    def __init__(self, reminders=(), releases=()):
        self.reminders = list(reminders)
        self.releases = list(releases)
        self.marked = []

    async def list_reminder_candidates(self, now, until, limit):
        return self.reminders[:limit]

    async def list_release_candidates(self, now, limit):
        return self.releases[:limit]

    async def mark_stamp(self, booking_ids, stamp, now):
        self.marked.append((stamp, list(booking_ids)))
        return len(booking_ids)


class _BrokenDrivers:
    async def list_online_driver_ids(self, vehicle_type, limit):
        raise RuntimeError("profiles unavailable")


class _DroppingNotifier:
    async def notify(self, rows):
        return 0


async def test_failed_driver_lookup_and_notification_do_not_stop_marking():
    from app.domain.orders.models import Booking

    booking = Booking(
        id="b-1", customer_id="c-1", service_type="ride", status="pending",
        scheduled_at=NOW - timedelta(minutes=1),
    )
    bookings = _Bookings(releases=[booking])
    scanner = ScheduledDispatchScanner(bookings, _BrokenDrivers(), _DroppingNotifier(), clock=lambda: NOW)

    now, result = await scanner.run()

    assert now == NOW
    assert bookings.marked == [("scheduled_release_processed_at", ["b-1"])]
    assert result.releasesMarked == 1
    assert result.notificationsInserted == 0


def test_format_local_time():
    assert format_local_time(datetime(2026, 12, 31, 17, 30, tzinfo=timezone.utc), "Asia/Bangkok") == "01/01/2027 00:30"
    assert format_local_time(datetime(2026, 3, 1, 9, 5), "UTC") == "01/03/2026 09:05"


async def test_endpoint_runs_a_scan_with_scheduler_secret(client, db_session):
    await add_booking(db_session, scheduled_at=NOW + timedelta(minutes=5))

    resp = await client.post("/process-scheduled-orders", headers=SCHEDULER_HEADERS)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["now"] == "2026-03-01T12:00:00.000Z"
    assert body["result"] == {
        "remindersScanned": 1,
        "remindersMarked": 1,
        "releasesScanned": 0,
        "releasesMarked": 0,
        "notificationsInserted": 1,
    }


async def test_endpoint_accepts_service_role_key(client):
    resp = await client.post(
        "/process-scheduled-orders", headers={"Authorization": f"Bearer {SERVICE_ROLE_KEY}"}
    )
    assert resp.status_code == 200


async def test_endpoint_rejects_user_tokens_and_wrong_secret(client, admin_id):
    user = await client.post("/process-scheduled-orders", headers=auth_headers(admin_id))
    wrong = await client.post("/process-scheduled-orders", headers={"x-scheduler-secret": "nope"})
    missing = await client.post("/process-scheduled-orders")

    for resp in (user, wrong, missing):
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}


async def test_endpoint_without_any_secret_configured(client, test_settings):
    from app.settings import get_config_store

    get_config_store().update({"service_role_key": "", "scheduled_order_cron_secret": ""})
    resp = await client.post("/process-scheduled-orders", headers=SCHEDULER_HEADERS)
    assert resp.status_code == 500


async def test_endpoint_reports_scan_failure(client, monkeypatch):
    from app.api.dispatch import routes_scheduled

    async def broken(session, clock):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(routes_scheduled, "run_scheduled_scan", broken)
    resp = await client.post("/process-scheduled-orders", headers=SCHEDULER_HEADERS)

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "store unavailable"}


async def test_preflight(client):
    resp = await client.options("/process-scheduled-orders")
    assert resp.status_code == 200
    assert resp.text == "ok"
