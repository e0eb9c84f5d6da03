"""Scheduled dispatch scanner.

Run periodically. Each run has two independent phases, each a
scan -> notify -> mark cycle over at most ``batch_size`` bookings, soonest first:

* reminder: upcoming bookings due within ``[now, now + reminder_window]`` that
  have no ``scheduled_reminder_sent_at`` yet; customer and merchant are told.
* release: upcoming bookings with ``scheduled_at <= now`` and no
  ``scheduled_release_processed_at``; customer and merchant are told, and for
  driver-dispatched bookings the online drivers (capped) are told too.

The stamps are the only protection against double processing. A failed
notification insert is logged and does not stop the phase; a failed read or
mark aborts the run, and unmarked bookings are picked up again next time.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from app.domain.common.types import Clock, isoformat, short_id, utcnow
from app.domain.orders.models import DRIVER_SERVICE_TYPES, SERVICE_RIDE, Booking
from app.services.notification_service import NotificationRow, Notifier

logger = logging.getLogger(__name__)

REMINDER_TYPE = "scheduled_order_reminder"
RELEASE_TYPE = "scheduled_order_released"
REMINDER_STAMP = "scheduled_reminder_sent_at"
RELEASE_STAMP = "scheduled_release_processed_at"


class ScheduledBookingStore(Protocol):
    async def list_reminder_candidates(self, now: datetime, until: datetime, limit: int) -> list[Booking]:
        ...

    async def list_release_candidates(self, now: datetime, limit: int) -> list[Booking]:
        ...

    async def mark_stamp(self, booking_ids: list[str], stamp: str, now: datetime) -> int:
        ...


class DriverDirectory(Protocol):
    async def list_online_driver_ids(self, vehicle_type: Optional[str], limit: int) -> list[str]:
        ...


class ScanResult(BaseModel):
    """Counts reported back to the trigger, keyed the way the trigger expects."""

    remindersScanned: int = 0
    remindersMarked: int = 0
    releasesScanned: int = 0
    releasesMarked: int = 0
    notificationsInserted: int = 0


def format_local_time(value: datetime, tz_name: str) -> str:
    """DD/MM/YYYY HH:MM in the display timezone (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name)).strftime("%d/%m/%Y %H:%M")


class ScheduledDispatchScanner:
    """One instance per run; holds no state between runs."""

    def __init__(
        self,
        bookings: ScheduledBookingStore,
        drivers: DriverDirectory,
        notifier: Notifier,
        *,
        reminder_window_minutes: int = 15,
        batch_size: int = 300,
        driver_cap: int = 120,
        display_timezone: str = "Asia/Bangkok",
        clock: Optional[Clock] = None,
    ):
        self.bookings = bookings
        self.drivers = drivers
        self.notifier = notifier
        self.reminder_window = timedelta(minutes=reminder_window_minutes)
        self.batch_size = batch_size
        self.driver_cap = driver_cap
        self.display_timezone = display_timezone
        self.clock = clock or utcnow

    async def run(self, now: Optional[datetime] = None) -> tuple[datetime, ScanResult]:
        now = now or self.clock()
        result = ScanResult()
        await self._reminder_phase(now, result)
        await self._release_phase(now, result)
        logger.info("Scheduled scan at %s: %s", isoformat(now), result.model_dump())
        return now, result

    async def _reminder_phase(self, now: datetime, result: ScanResult) -> None:
        candidates = await self.bookings.list_reminder_candidates(
            now, now + self.reminder_window, self.batch_size
        )
        result.remindersScanned = len(candidates)
        for booking in candidates:
            result.notificationsInserted += await self.notifier.notify(self.reminder_rows(booking))
        if candidates:
            await self.bookings.mark_stamp([b.id for b in candidates], REMINDER_STAMP, now)
            result.remindersMarked = len(candidates)

    async def _release_phase(self, now: datetime, result: ScanResult) -> None:
        candidates = await self.bookings.list_release_candidates(now, self.batch_size)
        result.releasesScanned = len(candidates)
        for booking in candidates:
            rows = self.release_rows(booking)
            rows.extend(await self.driver_rows(booking))
            result.notificationsInserted += await self.notifier.notify(rows)
        if candidates:
            await self.bookings.mark_stamp([b.id for b in candidates], RELEASE_STAMP, now)
            result.releasesMarked = len(candidates)

    def _base_data(self, booking: Booking, type: str) -> dict:
        return {
            "booking_id": booking.id,
            "service_type": booking.service_type,
            "scheduled_at": isoformat(booking.scheduled_at) if booking.scheduled_at else None,
            "type": type,
        }

    def reminder_rows(self, booking: Booking) -> list[NotificationRow]:
        when = format_local_time(booking.scheduled_at, self.display_timezone)
        data = self._base_data(booking, REMINDER_TYPE)
        rows: list[NotificationRow] = [{
            "user_id": booking.customer_id,
            "title": "Your scheduled order is coming up",
            "body": f"Your order starts at {when}",
            "type": REMINDER_TYPE,
            "data": data,
        }]
        if booking.merchant_id:
            rows.append({
                "user_id": booking.merchant_id,
                "title": "Scheduled order coming up",
                "body": f"Order #{short_id(booking.id)} starts at {when}",
                "type": REMINDER_TYPE,
                "data": data,
            })
        return rows

    def release_rows(self, booking: Booking) -> list[NotificationRow]:
        when = format_local_time(booking.scheduled_at, self.display_timezone)
        data = self._base_data(booking, RELEASE_TYPE)
        rows: list[NotificationRow] = [{
            "user_id": booking.customer_id,
            "title": "Your scheduled order has started",
            "body": f"Your order has started ({when})",
            "type": RELEASE_TYPE,
            "data": data,
        }]
        if booking.merchant_id:
            rows.append({
                "user_id": booking.merchant_id,
                "title": "Scheduled order is due",
                "body": f"You can start order #{short_id(booking.id)} now",
                "type": RELEASE_TYPE,
                "data": data,
            })
        return rows

    async def driver_rows(self, booking: Booking) -> list[NotificationRow]:
        """Job-available rows for online drivers; empty when the lookup fails."""
        if booking.service_type not in DRIVER_SERVICE_TYPES:
            return []
        vehicle_type = booking.vehicle_type if booking.service_type == SERVICE_RIDE else None
        try:
            driver_ids = await self.drivers.list_online_driver_ids(vehicle_type, self.driver_cap)
        except Exception as e:
            logger.error("Driver lookup failed for booking %s: %s", booking.id, e)
            return []
        title = (
            "Scheduled ride is now open"
            if booking.service_type == SERVICE_RIDE
            else "Scheduled parcel job is now open"
        )
        data = self._base_data(booking, RELEASE_TYPE)
        return [
            {
                "user_id": driver_id,
                "title": title,
                "body": f"Job #{short_id(booking.id)} is ready to accept",
                "type": RELEASE_TYPE,
                "data": data,
            }
            for driver_id in driver_ids
        ]
