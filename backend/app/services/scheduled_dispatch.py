"""Wires the scheduled dispatch scanner to the database and the configured limits."""
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import Clock
from app.domain.dispatch.scanner import ScanResult, ScheduledDispatchScanner
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.repositories.profile_repo import ProfileRepository
from app.services.notification_service import NotificationFanout
from app.settings import get_settings


def build_scanner(session: AsyncSession, clock: Optional[Clock] = None) -> ScheduledDispatchScanner:
    s = get_settings()
    return ScheduledDispatchScanner(
        BookingRepository(session),
        ProfileRepository(session),
        NotificationFanout(session),
        reminder_window_minutes=s.scheduled_reminder_window_minutes,
        batch_size=s.scheduled_batch_size,
        driver_cap=s.scheduled_driver_cap,
        display_timezone=s.display_timezone,
        clock=clock,
    )


async def run_scheduled_scan(session: AsyncSession, clock: Optional[Clock] = None) -> tuple[datetime, ScanResult]:
    """One scanner pass against ``session``."""
    return await build_scanner(session, clock).run()
