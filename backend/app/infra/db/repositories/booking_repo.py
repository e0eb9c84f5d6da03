"""Booking repository."""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.orders.models import UPCOMING_STATUSES, Booking
from app.infra.db.models.booking import BookingModel
from app.infra.db.transitions import column_values, store_errors

# Stamp columns the scheduled dispatch scanner is allowed to write
SCHEDULE_STAMPS = ("scheduled_reminder_sent_at", "scheduled_release_processed_at")


class BookingRepository:
    """Booking repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: str) -> Optional[Booking]:
        """Get booking by id."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(BookingModel).where(BookingModel.id == booking_id)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def update_fields(self, booking_id: str, values: dict[str, Any]) -> bool:
        """Patch booking columns. Returns True if the booking exists."""
        values = column_values(BookingModel, values)
        async with store_errors(self.session):
            result = await self.session.execute(
                update(BookingModel)
                .where(BookingModel.id == booking_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def list_reminder_candidates(
        self, now: datetime, until: datetime, limit: int
    ) -> list[Booking]:
        """Upcoming scheduled bookings due within [now, until] that were not reminded yet."""
        q = (
            select(BookingModel)
            .where(
                BookingModel.status.in_(UPCOMING_STATUSES),
                BookingModel.scheduled_at.is_not(None),
                BookingModel.scheduled_at >= now,
                BookingModel.scheduled_at <= until,
                BookingModel.scheduled_reminder_sent_at.is_(None),
            )
            .order_by(BookingModel.scheduled_at.asc())
            .limit(limit)
        )
        async with store_errors(self.session):
            result = await self.session.execute(q)
            return [m.to_entity() for m in result.scalars().all()]

    async def list_release_candidates(self, now: datetime, limit: int) -> list[Booking]:
        """Scheduled bookings whose time has come and that were not released yet."""
        q = (
            select(BookingModel)
            .where(
                BookingModel.status.in_(UPCOMING_STATUSES),
                BookingModel.scheduled_at.is_not(None),
                BookingModel.scheduled_at <= now,
                BookingModel.scheduled_release_processed_at.is_(None),
            )
            .order_by(BookingModel.scheduled_at.asc())
            .limit(limit)
        )
        async with store_errors(self.session):
            result = await self.session.execute(q)
            return [m.to_entity() for m in result.scalars().all()]

    async def mark_stamp(self, booking_ids: list[str], stamp: str, now: datetime) -> int:
        """Set a schedule stamp (and updated_at) on every given booking in one write."""
        if stamp not in SCHEDULE_STAMPS:
            raise ValueError(f"Unknown schedule stamp: {stamp}")
        if not booking_ids:
            return 0
        async with store_errors(self.session):
            result = await self.session.execute(
                update(BookingModel)
                .where(BookingModel.id.in_(booking_ids))
                .values(**{stamp: now, "updated_at": now})
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount or 0
