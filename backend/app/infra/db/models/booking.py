"""Booking (order) database model."""
from sqlalchemy import Column, DateTime, Float, Index, String, Text

from app.domain.common.types import utcnow
from app.domain.orders.models import Booking
from app.infra.db.base import Base


class BookingModel(Base):
    """Ride, parcel or food booking.

    scheduled_reminder_sent_at / scheduled_release_processed_at are sentinel
    stamps: each is written at most once by the scheduled dispatch scanner.
    """

    __tablename__ = "bookings"

    id = Column(String, primary_key=True)
    customer_id = Column(String, nullable=False, index=True)
    merchant_id = Column(String, nullable=True, index=True)
    driver_id = Column(String, nullable=True, index=True)
    service_type = Column(String, nullable=False)  # ride|parcel|food
    vehicle_type = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")
    price = Column(Float, nullable=True)
    pickup_address = Column(Text, nullable=True)
    destination_address = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    scheduled_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    scheduled_release_processed_at = Column(DateTime(timezone=True), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)

    __table_args__ = (
        Index("ix_bookings_status_scheduled_at", "status", "scheduled_at"),
    )

    def to_entity(self) -> Booking:
        """Convert to domain entity."""
        return Booking(
            id=self.id,
            customer_id=self.customer_id,
            merchant_id=self.merchant_id,
            driver_id=self.driver_id,
            service_type=self.service_type,
            vehicle_type=self.vehicle_type,
            status=self.status,
            price=self.price,
            scheduled_at=self.scheduled_at,
            scheduled_reminder_sent_at=self.scheduled_reminder_sent_at,
            scheduled_release_processed_at=self.scheduled_release_processed_at,
            assigned_at=self.assigned_at,
        )
