"""Order domain models."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

SERVICE_RIDE = "ride"
SERVICE_PARCEL = "parcel"
SERVICE_FOOD = "food"

# Service types fulfilled through a merchant (kitchen first, then a driver)
MERCHANT_SERVICE_TYPES = frozenset({SERVICE_FOOD})
# Service types dispatched straight to drivers
DRIVER_SERVICE_TYPES = frozenset({SERVICE_RIDE, SERVICE_PARCEL})

STATUS_PENDING = "pending"
STATUS_PENDING_MERCHANT = "pending_merchant"
STATUS_PREPARING = "preparing"
STATUS_DRIVER_ACCEPTED = "driver_accepted"
STATUS_CANCELLED = "cancelled"

# Statuses a scheduled booking can hold while waiting for its time slot
UPCOMING_STATUSES = (STATUS_PENDING, STATUS_PENDING_MERCHANT, STATUS_PREPARING)


def awaiting_pickup_status(service_type: Optional[str]) -> str:
    """Initial status a booking returns to when it is rebroadcast."""
    if service_type in MERCHANT_SERVICE_TYPES:
        return STATUS_PENDING_MERCHANT
    return STATUS_PENDING


class Booking(BaseModel):
    """Booking as seen by the control plane."""

    id: str
    customer_id: str
    merchant_id: Optional[str] = None
    driver_id: Optional[str] = None
    service_type: str
    vehicle_type: Optional[str] = None
    status: str
    price: Optional[float] = None
    scheduled_at: Optional[datetime] = None
    scheduled_reminder_sent_at: Optional[datetime] = None
    scheduled_release_processed_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
