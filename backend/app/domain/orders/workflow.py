"""Admin order workflow: assign, reassign, cancel, force-cancel, rebroadcast."""
import logging
from typing import Any, Optional, Protocol

from app.domain.common.errors import ConflictError, NotFoundError
from app.domain.common.types import Clock, isoformat, short_id, utcnow
from app.domain.orders.models import (
    MERCHANT_SERVICE_TYPES,
    STATUS_CANCELLED,
    STATUS_DRIVER_ACCEPTED,
    Booking,
    awaiting_pickup_status,
)
from app.domain.wallet.ledger import WalletLedger
from app.domain.wallet.models import TX_REFUND
from app.services.notification_service import NotificationRow, Notifier

logger = logging.getLogger(__name__)

FORCE_CANCEL_PREFIX = "admin_force_cancel: "


class BookingStore(Protocol):
    async def get(self, booking_id: str) -> Optional[Booking]:
        ...

    async def update_fields(self, booking_id: str, values: dict[str, Any]) -> bool:
        ...


class OrderWorkflow:
    """Direct admin overrides on bookings. None of these check the prior status."""

    def __init__(
        self,
        bookings: BookingStore,
        ledger: WalletLedger,
        notifier: Notifier,
        clock: Optional[Clock] = None,
    ):
        self.bookings = bookings
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock or utcnow

    async def _load(self, booking_id: str) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("booking", booking_id)
        return booking

    async def assign(self, order_id: str, driver_id: str) -> dict:
        now = self.clock()
        await self.bookings.update_fields(order_id, {
            "driver_id": driver_id,
            "status": STATUS_DRIVER_ACCEPTED,
            "assigned_at": now,
            "updated_at": now,
        })
        return {"success": True}

    async def reassign(
        self,
        order_id: str,
        new_driver_id: str,
        update_fields: Optional[dict[str, Any]] = None,
    ) -> dict:
        """Move the booking to another driver and tell everyone involved.

        Reassigning to the driver the booking already has is refused and leaves
        the booking untouched.
        """
        booking = await self._load(order_id)
        previous_driver_id = booking.driver_id
        if previous_driver_id == new_driver_id:
            raise ConflictError("The selected driver is already assigned to this order")

        now = self.clock()
        values: dict[str, Any] = {"driver_id": new_driver_id, "assigned_at": now}
        values.update(update_fields or {})
        await self.bookings.update_fields(order_id, values)

        inserted = await self.notifier.notify(
            self.reassign_notifications(booking, new_driver_id, values, now)
        )
        return {"success": True, "notified": inserted}

    @staticmethod
    def reassign_notifications(
        booking: Booking, new_driver_id: str, values: dict[str, Any], when
    ) -> list[NotificationRow]:
        sid = short_id(booking.id)
        previous_driver_id = booking.driver_id
        base = {
            "type": "admin_reassign",
            "booking_id": booking.id,
            "new_driver_id": new_driver_id,
            "old_driver_id": previous_driver_id or "",
            "service_type": booking.service_type or "",
            "status_after": values.get("status") or booking.status or "",
            "reassigned_at": isoformat(when),
        }
        rows: list[NotificationRow] = [
            {
                "user_id": new_driver_id,
                "title": "New job assigned by admin",
                "body": f"You have been assigned job #{sid} by an admin",
                "type": "admin_reassign_new_driver",
                "data": {**base, "role": "new_driver"},
            }
        ]
        if previous_driver_id and previous_driver_id != new_driver_id:
            rows.append({
                "user_id": previous_driver_id,
                "title": "Job reassigned by admin",
                "body": f"Job #{sid} was moved to another driver",
                "type": "admin_reassign_old_driver",
                "data": {**base, "role": "old_driver"},
            })
        if booking.customer_id:
            rows.append({
                "user_id": booking.customer_id,
                "title": "Driver changed by admin",
                "body": f"Order #{sid} has a new driver",
                "type": "admin_reassign_customer",
                "data": {**base, "role": "customer"},
            })
        if booking.merchant_id and booking.service_type in MERCHANT_SERVICE_TYPES:
            rows.append({
                "user_id": booking.merchant_id,
                "title": "Order driver changed",
                "body": f"Order #{sid} has a new driver assigned by admin",
                "type": "admin_reassign_merchant",
                "data": {**base, "role": "merchant"},
            })
        return rows

    async def cancel(self, order_id: str, reason: Optional[str] = None) -> dict:
        await self.bookings.update_fields(order_id, {
            "status": STATUS_CANCELLED,
            "cancellation_reason": reason or "",
            "updated_at": self.clock(),
        })
        return {"success": True}

    async def force_cancel(
        self,
        order_id: str,
        customer_id: Optional[str] = None,
        price: Optional[float] = None,
        reason: Optional[str] = None,
        do_refund: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        """Cancel, then optionally refund ``price`` to the customer.

        The refund is opt-in and best-effort: a failed refund is logged and
        reported, the cancellation stays.
        """
        await self.bookings.update_fields(order_id, {
            "status": STATUS_CANCELLED,
            "cancellation_reason": FORCE_CANCEL_PREFIX + (reason or ""),
            "updated_at": self.clock(),
        })
        result: dict[str, Any] = {"success": True, "refunded": False}
        if not (do_refund and customer_id and price and price > 0):
            return result
        try:
            refund = await self.ledger.credit_user_once(
                customer_id,
                price,
                TX_REFUND,
                f"Refund for cancelled order #{short_id(order_id)} (Admin)",
                idempotency_key,
                "force_cancel_order",
            )
        except Exception as e:
            logger.error("Refund error for order %s: %s", order_id, e, exc_info=True)
            return result
        if refund is None:
            result["already_processed"] = True
        else:
            result["refunded"] = True
        return result

    async def rebroadcast(self, order_id: str, service_type: Optional[str] = None) -> dict:
        """Drop the driver and put the booking back up for assignment."""
        await self.bookings.update_fields(order_id, {
            "driver_id": None,
            "assigned_at": None,
            "status": awaiting_pickup_status(service_type),
            "updated_at": self.clock(),
        })
        return {"success": True}
