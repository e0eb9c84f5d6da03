"""Withdrawal and topup request decisions.

Each request leaves ``pending`` exactly once. The status change is a guarded
transition; when it reports no change the caller gets an "already processed"
answer instead of an error, so double clicks and retries are harmless.

Decisions that also move money run as a short saga: money first, then the
status transition. If the transition loses to a concurrent decision, the money
movement is reversed with a compensating ledger entry. A crash between the two
steps leaves the wallet credited and the request pending; that case is logged
and needs manual reconciliation.
"""
import logging
from typing import Any, Optional, Protocol

from app.domain.common.errors import NotFoundError
from app.domain.wallet.ledger import WalletLedger
from app.domain.wallet.models import (
    REQUEST_COMPLETED,
    REQUEST_REJECTED,
    TX_REFUND,
    TX_REFUND_REVERSAL,
    TX_TOPUP,
    TX_TOPUP_REVERSAL,
    Adjustment,
    PaymentRequest,
    Wallet,
)
from app.services.notification_service import Notifier

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = {"success": False, "already_processed": True}


class PaymentRequestStore(Protocol):
    kind: str

    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        ...

    async def resolve(self, request_id: str, status: str, **extra: Any) -> bool:
        ...


def format_amount(amount: float, symbol: str = "฿") -> str:
    return f"{symbol}{round(amount or 0):,}"


class PaymentRequestService:
    """Approve or reject withdrawal and topup requests."""

    def __init__(
        self,
        withdrawals: PaymentRequestStore,
        topups: PaymentRequestStore,
        ledger: WalletLedger,
        notifier: Notifier,
        currency_symbol: str = "฿",
    ):
        self.withdrawals = withdrawals
        self.topups = topups
        self.ledger = ledger
        self.notifier = notifier
        self.currency_symbol = currency_symbol

    async def _load(self, store: PaymentRequestStore, request_id: str) -> PaymentRequest:
        req = await store.get(request_id)
        if req is None:
            raise NotFoundError(f"{store.kind}_request", request_id)
        return req

    async def _compensate(self, adjustment: Adjustment, user_id: str, kind: str, request_id: str) -> None:
        logger.warning(
            "Request %s was decided concurrently; reversing %s on wallet %s",
            request_id, adjustment.amount, adjustment.wallet_id,
        )
        await self.ledger.adjust(
            Wallet(id=adjustment.wallet_id, user_id=user_id),
            -adjustment.amount,
            kind,
            f"Reversal for request {request_id} (already decided by another admin)",
        )

    async def approve_withdrawal(self, request_id: str, transfer_slip_url: Optional[str] = None) -> dict:
        """pending -> completed. The amount already left the wallet when the request was made."""
        req = await self._load(self.withdrawals, request_id)
        if not req.is_pending:
            return dict(ALREADY_PROCESSED)
        changed = await self.withdrawals.resolve(
            request_id, REQUEST_COMPLETED, transfer_slip_url=transfer_slip_url or None
        )
        if not changed:
            return dict(ALREADY_PROCESSED)
        await self.notifier.notify([
            {
                "user_id": req.user_id,
                "title": "Withdrawal approved",
                "body": f"Your withdrawal of {format_amount(req.amount, self.currency_symbol)} was approved",
                "type": "admin_approve_withdrawal",
                "data": {
                    "type": "admin_approve_withdrawal",
                    "request_id": request_id,
                    "amount": str(req.amount),
                },
            }
        ])
        return {"success": True}

    async def reject_withdrawal(self, request_id: str, reason: str) -> dict:
        """Refund the held amount, then pending -> rejected with the reason as admin note."""
        req = await self._load(self.withdrawals, request_id)
        if not req.is_pending:
            return dict(ALREADY_PROCESSED)
        refund = await self.ledger.credit_user(
            req.user_id,
            req.amount,
            TX_REFUND,
            f"Refund for rejected withdrawal: {reason}",
        )
        try:
            changed = await self.withdrawals.resolve(request_id, REQUEST_REJECTED, admin_note=reason)
        except Exception:
            logger.error(
                "Withdrawal %s refunded to wallet %s but status update failed; needs reconciliation",
                request_id, refund.wallet_id,
            )
            raise
        if not changed:
            await self._compensate(refund, req.user_id, TX_REFUND_REVERSAL, request_id)
            return dict(ALREADY_PROCESSED)
        await self.notifier.notify([
            {
                "user_id": req.user_id,
                "title": "Withdrawal rejected",
                "body": f"Your withdrawal of {format_amount(req.amount, self.currency_symbol)} was rejected: {reason}",
                "type": "admin_reject_withdrawal",
                "data": {
                    "type": "admin_reject_withdrawal",
                    "request_id": request_id,
                    "amount": str(req.amount),
                    "reason": reason,
                },
            }
        ])
        return {"success": True}

    async def approve_topup(
        self, request_id: str, user_id: Optional[str] = None, amount: Optional[float] = None
    ) -> dict:
        """Credit the requester's wallet, then pending -> completed."""
        req = await self._load(self.topups, request_id)
        if not req.is_pending:
            return dict(ALREADY_PROCESSED)
        target = req.user_id or user_id
        value = req.amount or amount or 0
        credit = await self.ledger.credit_user(
            target,
            value,
            TX_TOPUP,
            f"Topup approved by admin ({format_amount(value, self.currency_symbol)})",
        )
        try:
            changed = await self.topups.resolve(request_id, REQUEST_COMPLETED)
        except Exception:
            logger.error(
                "Topup %s credited to wallet %s but status update failed; needs reconciliation",
                request_id, credit.wallet_id,
            )
            raise
        if not changed:
            await self._compensate(credit, target, TX_TOPUP_REVERSAL, request_id)
            return dict(ALREADY_PROCESSED)
        await self.notifier.notify([
            {
                "user_id": target,
                "title": "Topup completed",
                "body": f"Your topup of {format_amount(value, self.currency_symbol)} was approved",
                "type": "admin_approve_topup",
                "data": {
                    "type": "admin_approve_topup",
                    "request_id": request_id,
                    "amount": str(value),
                },
            }
        ])
        return {"success": True}

    async def reject_topup(self, request_id: str, reason: Optional[str] = None) -> dict:
        """pending -> rejected. No money moved, so no pre-read is needed."""
        changed = await self.topups.resolve(request_id, REQUEST_REJECTED, admin_note=reason or "")
        if not changed:
            return dict(ALREADY_PROCESSED)
        return {"success": True}
