"""Wallet domain models."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

# Ledger entry kinds
TX_TOPUP = "topup"
TX_REFUND = "refund"
TX_ADMIN_ADJUSTMENT = "admin_adjustment"
TX_REFUND_REVERSAL = "refund_reversal"
TX_TOPUP_REVERSAL = "topup_reversal"

# Payment request statuses
REQUEST_PENDING = "pending"
REQUEST_COMPLETED = "completed"
REQUEST_REJECTED = "rejected"


class Wallet(BaseModel):
    """Running balance for one account."""

    id: str
    user_id: str
    balance: float = 0.0


class WalletTransaction(BaseModel):
    """Immutable ledger entry."""

    id: str
    wallet_id: str
    amount: float
    type: str
    description: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None


class Adjustment(BaseModel):
    """Outcome of a ledger adjustment."""

    wallet_id: str
    amount: float
    before: float
    after: float
    transaction_id: str


class PaymentRequest(BaseModel):
    """Withdrawal or topup request awaiting an admin decision."""

    id: str
    user_id: str
    amount: float
    status: str
    admin_note: Optional[str] = None
    processed_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == REQUEST_PENDING
