"""Wallet, ledger and payment request database models."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.domain.common.types import utcnow
from app.domain.wallet.models import PaymentRequest, Wallet, WalletTransaction
from app.infra.db.base import Base


class WalletModel(Base):
    """Running balance per account (one wallet per user)."""

    __tablename__ = "wallets"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    balance = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_wallets_user_id"),
    )

    def to_entity(self) -> Wallet:
        """Convert to domain entity."""
        return Wallet(id=self.id, user_id=self.user_id, balance=float(self.balance or 0))


class WalletTransactionModel(Base):
    """Append-only ledger entry. Never updated or deleted."""

    __tablename__ = "wallet_transactions"

    id = Column(String, primary_key=True)
    wallet_id = Column(String, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Float, nullable=False)  # signed
    type = Column(String, nullable=False)  # topup|refund|admin_adjustment|refund_reversal|topup_reversal|...
    description = Column(Text, nullable=True)
    idempotency_key = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    wallet = relationship("WalletModel", backref="transactions")

    __table_args__ = (
        Index("ix_wallet_transactions_wallet_id", "wallet_id"),
        Index("ix_wallet_transactions_created_at", "created_at"),
    )

    def to_entity(self) -> WalletTransaction:
        """Convert to domain entity."""
        return WalletTransaction(
            id=self.id,
            wallet_id=self.wallet_id,
            amount=float(self.amount),
            type=self.type,
            description=self.description,
            idempotency_key=self.idempotency_key,
            created_at=self.created_at,
        )


class LedgerIdempotencyKeyModel(Base):
    """Claimed idempotency keys for balance-affecting admin actions."""

    __tablename__ = "ledger_idempotency_keys"

    key = Column(String, primary_key=True)
    scope = Column(String, nullable=False)  # action name that claimed the key
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class _PaymentRequestColumns:
    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending|completed|rejected
    admin_note = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def to_entity(self) -> PaymentRequest:
        """Convert to domain entity."""
        return PaymentRequest(
            id=self.id,
            user_id=self.user_id,
            amount=float(self.amount or 0),
            status=self.status,
            admin_note=self.admin_note,
            processed_at=self.processed_at,
        )


class WithdrawalRequestModel(_PaymentRequestColumns, Base):
    """Driver/merchant request to withdraw wallet funds (amount already held from the wallet)."""

    __tablename__ = "withdrawal_requests"

    transfer_slip_url = Column(String, nullable=True)


class TopupRequestModel(_PaymentRequestColumns, Base):
    """User request to credit the wallet after an off-platform payment."""

    __tablename__ = "topup_requests"

    slip_url = Column(String, nullable=True)
