"""Wallet, ledger entry and idempotency key repository."""
import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import generate_id, utcnow
from app.domain.wallet.models import Wallet, WalletTransaction
from app.infra.db.models.wallet import (
    LedgerIdempotencyKeyModel,
    WalletModel,
    WalletTransactionModel,
)
from app.infra.db.transitions import store_errors

logger = logging.getLogger(__name__)


class WalletRepository:
    """Wallet repository. Every write commits on its own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, wallet_id: str) -> Optional[Wallet]:
        """Get wallet by id."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(WalletModel).where(WalletModel.id == wallet_id)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_by_user(self, user_id: str) -> Optional[Wallet]:
        """Get the wallet owned by ``user_id``."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(WalletModel).where(WalletModel.user_id == user_id)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def read_balance(self, wallet_id: str) -> Optional[float]:
        """Fresh balance read straight from the store."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(WalletModel.balance).where(WalletModel.id == wallet_id)
            )
            value = result.scalar_one_or_none()
        return None if value is None else float(value)

    async def create_if_absent(self, user_id: str) -> Wallet:
        """Create the user's wallet with zero balance; on a concurrent create, return the winner's."""
        existing = await self.get_by_user(user_id)
        if existing:
            return existing
        model = WalletModel(id=generate_id(), user_id=user_id, balance=0.0)
        self.session.add(model)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.info("Wallet for %s created concurrently, re-reading", user_id)
            winner = await self.get_by_user(user_id)
            if winner is None:
                raise
            return winner
        return model.to_entity()

    async def set_balance(self, wallet_id: str, balance: float) -> None:
        """Unconditional balance write."""
        async with store_errors(self.session):
            await self.session.execute(
                update(WalletModel)
                .where(WalletModel.id == wallet_id)
                .values(balance=balance, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

    async def compare_and_set_balance(self, wallet_id: str, expected: float, balance: float) -> bool:
        """Write ``balance`` only if the stored balance still equals ``expected``."""
        async with store_errors(self.session):
            result = await self.session.execute(
                update(WalletModel)
                .where(WalletModel.id == wallet_id, WalletModel.balance == expected)
                .values(balance=balance, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount == 1

    async def append_transaction(
        self,
        wallet_id: str,
        amount: float,
        type: str,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> WalletTransaction:
        """Append a ledger entry."""
        model = WalletTransactionModel(
            id=generate_id(),
            wallet_id=wallet_id,
            amount=amount,
            type=type,
            description=description,
            idempotency_key=idempotency_key,
            created_at=utcnow(),
        )
        async with store_errors(self.session):
            self.session.add(model)
            await self.session.commit()
        return model.to_entity()

    async def list_transactions(self, wallet_id: str, limit: int = 100) -> list[WalletTransaction]:
        """Ledger entries for a wallet, oldest first."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(WalletTransactionModel)
                .where(WalletTransactionModel.wallet_id == wallet_id)
                .order_by(WalletTransactionModel.created_at.asc())
                .limit(limit)
            )
            return [m.to_entity() for m in result.scalars().all()]

    async def claim_key(self, key: str, scope: str) -> bool:
        """Claim an idempotency key. False when it was already claimed."""
        self.session.add(LedgerIdempotencyKeyModel(key=key, scope=scope, created_at=utcnow()))
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return False
        return True

    async def release_key(self, key: str) -> None:
        """Give a key back after the action it guarded failed."""
        async with store_errors(self.session):
            await self.session.execute(
                delete(LedgerIdempotencyKeyModel).where(LedgerIdempotencyKeyModel.key == key)
            )
            await self.session.commit()
