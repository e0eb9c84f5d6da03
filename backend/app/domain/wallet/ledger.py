"""Wallet ledger: running balance plus an append-only transaction log.

Every balance change goes through ``WalletLedger.adjust``. The store has no
multi-statement transactions, so the balance write and the log append are two
separate commits; a failure between them leaves the log short and must be
reconciled by hand.

Two write strategies are supported:

* ``optimistic`` (default): compare-and-set on the balance that was read,
  retried a bounded number of times when another writer got there first.
* ``read_write``: plain read, compute, write. Two concurrent adjustments of the
  same wallet can lose one delta. Kept selectable because it is how the wallet
  behaved historically.
"""
import logging
from typing import Optional, Protocol

from app.domain.common.errors import ConflictError, UpstreamStoreError
from app.domain.wallet.models import Adjustment, Wallet, WalletTransaction

logger = logging.getLogger(__name__)

STRATEGY_OPTIMISTIC = "optimistic"
STRATEGY_READ_WRITE = "read_write"


class WalletStore(Protocol):
    """Wallet persistence used by the ledger."""

    async def get_by_user(self, user_id: str) -> Optional[Wallet]:
        ...

    async def create_if_absent(self, user_id: str) -> Wallet:
        ...

    async def read_balance(self, wallet_id: str) -> Optional[float]:
        ...

    async def set_balance(self, wallet_id: str, balance: float) -> None:
        ...

    async def compare_and_set_balance(self, wallet_id: str, expected: float, balance: float) -> bool:
        ...

    async def append_transaction(
        self,
        wallet_id: str,
        amount: float,
        type: str,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> WalletTransaction:
        ...

    async def claim_key(self, key: str, scope: str) -> bool:
        ...

    async def release_key(self, key: str) -> None:
        ...


class WalletLedger:
    """All balance-affecting operations."""

    def __init__(self, store: WalletStore, strategy: str = STRATEGY_OPTIMISTIC, max_retries: int = 5):
        if strategy not in (STRATEGY_OPTIMISTIC, STRATEGY_READ_WRITE):
            raise ValueError(f"Unknown wallet adjust strategy: {strategy}")
        self.store = store
        self.strategy = strategy
        self.max_retries = max_retries

    async def ensure_wallet(self, user_id: str) -> Wallet:
        """Return the user's wallet, creating it with zero balance on first use."""
        wallet = await self.store.get_by_user(user_id)
        if wallet:
            return wallet
        return await self.store.create_if_absent(user_id)

    async def read_balance(self, wallet_id: str) -> float:
        balance = await self.store.read_balance(wallet_id)
        if balance is None:
            raise UpstreamStoreError(f"Wallet {wallet_id} disappeared")
        return balance

    async def adjust(
        self,
        wallet: Wallet,
        amount: float,
        kind: str,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Adjustment:
        """Apply a signed ``amount`` to the wallet, then append the log entry."""
        if self.strategy == STRATEGY_READ_WRITE:
            before = await self.read_balance(wallet.id)
            after = before + amount
            await self.store.set_balance(wallet.id, after)
        else:
            before, after = await self._compare_and_set(wallet.id, amount)
        tx = await self.store.append_transaction(
            wallet.id, amount, kind, description, idempotency_key=idempotency_key
        )
        return Adjustment(
            wallet_id=wallet.id,
            amount=amount,
            before=before,
            after=after,
            transaction_id=tx.id,
        )

    async def _compare_and_set(self, wallet_id: str, amount: float) -> tuple[float, float]:
        for attempt in range(1, self.max_retries + 1):
            before = await self.read_balance(wallet_id)
            after = before + amount
            if await self.store.compare_and_set_balance(wallet_id, before, after):
                return before, after
            logger.info(
                "Wallet %s balance moved during adjust (attempt %d/%d), retrying",
                wallet_id, attempt, self.max_retries,
            )
        raise ConflictError(f"Wallet {wallet_id} is busy, please retry")

    async def credit_user(
        self,
        user_id: str,
        amount: float,
        kind: str,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Adjustment:
        """ensure_wallet + adjust."""
        wallet = await self.ensure_wallet(user_id)
        return await self.adjust(wallet, amount, kind, description, idempotency_key)

    async def credit_user_once(
        self,
        user_id: str,
        amount: float,
        kind: str,
        description: Optional[str],
        idempotency_key: Optional[str],
        scope: str,
    ) -> Optional[Adjustment]:
        """credit_user guarded by an optional idempotency key.

        Returns None when the key was already used. The key is released again
        if the adjustment fails so the caller can retry.
        """
        if not await self.claim(idempotency_key, scope):
            return None
        try:
            return await self.credit_user(user_id, amount, kind, description, idempotency_key)
        except Exception:
            await self.release(idempotency_key)
            raise

    async def claim(self, idempotency_key: Optional[str], scope: str) -> bool:
        """Claim a replay-protection key. True when there is no key or it was free."""
        if not idempotency_key:
            return True
        claimed = await self.store.claim_key(idempotency_key, scope)
        if not claimed:
            logger.info("Idempotency key %s already used (%s)", idempotency_key, scope)
        return claimed

    async def release(self, idempotency_key: Optional[str]) -> None:
        if idempotency_key:
            await self.store.release_key(idempotency_key)
