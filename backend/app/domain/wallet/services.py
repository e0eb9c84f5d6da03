"""Admin wallet operations: manual adjustment and manual topup."""
from typing import Optional

from app.domain.common.errors import ValidationError
from app.domain.wallet.ledger import WalletLedger
from app.domain.wallet.models import TX_ADMIN_ADJUSTMENT, TX_TOPUP
from app.domain.wallet.requests import ALREADY_PROCESSED, format_amount


class WalletAdminService:
    """Direct balance changes made by an admin, with optional replay protection."""

    def __init__(self, ledger: WalletLedger, currency_symbol: str = "฿"):
        self.ledger = ledger
        self.currency_symbol = currency_symbol

    async def adjust(
        self,
        user_id: str,
        amount: float,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        """Apply a signed delta; the result reports the balance before and after."""
        if not amount:
            raise ValidationError("Missing 'amount'")
        if not await self.ledger.claim(idempotency_key, "wallet_adjust"):
            return dict(ALREADY_PROCESSED)
        try:
            wallet = await self.ledger.ensure_wallet(user_id)
            before_hint = await self.ledger.read_balance(wallet.id)
            description = (
                f"{reason or 'Admin adjustment'} (admin adjusted balance from "
                f"{format_amount(before_hint, self.currency_symbol)} to "
                f"{format_amount(before_hint + amount, self.currency_symbol)})"
            )
            result = await self.ledger.adjust(
                wallet, amount, TX_ADMIN_ADJUSTMENT, description, idempotency_key
            )
        except Exception:
            await self.ledger.release(idempotency_key)
            raise
        return {"success": True, "before": result.before, "after": result.after}

    async def manual_topup(
        self,
        user_id: str,
        amount: float,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        """Credit the wallet with a positive amount."""
        if not amount:
            raise ValidationError("Missing 'amount'")
        result = await self.ledger.credit_user_once(
            user_id,
            amount,
            TX_TOPUP,
            f"{description or 'Manual topup by admin'} (Admin Manual)",
            idempotency_key,
            "manual_topup",
        )
        if result is None:
            return dict(ALREADY_PROCESSED)
        return {"success": True, "before": result.before, "after": result.after}
