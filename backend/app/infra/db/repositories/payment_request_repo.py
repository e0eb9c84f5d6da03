"""Withdrawal and topup request repository."""
from typing import Any, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.types import utcnow
from app.domain.wallet.models import REQUEST_PENDING, PaymentRequest
from app.infra.db.models.wallet import TopupRequestModel, WithdrawalRequestModel
from app.infra.db.transitions import guarded_update, store_errors

REQUEST_MODELS = {
    "withdrawal": WithdrawalRequestModel,
    "topup": TopupRequestModel,
}


class PaymentRequestRepository:
    """Repository over one payment request table (``withdrawal`` or ``topup``)."""

    def __init__(self, session: AsyncSession, kind: str):
        self.session = session
        self.kind = kind
        self.model: Type = REQUEST_MODELS[kind]

    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        async with store_errors(self.session):
            result = await self.session.execute(
                select(self.model).where(self.model.id == request_id)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def resolve(self, request_id: str, status: str, **extra: Any) -> bool:
        """Move a pending request to ``status``. False if it was no longer pending.

        ``extra`` carries admin_note / slip url columns; None values are skipped.
        """
        values = {"status": status, "processed_at": utcnow()}
        values.update({k: v for k, v in extra.items() if v is not None})
        return await guarded_update(
            self.session,
            self.model,
            request_id,
            field="status",
            expected=REQUEST_PENDING,
            values=values,
        )
