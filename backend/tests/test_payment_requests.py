"""Withdrawal and topup decisions through POST /admin-actions, plus the compensation path."""
from typing import Any, Optional

from sqlalchemy import select

from app.domain.wallet.ledger import WalletLedger
from app.domain.wallet.models import PaymentRequest
from app.domain.wallet.requests import PaymentRequestService
from app.infra.db.models import (
    NotificationModel,
    TopupRequestModel,
    WalletTransactionModel,
    WithdrawalRequestModel,
)
from app.infra.db.repositories.wallet_repo import WalletRepository

from conftest import NOW, add_profile, add_wallet, fetch


async def _add_request(session, model, user_id: str, amount: float, status: str = "pending") -> str:
    request_id = f"{model.__tablename__}-{user_id}-{amount}"
    session.add(model(id=request_id, user_id=user_id, amount=amount, status=status, created_at=NOW))
    await session.commit()
    return request_id


async def _balance(session, user_id: str) -> Optional[float]:
    wallet = (await WalletRepository(session).get_by_user(user_id))
    if wallet is None:
        return None
    return await WalletRepository(session).read_balance(wallet.id)


async def _transactions(session, wallet_id: str) -> list[WalletTransactionModel]:
    session.expire_all()
    result = await session.execute(
        select(WalletTransactionModel).where(WalletTransactionModel.wallet_id == wallet_id)
    )
    return list(result.scalars().all())


async def test_approving_a_withdrawal_twice_is_a_no_op(client, admin_headers, db_session):
    driver = await add_profile(db_session, role="driver")
    await add_wallet(db_session, driver, balance=500.0)
    request_id = await _add_request(db_session, WithdrawalRequestModel, driver, 200.0)

    first = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "approve_withdrawal_with_slip", "id": request_id, "transfer_slip_url": "https://slips/1.png",
    })
    second = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "approve_withdrawal", "id": request_id,
    })

    assert first.status_code == 200
    assert first.json() == {"success": True}
    assert second.status_code == 200
    assert second.json() == {"success": False, "already_processed": True}

    row = await fetch(db_session, WithdrawalRequestModel, request_id)
    assert row.status == "completed"
    assert row.processed_at is not None
    assert row.transfer_slip_url == "https://slips/1.png"
    assert await _balance(db_session, driver) == 500.0

    notes = await db_session.execute(
        select(NotificationModel).where(NotificationModel.user_id == driver)
    )
    assert [n.type for n in notes.scalars().all()] == ["admin_approve_withdrawal"]


async def test_rejecting_a_withdrawal_refunds_exactly_once(client, admin_headers, db_session):
    driver = await add_profile(db_session, role="driver")
    wallet_id = await add_wallet(db_session, driver, balance=0.0)
    request_id = await _add_request(db_session, WithdrawalRequestModel, driver, 150.0)

    resp = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "reject_withdrawal", "id": request_id, "reason": "Bank account name mismatch",
    })
    replay = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "reject_withdrawal", "id": request_id, "reason": "Bank account name mismatch",
    })

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert replay.json()["already_processed"] is True

    assert await _balance(db_session, driver) == 150.0
    txs = await _transactions(db_session, wallet_id)
    assert [(t.amount, t.type) for t in txs] == [(150.0, "refund")]

    row = await fetch(db_session, WithdrawalRequestModel, request_id)
    assert row.status == "rejected"
    assert row.admin_note == "Bank account name mismatch"


async def test_reject_withdrawal_requires_reason(client, admin_headers, db_session):
    driver = await add_profile(db_session, role="driver")
    request_id = await _add_request(db_session, WithdrawalRequestModel, driver, 80.0)

    resp = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "reject_withdrawal", "id": request_id,
    })

    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing 'reason'"}
    row = await fetch(db_session, WithdrawalRequestModel, request_id)
    assert row.status == "pending"


async def test_unknown_withdrawal_is_not_found(client, admin_headers):
    resp = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "approve_withdrawal", "id": "missing",
    })
    assert resp.status_code == 404
    assert "missing" in resp.json()["error"]


async def test_approving_a_topup_credits_a_new_wallet_once(client, admin_headers, db_session):
    customer = await add_profile(db_session)
    request_id = await _add_request(db_session, TopupRequestModel, customer, 300.0)

    first = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "approve_topup", "id": request_id,
    })
    second = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "approve_topup", "id": request_id,
    })

    assert first.json() == {"success": True}
    assert second.json() == {"success": False, "already_processed": True}
    assert await _balance(db_session, customer) == 300.0
    row = await fetch(db_session, TopupRequestModel, request_id)
    assert row.status == "completed"


async def test_rejecting_a_topup_moves_no_money(client, admin_headers, db_session):
    customer = await add_profile(db_session)
    request_id = await _add_request(db_session, TopupRequestModel, customer, 300.0)

    first = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "reject_topup", "id": request_id, "reason": "Slip unreadable",
    })
    second = await client.post("/admin-actions", headers=admin_headers, json={
        "action": "reject_topup", "id": request_id,
    })

    assert first.json() == {"success": True}
    assert second.json()["already_processed"] is True
    row = await fetch(db_session, TopupRequestModel, request_id)
    assert row.status == "rejected"
    assert row.admin_note == "Slip unreadable"
    assert await _balance(db_session, customer) is None


class LosingRequestStore:
    """A pending request whose status transition always loses to another admin."""

    def __init__(self, kind: str, request: PaymentRequest):
        self.kind = kind
        self.request = request

    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        return self.request

    async def resolve(self, request_id: str, status: str, **extra: Any) -> bool:
        return False


class RecordingNotifier:
    def __init__(self):
        self.rows = []

    async def notify(self, rows) -> int:
        rows = list(rows)
        self.rows.extend(rows)
        return len(rows)


async def test_refund_is_reversed_when_rejection_loses_the_race(db_session):
    wallet_id = await add_wallet(db_session, "driver-1", balance=40.0)
    request = PaymentRequest(id="w-1", user_id="driver-1", amount=100.0, status="pending")
    notifier = RecordingNotifier()
    service = PaymentRequestService(
        LosingRequestStore("withdrawal", request),
        LosingRequestStore("topup", request),
        WalletLedger(WalletRepository(db_session)),
        notifier,
    )

    result = await service.reject_withdrawal("w-1", "duplicate")

    assert result == {"success": False, "already_processed": True}
    assert await WalletRepository(db_session).read_balance(wallet_id) == 40.0
    txs = await _transactions(db_session, wallet_id)
    assert sorted((t.amount, t.type) for t in txs) == [(-100.0, "refund_reversal"), (100.0, "refund")]
    assert notifier.rows == []


async def test_topup_credit_is_reversed_when_approval_loses_the_race(db_session):
    wallet_id = await add_wallet(db_session, "customer-1", balance=0.0)
    request = PaymentRequest(id="t-1", user_id="customer-1", amount=250.0, status="pending")
    service = PaymentRequestService(
        LosingRequestStore("withdrawal", request),
        LosingRequestStore("topup", request),
        WalletLedger(WalletRepository(db_session)),
        RecordingNotifier(),
    )

    result = await service.approve_topup("t-1")

    assert result["already_processed"] is True
    assert await WalletRepository(db_session).read_balance(wallet_id) == 0.0
    txs = await _transactions(db_session, wallet_id)
    assert sorted(t.type for t in txs) == ["topup", "topup_reversal"]
