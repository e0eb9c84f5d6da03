"""API dependencies."""
import hmac
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.accounts.models import ROLE_ADMIN
from app.domain.accounts.services import AccountService, IdentityAdmin
from app.domain.admin.throttle import RequestThrottle
from app.domain.catalog.services import CatalogService
from app.domain.common.errors import (
    AuthenticationError,
    ConfigurationError,
    ForbiddenError,
    UpstreamStoreError,
)
from app.domain.common.types import Clock, utcnow
from app.domain.orders.workflow import OrderWorkflow
from app.domain.wallet.ledger import WalletLedger
from app.domain.wallet.requests import PaymentRequestService
from app.domain.wallet.services import WalletAdminService
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.repositories.payment_request_repo import PaymentRequestRepository
from app.infra.db.repositories.profile_repo import ProfileRepository
from app.infra.db.repositories.record_repo import RecordRepository
from app.infra.db.repositories.wallet_repo import WalletRepository
from app.infra.db.session import get_db
from app.infra.identity.client import IdentityAdminClient
from app.infra.security.jwt import extract_bearer_token, get_subject
from app.services.notification_service import NotificationFanout
from app.settings import Settings, get_settings

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-scheduler-secret",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def cors_preflight() -> PlainTextResponse:
    """Answer for explicit OPTIONS calls on the function endpoints."""
    return PlainTextResponse("ok", headers=CORS_HEADERS)


def get_clock() -> Clock:
    """Time source (overridden in tests)."""
    return utcnow


def get_throttle(request: Request) -> RequestThrottle:
    """The per-process admin throttle built at startup."""
    return request.app.state.throttle


def get_identity_admin() -> IdentityAdmin:
    s = get_settings()
    return IdentityAdminClient(s.identity_url, s.service_role_key)


async def get_current_caller(authorization: Optional[str] = Header(default=None)) -> str:
    """User id of a valid bearer access token (any role)."""
    if not get_settings().jwt_secret:
        logger.error("jwt_secret is not configured")
        raise ConfigurationError()
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationError("Missing authorization token")
    return get_subject(token)


async def get_admin_id(
    caller_id: str = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
) -> str:
    """Caller id, only when the caller's profile has the admin role."""
    try:
        role = await ProfileRepository(db).get_role(caller_id)
    except UpstreamStoreError as e:
        logger.warning("Admin role lookup failed for %s: %s", caller_id, e.message)
        raise ForbiddenError() from e
    if role != ROLE_ADMIN:
        raise ForbiddenError()
    return caller_id


@dataclass
class AdminContext:
    """What an admin action handler gets: who is calling and the services bound to this request."""

    caller_id: str
    session: AsyncSession
    identity: IdentityAdmin
    clock: Clock
    settings: Settings

    @cached_property
    def notifier(self) -> NotificationFanout:
        return NotificationFanout(self.session)

    @cached_property
    def ledger(self) -> WalletLedger:
        return WalletLedger(
            WalletRepository(self.session),
            strategy=self.settings.wallet_adjust_strategy,
            max_retries=self.settings.wallet_adjust_max_retries,
        )

    @cached_property
    def payments(self) -> PaymentRequestService:
        return PaymentRequestService(
            PaymentRequestRepository(self.session, "withdrawal"),
            PaymentRequestRepository(self.session, "topup"),
            self.ledger,
            self.notifier,
            currency_symbol=self.settings.currency_symbol,
        )

    @cached_property
    def wallets(self) -> WalletAdminService:
        return WalletAdminService(self.ledger, currency_symbol=self.settings.currency_symbol)

    @cached_property
    def orders(self) -> OrderWorkflow:
        return OrderWorkflow(BookingRepository(self.session), self.ledger, self.notifier, clock=self.clock)

    @cached_property
    def accounts(self) -> AccountService:
        return AccountService(
            ProfileRepository(self.session),
            self.identity,
            self.ledger,
            RecordRepository(self.session),
            self.notifier,
            clock=self.clock,
        )

    @cached_property
    def catalog(self) -> CatalogService:
        return CatalogService(RecordRepository(self.session), clock=self.clock)


async def get_admin_context(
    admin_id: str = Depends(get_admin_id),
    db: AsyncSession = Depends(get_db),
    identity: IdentityAdmin = Depends(get_identity_admin),
    clock: Clock = Depends(get_clock),
) -> AdminContext:
    return AdminContext(
        caller_id=admin_id,
        session=db,
        identity=identity,
        clock=clock,
        settings=get_settings(),
    )


async def require_scheduler_auth(
    x_scheduler_secret: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Scanner trigger auth: the shared scheduler secret header or the service role key.

    Ordinary user tokens are never accepted here.
    """
    s = get_settings()
    if not s.service_role_key and not s.scheduled_order_cron_secret:
        logger.error("Neither service_role_key nor scheduled_order_cron_secret is configured")
        raise ConfigurationError()
    secret = s.scheduled_order_cron_secret
    if secret and x_scheduler_secret and _same(x_scheduler_secret, secret):
        return
    token = extract_bearer_token(authorization)
    if s.service_role_key and token and _same(token, s.service_role_key):
        return
    raise AuthenticationError("Unauthorized")


def _same(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))
