"""Shared fixtures: in-memory database, settings overrides, fake gateways, the app and signed tokens."""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.domain.accounts.models import IdentityUser
from app.domain.common.types import generate_id
from app.infra.db import models  # noqa: F401
from app.infra.db.base import Base
from app.infra.db.models import BookingModel, ProfileModel, WalletModel
from app.settings import get_config_store

JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789abcdef"
SERVICE_ROLE_KEY = "test-service-role-key"
SCHEDULER_SECRET = "test-scheduler-secret"
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that use the configured database engine (deselect with '-m \"not integration\"')"
    )


@pytest.fixture(autouse=True)
def test_settings():
    """Known secrets for every test; overrides are dropped afterwards."""
    store = get_config_store()
    store.update({
        "database_url": "sqlite+aiosqlite:///:memory:",
        "jwt_secret": JWT_SECRET,
        "jwt_audience": "authenticated",
        "identity_url": "http://identity.test",
        "service_role_key": SERVICE_ROLE_KEY,
        "scheduled_order_cron_secret": SCHEDULER_SECRET,
        "firebase_project_id": "test-project",
        "sendgrid_api_key": "",
        "wallet_adjust_strategy": "optimistic",
    })
    yield store.get_settings()
    store.clear_overrides()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


class FakeIdentityAdmin:
    """In-memory identity provider."""

    def __init__(self):
        self.users: dict[str, IdentityUser] = {}
        self.deleted: list[str] = []

    async def create_user(self, email: str, password: str, role: str) -> IdentityUser:
        user = IdentityUser(id=generate_id(), email=email)
        self.users[user.id] = user
        return user

    async def delete_user(self, user_id: str) -> bool:
        self.deleted.append(user_id)
        return self.users.pop(user_id, None) is not None

    async def list_users(self, page: int, per_page: int) -> list[IdentityUser]:
        users = list(self.users.values())
        start = (page - 1) * per_page
        return users[start:start + per_page]


class FakePushGateway:
    """Records sends; tokens listed in ``failing`` raise."""

    def __init__(self, failing: Optional[set[str]] = None):
        self.sent: list[dict[str, Any]] = []
        self.failing = failing or set()

    async def send(self, token: str, title: str, body: str, data: Optional[dict[str, str]] = None) -> dict[str, Any]:
        if token in self.failing:
            raise RuntimeError("gateway unavailable")
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return {"success": True, "messageId": f"projects/test-project/messages/{len(self.sent)}"}


@pytest.fixture
def identity():
    return FakeIdentityAdmin()


@pytest.fixture
def push_gateway():
    return FakePushGateway()


@pytest.fixture
def clock():
    """Mutable fixed clock: set ``clock.now`` to move time."""

    class _Clock:
        now = NOW

        def __call__(self) -> datetime:
            return self.now

    return _Clock()


@pytest.fixture
def app(session_factory, identity, push_gateway, clock):
    from app.api.deps import get_clock, get_identity_admin
    from app.domain.admin.throttle import RequestThrottle
    from app.infra.db.session import get_db
    from app.infra.push.sender import get_push_gateway
    from app.main import create_app

    application = create_app()
    application.state.throttle = RequestThrottle(max_requests=60, window_seconds=60.0, clock=clock)

    async def _get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_identity_admin] = lambda: identity
    application.dependency_overrides[get_push_gateway] = lambda: push_gateway
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def make_token(user_id: str, secret: str = JWT_SECRET, expires_in: int = 3600) -> str:
    return jwt.encode(
        {
            "sub": user_id,
            "aud": "authenticated",
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        },
        secret,
        algorithm="HS256",
    )


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def add_profile(session: AsyncSession, user_id: Optional[str] = None, role: str = "customer", **fields) -> str:
    user_id = user_id or generate_id()
    session.add(ProfileModel(id=user_id, role=role, created_at=NOW, **fields))
    await session.commit()
    return user_id


async def add_wallet(session: AsyncSession, user_id: str, balance: float = 0.0) -> str:
    wallet_id = generate_id()
    session.add(WalletModel(id=wallet_id, user_id=user_id, balance=balance, created_at=NOW))
    await session.commit()
    return wallet_id


async def add_booking(session: AsyncSession, **fields) -> str:
    values = {
        "id": generate_id(),
        "customer_id": generate_id(),
        "service_type": "ride",
        "status": "pending",
        "created_at": NOW,
    }
    values.update(fields)
    session.add(BookingModel(**values))
    await session.commit()
    return values["id"]


async def fetch(session: AsyncSession, model: Any, row_id: Any):
    """Fresh read of one row, ignoring anything cached in ``session``."""
    session.expire_all()
    return await session.get(model, row_id)


@pytest.fixture
async def admin_id(db_session):
    return await add_profile(db_session, role="admin")


@pytest.fixture
def admin_headers(admin_id):
    return auth_headers(admin_id)
