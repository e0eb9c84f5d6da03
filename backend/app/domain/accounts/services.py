"""Account administration: approvals, suspension, deletion, online status, user creation."""
import logging
from typing import Any, Iterable, Optional, Protocol

from app.domain.accounts.models import (
    APPROVAL_APPROVED,
    APPROVAL_REJECTED,
    APPROVAL_SUSPENDED,
    ROLE_ADMIN,
    ROLE_DRIVER,
    IdentityUser,
    Profile,
)
from app.domain.common.errors import ForbiddenError
from app.domain.common.types import Clock, utcnow
from app.domain.wallet.ledger import WalletLedger
from app.services.notification_service import Notifier

logger = logging.getLogger(__name__)

USER_PAGE_SIZE = 1000


class ProfileStore(Protocol):
    async def get(self, user_id: str) -> Optional[Profile]:
        ...

    async def get_role(self, user_id: str) -> Optional[str]:
        ...

    async def update_fields(self, user_id: str, values: dict[str, Any]) -> bool:
        ...

    async def upsert(self, values: dict[str, Any]) -> None:
        ...

    async def delete(self, user_id: str) -> int:
        ...

    async def update_driver_location(self, driver_id: str, values: dict[str, Any]) -> int:
        ...


class IdentityAdmin(Protocol):
    """Admin side of the external identity provider."""

    async def create_user(self, email: str, password: str, role: str) -> IdentityUser:
        ...

    async def delete_user(self, user_id: str) -> bool:
        """False when the provider does not know the user."""
        ...

    async def list_users(self, page: int, per_page: int) -> list[IdentityUser]:
        ...


class ConfigStore(Protocol):
    async def upsert_config(self, items: Iterable[tuple[str, Any]]) -> int:
        ...


class AccountService:
    """Admin operations on accounts."""

    def __init__(
        self,
        profiles: ProfileStore,
        identity: IdentityAdmin,
        ledger: WalletLedger,
        config: ConfigStore,
        notifier: Notifier,
        clock: Optional[Clock] = None,
    ):
        self.profiles = profiles
        self.identity = identity
        self.ledger = ledger
        self.config = config
        self.notifier = notifier
        self.clock = clock or utcnow

    async def approve(self, user_id: str, role: str) -> dict:
        await self.profiles.update_fields(user_id, {
            "approval_status": APPROVAL_APPROVED,
            "approved_at": self.clock(),
        })
        label = role
        body = (
            "An admin approved your driver account. You can start accepting jobs."
            if role == ROLE_DRIVER
            else "An admin approved your shop. You can open it now."
        )
        await self.notifier.notify([{
            "user_id": user_id,
            "title": f"Your {label} account was approved",
            "body": body,
            "type": f"admin_approve_{role}",
            "data": {"type": f"admin_approve_{role}", "user_id": user_id},
        }])
        return {"success": True}

    async def reject(self, user_id: str, role: str, reason: str) -> dict:
        await self.profiles.update_fields(user_id, {
            "approval_status": APPROVAL_REJECTED,
            "rejection_reason": reason,
        })
        label = role
        await self.notifier.notify([{
            "user_id": user_id,
            "title": f"Your {label} account was rejected",
            "body": f"An admin rejected your {label} account: {reason}",
            "type": f"admin_reject_{role}",
            "data": {"type": f"admin_reject_{role}", "user_id": user_id, "reason": reason},
        }])
        return {"success": True}

    async def suspend(self, user_id: str, reason: str) -> dict:
        await self.profiles.update_fields(user_id, {
            "approval_status": APPROVAL_SUSPENDED,
            "rejection_reason": reason,
            "updated_at": self.clock(),
        })
        await self.notifier.notify([{
            "user_id": user_id,
            "title": "Your account was suspended by an admin",
            "body": f"Your account is temporarily suspended: {reason}",
            "type": "admin_suspend_user",
            "data": {"type": "admin_suspend_user", "user_id": user_id, "reason": reason},
        }])
        return {"success": True}

    async def unsuspend(self, user_id: str) -> dict:
        await self.profiles.update_fields(user_id, {
            "approval_status": APPROVAL_APPROVED,
            "rejection_reason": None,
            "updated_at": self.clock(),
        })
        await self.notifier.notify([{
            "user_id": user_id,
            "title": "Your account is active again",
            "body": "Your account suspension was lifted. You can use the app as usual.",
            "type": "admin_unsuspend_user",
            "data": {"type": "admin_unsuspend_user", "user_id": user_id},
        }])
        return {"success": True}

    async def delete_user(self, user_id: str) -> dict:
        """Remove the profile and the identity user. Admin accounts cannot be deleted."""
        if await self.profiles.get_role(user_id) == ROLE_ADMIN:
            raise ForbiddenError("Deleting an admin account is not allowed")
        await self.profiles.delete(user_id)
        if not await self.identity.delete_user(user_id):
            logger.info("Identity user %s already gone", user_id)
        return {"success": True}

    async def set_online_status(self, user_id: str, is_online: bool, role: Optional[str] = None) -> dict:
        """Flip the profile online flag; drivers also get their live location row updated."""
        now = self.clock()
        await self.profiles.update_fields(user_id, {"is_online": is_online, "updated_at": now})
        if role == ROLE_DRIVER:
            patch: dict[str, Any] = {"is_online": is_online, "updated_at": now}
            if not is_online:
                patch["is_available"] = False
            await self.profiles.update_driver_location(user_id, patch)
        return {"success": True}

    async def edit_profile(
        self,
        user_id: str,
        update_data: dict[str, Any],
        system_config_updates: Optional[dict[str, Any]] = None,
    ) -> dict:
        await self.profiles.update_fields(user_id, update_data)
        if system_config_updates:
            await self.config.upsert_config(system_config_updates.items())
        return {"success": True}

    async def add_user(
        self, email: str, password: str, role: str, profile_data: Optional[dict[str, Any]] = None
    ) -> dict:
        """Create the identity user and an approved profile; drivers also get a wallet."""
        user = await self.identity.create_user(email, password, role)
        now = self.clock()
        values: dict[str, Any] = {
            "id": user.id,
            "role": role,
            "approval_status": APPROVAL_APPROVED,
            "email": email,
            "created_at": now,
            "updated_at": now,
        }
        values.update(profile_data or {})
        values["id"] = user.id
        await self.profiles.upsert(values)
        if role == ROLE_DRIVER:
            await self.ledger.ensure_wallet(user.id)
        return {"success": True, "user_id": user.id}

    async def fetch_user_emails(self) -> dict:
        """Map of identity user id to email, paging through the provider."""
        emails: dict[str, str] = {}
        page = 1
        while True:
            users = await self.identity.list_users(page, USER_PAGE_SIZE)
            if not users:
                break
            for user in users:
                if user.id and user.email:
                    emails[user.id] = user.email
            if len(users) < USER_PAGE_SIZE:
                break
            page += 1
        return {"success": True, "email_map": emails}
