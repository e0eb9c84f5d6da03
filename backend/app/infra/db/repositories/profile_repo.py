"""Profile repository."""
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.accounts.models import ROLE_DRIVER, Profile
from app.infra.db.models.profile import DriverLocationModel, ProfileModel
from app.infra.db.transitions import column_values, store_errors


class ProfileRepository:
    """Profile repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[Profile]:
        """Get profile by id."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(ProfileModel).where(ProfileModel.id == user_id)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_role(self, user_id: str) -> Optional[str]:
        """Return the role for the profile, or None when absent."""
        async with store_errors(self.session):
            result = await self.session.execute(
                select(ProfileModel.role).where(ProfileModel.id == user_id)
            )
            return result.scalar_one_or_none()

    async def update_fields(self, user_id: str, values: dict[str, Any]) -> bool:
        """Patch profile columns. Returns True if the profile exists."""
        values = column_values(ProfileModel, values)
        async with store_errors(self.session):
            result = await self.session.execute(
                update(ProfileModel)
                .where(ProfileModel.id == user_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def upsert(self, values: dict[str, Any]) -> None:
        """Insert the profile, or overwrite the given columns when it exists."""
        values = column_values(ProfileModel, values)
        async with store_errors(self.session):
            existing = await self.session.get(ProfileModel, values["id"])
            if existing is None:
                self.session.add(ProfileModel(**values))
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
            await self.session.commit()

    async def delete(self, user_id: str) -> int:
        """Delete the profile row; returns rows deleted."""
        async with store_errors(self.session):
            result = await self.session.execute(
                delete(ProfileModel).where(ProfileModel.id == user_id)
            )
            await self.session.commit()
        return result.rowcount or 0

    async def update_driver_location(self, driver_id: str, values: dict[str, Any]) -> int:
        """Patch the driver's live location row (no-op when the driver has none)."""
        async with store_errors(self.session):
            result = await self.session.execute(
                update(DriverLocationModel)
                .where(DriverLocationModel.driver_id == driver_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        return result.rowcount or 0

    async def list_online_driver_ids(self, vehicle_type: Optional[str], limit: int) -> list[str]:
        """Online drivers, optionally filtered by vehicle type, capped at ``limit``."""
        q = select(ProfileModel.id).where(
            ProfileModel.role == ROLE_DRIVER,
            ProfileModel.is_online.is_(True),
        )
        if vehicle_type:
            q = q.where(ProfileModel.vehicle_type == vehicle_type)
        async with store_errors(self.session):
            result = await self.session.execute(q.order_by(ProfileModel.id).limit(limit))
            return list(result.scalars().all())

    async def list_push_tokens(self, user_ids: list[str]) -> list[tuple[str, str]]:
        """(user_id, fcm_token) for the given users that registered a device token."""
        if not user_ids:
            return []
        async with store_errors(self.session):
            result = await self.session.execute(
                select(ProfileModel.id, ProfileModel.fcm_token).where(
                    ProfileModel.id.in_(user_ids),
                    ProfileModel.fcm_token.is_not(None),
                )
            )
            return [(row[0], row[1]) for row in result.all() if row[1]]
