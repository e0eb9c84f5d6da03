"""Profile database models."""
from sqlalchemy import Boolean, Column, DateTime, Float, Index, String, Text

from app.domain.accounts.models import Profile
from app.domain.common.types import utcnow
from app.infra.db.base import Base


class ProfileModel(Base):
    """Account profile. Rows are created by the registration flow; admins mutate them."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    role = Column(String, nullable=False, default="customer")  # customer|driver|merchant|admin
    approval_status = Column(String, nullable=False, default="pending")  # pending|approved|rejected|suspended
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    full_name = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    email = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    shop_name = Column(String, nullable=True)
    shop_address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    vehicle_type = Column(String, nullable=True)
    license_plate = Column(String, nullable=True)
    is_online = Column(Boolean, nullable=False, default=False)
    fcm_token = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)

    __table_args__ = (
        Index("ix_profiles_role_online", "role", "is_online"),
    )

    def to_entity(self) -> Profile:
        """Convert to domain entity."""
        return Profile(
            id=self.id,
            role=self.role,
            approval_status=self.approval_status,
            rejection_reason=self.rejection_reason,
            is_online=bool(self.is_online),
            vehicle_type=self.vehicle_type,
            fcm_token=self.fcm_token,
        )


class DriverLocationModel(Base):
    """Live driver availability, mirrored from the profile online flag by admins."""

    __tablename__ = "driver_locations"

    driver_id = Column(String, primary_key=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_online = Column(Boolean, nullable=False, default=False)
    is_available = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
