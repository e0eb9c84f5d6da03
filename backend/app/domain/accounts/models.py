"""Account domain models."""
from typing import Optional

from pydantic import BaseModel

ROLE_ADMIN = "admin"
ROLE_DRIVER = "driver"
ROLE_MERCHANT = "merchant"
ROLE_CUSTOMER = "customer"

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"
APPROVAL_SUSPENDED = "suspended"


class Profile(BaseModel):
    """Account profile as seen by the control plane."""

    id: str
    role: str
    approval_status: str = APPROVAL_PENDING
    rejection_reason: Optional[str] = None
    is_online: bool = False
    vehicle_type: Optional[str] = None
    fcm_token: Optional[str] = None


class IdentityUser(BaseModel):
    """User record held by the external identity provider."""

    id: str
    email: Optional[str] = None
