"""Peripheral CRUD models: coupons, menus, banners, support tickets, system config, deletion requests.

These carry no cross-entity invariants beyond the option group links.
"""
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

from app.domain.common.types import generate_id, utcnow
from app.infra.db.base import Base


class CouponModel(Base):
    """Discount coupon, global or bound to a merchant."""

    __tablename__ = "coupons"

    id = Column(String, primary_key=True, default=generate_id)
    code = Column(String, nullable=False, unique=True)
    merchant_id = Column(String, nullable=True, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String, nullable=False, default="fixed")  # fixed|percent
    discount_value = Column(Float, nullable=False, default=0)
    min_order_amount = Column(Float, nullable=True)
    max_discount = Column(Float, nullable=True)
    usage_limit = Column(Integer, nullable=True)
    service_type = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MenuItemModel(Base):
    """Merchant menu item."""

    __tablename__ = "menu_items"

    id = Column(String, primary_key=True, default=generate_id)
    merchant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    category = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)


class MenuOptionGroupModel(Base):
    """Group of selectable options (e.g. "Size"), owned by a merchant."""

    __tablename__ = "menu_option_groups"

    id = Column(String, primary_key=True, default=generate_id)
    merchant_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    min_selection = Column(Integer, nullable=False, default=0)
    max_selection = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MenuOptionModel(Base):
    """Single option within a group."""

    __tablename__ = "menu_options"

    id = Column(String, primary_key=True, default=generate_id)
    group_id = Column(String, ForeignKey("menu_option_groups.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    price = Column(Float, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class MenuItemOptionLinkModel(Base):
    """Menu item <-> option group link."""

    __tablename__ = "menu_item_option_links"

    menu_item_id = Column(String, ForeignKey("menu_items.id", ondelete="CASCADE"), primary_key=True)
    option_group_id = Column(String, ForeignKey("menu_option_groups.id"), primary_key=True)
    sort_order = Column(Integer, nullable=False, default=0)


class BannerModel(Base):
    """Home screen banner."""

    __tablename__ = "banners"

    id = Column(String, primary_key=True, default=generate_id)
    title = Column(String, nullable=False, default="Banner")
    image_url = Column(String, nullable=True)
    link_url = Column(String, nullable=True)
    target_role = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class SupportTicketModel(Base):
    """Support ticket opened by a user."""

    __tablename__ = "support_tickets"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=True, index=True)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="open")
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)


class SystemConfigModel(Base):
    """Key/value platform configuration (fees, radii, merchant overrides)."""

    __tablename__ = "system_config"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)


class DeletionRequestModel(Base):
    """User request to delete their account, reviewed by an admin."""

    __tablename__ = "deletion_requests"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=False, index=True)
    reason = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending")
    admin_note = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
