"""Notification database model."""
from sqlalchemy import Boolean, Column, DateTime, String, Text

from app.domain.common.types import generate_id, utcnow
from app.infra.db.base import Base, JSONType


class NotificationModel(Base):
    """In-app notification row. Written by fan-out; read/ack is handled by the clients."""

    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    type = Column(String, nullable=True)  # admin_approve_driver, scheduled_order_reminder, ...
    data = Column(JSONType, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
