"""Notification and NotificationSettings SQLAlchemy models"""

from uuid import uuid4

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, Text, Uuid

from ..domain.notifications.policy import NotificationPolicy
from .base import Base, PortableJSONB, UTCDateTime, utcnow


class Notification(Base):
    """In-app (platform) notification shown in a user's feed."""
    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_user_id_created_at", "user_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    kind = Column(Text, nullable=False)
    short_id = Column(Uuid, ForeignKey("short.id", ondelete="CASCADE"), nullable=True)
    payload_json = Column(PortableJSONB, nullable=True)
    read_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "kind": self.kind,
            "short_id": str(self.short_id) if self.short_id else None,
            "payload": self.payload_json,
            "read": self.read_at is not None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class NotificationSettings(Base):
    """Global notification kill switches. A single row (id=1)."""
    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, default=1)
    platform_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    whatsapp_enabled = Column(Boolean, nullable=False, default=True)
    updated_by = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_policy(self) -> NotificationPolicy:
        return NotificationPolicy(
            platform_enabled=self.platform_enabled,
            email_enabled=self.email_enabled,
            whatsapp_enabled=self.whatsapp_enabled,
        )
