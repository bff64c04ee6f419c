"""User SQLAlchemy model"""

import re
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import validates

from ..auth.roles import UserRole, UserStatus
from ..domain.notifications.policy import UserNotificationPreferences
from ..domain.shorts.models import Actor
from .base import Base, UTCDateTime, enum_check, utcnow


class User(Base):
    """Platform user: admin, assistant or videaste.

    Notification opt-ins live on the user; whether they can be honoured is
    decided together with the global NotificationSettings.
    """
    __tablename__ = "user"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(Text, nullable=True)
    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default=UserStatus.ACTIVE.value)
    email_notifications = Column(Boolean, nullable=False, default=False)
    whatsapp_notifications = Column(Boolean, nullable=False, default=False)
    whatsapp_number = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(enum_check("role", UserRole), name='ck_user_role'),
        CheckConstraint(enum_check("status", UserStatus), name='ck_user_status'),
        UniqueConstraint('email', name='uq_user_email'),
    )

    @validates('email')
    def validate_email(self, key, value):
        """Basic email format validation"""
        if value is None:
            return value
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', value):
            raise ValueError("Invalid email format")
        return value.lower()

    def to_actor(self) -> Actor:
        return Actor(id=self.id, role=UserRole(self.role), status=UserStatus(self.status))

    def preferences(self) -> UserNotificationPreferences:
        return UserNotificationPreferences(
            email_notifications=bool(self.email_notifications),
            whatsapp_notifications=bool(self.whatsapp_notifications),
            has_email=bool(self.email),
            whatsapp_linked=bool(self.whatsapp_number),
        )

    def to_dict(self):
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "status": self.status,
            "email_notifications": self.email_notifications,
            "whatsapp_notifications": self.whatsapp_notifications,
            "whatsapp_linked": bool(self.whatsapp_number),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
