"""SQLAlchemy Models for ShortFlow"""

from .base import Base
from .user import User
from .channel import Channel
from .short import Short
from .short_comment import ShortComment
from .notification import Notification, NotificationSettings
from .audit_log import AuditLog

__all__ = [
    "Base",
    "User",
    "Channel",
    "Short",
    "ShortComment",
    "Notification",
    "NotificationSettings",
    "AuditLog",
]
