"""Notifications domain module - kinds, delivery policy, notifier port"""

from .kinds import NotificationKind
from .policy import (
    DeliveryChannel,
    NotificationPolicy,
    UserNotificationPreferences,
    resolve_delivery_channels,
)

__all__ = [
    "NotificationKind",
    "DeliveryChannel",
    "NotificationPolicy",
    "UserNotificationPreferences",
    "resolve_delivery_channels",
]
