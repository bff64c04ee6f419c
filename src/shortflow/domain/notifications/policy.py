"""Notification delivery policy.

Delivery is gated twice: by the global kill switches an admin controls
(NotificationPolicy) and by each user's own preferences. Both are plain
values handed to the notifier; nothing here reads global state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet


class DeliveryChannel(str, Enum):
    PLATFORM = "PLATFORM"  # In-app notification feed
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"


@dataclass(frozen=True)
class NotificationPolicy:
    """Global kill switches, one per delivery channel."""
    platform_enabled: bool = True
    email_enabled: bool = True
    whatsapp_enabled: bool = True


@dataclass(frozen=True)
class UserNotificationPreferences:
    """Per-user opt-ins.

    Attributes:
        email_notifications: User wants email notifications
        whatsapp_notifications: User wants WhatsApp notifications
        has_email: User has connected an email address
        whatsapp_linked: User has linked a WhatsApp number
    """
    email_notifications: bool = False
    whatsapp_notifications: bool = False
    has_email: bool = False
    whatsapp_linked: bool = False


def resolve_delivery_channels(
    policy: NotificationPolicy,
    preferences: UserNotificationPreferences,
) -> FrozenSet[DeliveryChannel]:
    """Compute the channels a notification may be delivered on.

    Platform notifications only depend on the global switch; email and
    WhatsApp additionally need the user's opt-in and a usable address.

    Example:
        >>> resolve_delivery_channels(
        ...     NotificationPolicy(email_enabled=False),
        ...     UserNotificationPreferences(email_notifications=True, has_email=True),
        ... ) == frozenset({DeliveryChannel.PLATFORM})
        True
    """
    channels = set()
    if policy.platform_enabled:
        channels.add(DeliveryChannel.PLATFORM)
    if policy.email_enabled and preferences.email_notifications and preferences.has_email:
        channels.add(DeliveryChannel.EMAIL)
    if (
        policy.whatsapp_enabled
        and preferences.whatsapp_notifications
        and preferences.whatsapp_linked
    ):
        channels.add(DeliveryChannel.WHATSAPP)
    return frozenset(channels)
