"""Notifier port interfaces."""

from .notifier_port import NotificationDeliveryError, NotificationSender, Notifier

__all__ = ["NotificationDeliveryError", "NotificationSender", "Notifier"]
