"""Notifier Port - Domain interface for delivering NotifyUser effects.

The workflow only knows about ``Notifier.send``. Which delivery channels are
used (in-app feed, email, WhatsApp) is decided by the implementation from an
explicit NotificationPolicy and the recipient's preferences.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...shorts.effects import NotifyUser
from ..policy import DeliveryChannel


class NotificationDeliveryError(Exception):
    """Delivery failed; the dispatcher may retry the effect."""

    def __init__(self, message: str, channel: Optional[DeliveryChannel] = None, retryable: bool = True):
        super().__init__(message)
        self.channel = channel
        self.retryable = retryable


class Notifier(ABC):
    """Port interface for notifying a user.

    Implementations must be safe to call more than once for the same effect:
    effects are dispatched at-least-once.
    """

    @abstractmethod
    async def send(self, effect: NotifyUser) -> None:
        """Deliver a notification.

        Raises:
            NotificationDeliveryError: If no channel could deliver it
        """
        pass


class NotificationSender(ABC):
    """Delivers a notification on exactly one DeliveryChannel."""

    channel: DeliveryChannel

    @abstractmethod
    async def deliver(self, effect: NotifyUser) -> None:
        """Raises NotificationDeliveryError on failure."""
        pass
