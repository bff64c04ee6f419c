"""Notifier implementations.

RoutingNotifier resolves the delivery channels of every notification from
the global NotificationPolicy and the recipient's preferences, then hands it
to the sender registered for each channel. PlatformNotificationSender writes
the in-app feed entry. Email and WhatsApp senders are registered by the
deployment; a channel with no sender is skipped.
"""

import logging
from typing import Callable, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.notifications.policy import (
    DeliveryChannel,
    NotificationPolicy,
    UserNotificationPreferences,
    resolve_delivery_channels,
)
from ..domain.notifications.ports import NotificationDeliveryError, NotificationSender, Notifier
from ..domain.shorts.effects import NotifyUser
from ..models.notification import Notification

logger = logging.getLogger(__name__)

PolicyProvider = Callable[[], NotificationPolicy]
PreferencesProvider = Callable[[UUID], Optional[UserNotificationPreferences]]


class RoutingNotifier(Notifier):
    """Notifier that fans a notification out to per-channel senders.

    Raises NotificationDeliveryError only when no channel delivered it, so a
    retry cannot duplicate an entry that already reached the user's feed.
    """

    def __init__(
        self,
        senders: Iterable[NotificationSender],
        policy_provider: PolicyProvider,
        preferences_provider: PreferencesProvider,
    ):
        self.senders: Dict[DeliveryChannel, NotificationSender] = {
            sender.channel: sender for sender in senders
        }
        self.policy_provider = policy_provider
        self.preferences_provider = preferences_provider

    async def send(self, effect: NotifyUser) -> None:
        preferences = self.preferences_provider(effect.user_id)
        if preferences is None:
            logger.warning(
                "Notification recipient not found, dropping notification",
                extra={"user_id": str(effect.user_id), "kind": effect.kind.value},
            )
            return

        channels = resolve_delivery_channels(self.policy_provider(), preferences)
        delivered = []
        failures = []
        for channel in sorted(channels, key=lambda c: c.value):
            sender = self.senders.get(channel)
            if sender is None:
                logger.debug(
                    "No sender registered for channel",
                    extra={"channel": channel.value, "kind": effect.kind.value},
                )
                continue
            try:
                await sender.deliver(effect)
                delivered.append(channel)
            except NotificationDeliveryError as e:
                logger.warning(
                    "Notification delivery failed on channel",
                    extra={
                        "channel": channel.value,
                        "user_id": str(effect.user_id),
                        "kind": effect.kind.value,
                        "error": str(e),
                    },
                )
                failures.append(e)

        if failures and not delivered:
            raise NotificationDeliveryError(
                f"Notification {effect.kind.value} to {effect.user_id} failed on every channel",
                retryable=any(f.retryable for f in failures),
            )

        logger.info(
            "Notification sent",
            extra={
                "user_id": str(effect.user_id),
                "kind": effect.kind.value,
                "channels": [c.value for c in delivered],
            },
        )


class PlatformNotificationSender(NotificationSender):
    """Stores the notification in the user's in-app feed."""

    channel = DeliveryChannel.PLATFORM

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def deliver(self, effect: NotifyUser) -> None:
        short_id = effect.payload.get("short_id")
        session = self.session_factory()
        try:
            session.add(Notification(
                user_id=effect.user_id,
                kind=effect.kind.value,
                short_id=UUID(short_id) if short_id else None,
                payload_json=dict(effect.payload),
            ))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise NotificationDeliveryError(
                f"Failed to store platform notification: {e}",
                channel=self.channel,
            ) from e
        finally:
            session.close()
