"""Unit tests for notification routing and the in-app feed sender"""

from uuid import uuid4

import pytest

from shortflow.domain.notifications import (
    DeliveryChannel,
    NotificationKind,
    NotificationPolicy,
    UserNotificationPreferences,
)
from shortflow.domain.notifications.ports import NotificationDeliveryError, NotificationSender
from shortflow.domain.shorts import NotifyUser
from shortflow.models import Notification
from shortflow.notifications.notifier import PlatformNotificationSender, RoutingNotifier

OPTED_IN = UserNotificationPreferences(
    email_notifications=True,
    whatsapp_notifications=True,
    has_email=True,
    whatsapp_linked=True,
)


class RecordingSender(NotificationSender):
    def __init__(self, channel, fail=False, retryable=True):
        self.channel = channel
        self.fail = fail
        self.retryable = retryable
        self.delivered = []

    async def deliver(self, effect):
        if self.fail:
            raise NotificationDeliveryError(
                f"{self.channel.value} down", channel=self.channel, retryable=self.retryable
            )
        self.delivered.append(effect)


def make_notifier(senders, policy=None, preferences=OPTED_IN):
    return RoutingNotifier(
        senders=senders,
        policy_provider=lambda: policy or NotificationPolicy(),
        preferences_provider=lambda user_id: preferences,
    )


def notice():
    return NotifyUser(uuid4(), NotificationKind.SHORT_ASSIGNED, {"short_id": str(uuid4())})


class TestRoutingNotifier:
    """Test channel resolution and partial failures"""

    @pytest.mark.asyncio
    async def test_fans_out_to_every_resolved_channel(self):
        senders = [RecordingSender(channel) for channel in DeliveryChannel]
        effect = notice()

        await make_notifier(senders).send(effect)

        assert all(sender.delivered == [effect] for sender in senders)

    @pytest.mark.asyncio
    async def test_respects_global_switches(self):
        platform = RecordingSender(DeliveryChannel.PLATFORM)
        email = RecordingSender(DeliveryChannel.EMAIL)
        notifier = make_notifier([platform, email], policy=NotificationPolicy(email_enabled=False))

        await notifier.send(notice())

        assert len(platform.delivered) == 1
        assert email.delivered == []

    @pytest.mark.asyncio
    async def test_channel_without_sender_is_skipped(self):
        platform = RecordingSender(DeliveryChannel.PLATFORM)

        await make_notifier([platform]).send(notice())

        assert len(platform.delivered) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_raised(self):
        platform = RecordingSender(DeliveryChannel.PLATFORM)
        email = RecordingSender(DeliveryChannel.EMAIL, fail=True)

        await make_notifier([platform, email]).send(notice())

        assert len(platform.delivered) == 1

    @pytest.mark.asyncio
    async def test_total_failure_is_raised(self):
        platform = RecordingSender(DeliveryChannel.PLATFORM, fail=True, retryable=False)
        email = RecordingSender(DeliveryChannel.EMAIL, fail=True)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await make_notifier([platform, email]).send(notice())

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_unknown_recipient_is_dropped(self):
        platform = RecordingSender(DeliveryChannel.PLATFORM)
        notifier = RoutingNotifier([platform], NotificationPolicy, lambda user_id: None)

        await notifier.send(notice())

        assert platform.delivered == []


class TestPlatformNotificationSender:
    """Test the in-app feed sender against the database"""

    @pytest.mark.asyncio
    async def test_stores_feed_entry(self, session_factory, db_session, videaste_user):
        effect = NotifyUser(
            videaste_user.id,
            NotificationKind.SHORT_REJECTED,
            {"admin_feedback": "Trop long"},
        )

        await PlatformNotificationSender(session_factory).deliver(effect)

        rows = db_session.query(Notification).filter_by(user_id=videaste_user.id).all()
        assert len(rows) == 1
        assert rows[0].kind == "SHORT_REJECTED"
        assert rows[0].short_id is None
        assert rows[0].payload_json == {"admin_feedback": "Trop long"}
        assert rows[0].to_dict()["read"] is False

    @pytest.mark.asyncio
    async def test_database_error_is_a_delivery_error(self, engine, session_factory):
        Notification.__table__.drop(bind=engine)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await PlatformNotificationSender(session_factory).deliver(notice())

        assert exc_info.value.channel == DeliveryChannel.PLATFORM
        Notification.__table__.create(bind=engine)
