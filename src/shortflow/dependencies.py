"""Factories wiring the workflow service to its adapters.

The domain layer only sees ports; this module builds the concrete
adapters (S3 blob store, routing notifier, effect dispatcher) from settings.
"""

from functools import lru_cache
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from .config import Settings, settings
from .database import SessionLocal
from .domain.deadlines.clock import Clock, SystemClock
from .domain.notifications.policy import UserNotificationPreferences
from .domain.shorts.effects import Effect
from .domain.storage.ports import BlobStore
from .infrastructure.storage.s3_blob_store import S3BlobStore
from .models.user import User
from .notifications.dispatcher import EffectDispatcher
from .notifications.notifier import PlatformNotificationSender, RoutingNotifier
from .notifications.settings import load_notification_policy
from .shorts.service import ShortWorkflowService


@lru_cache()
def get_blob_store() -> S3BlobStore:
    return S3BlobStore(
        endpoint_url=settings.S3_ENDPOINT_URL,
        access_key=settings.S3_ACCESS_KEY_ID,
        secret_key=settings.S3_SECRET_ACCESS_KEY,
        bucket_name=settings.S3_BUCKET_NAME,
        region=settings.S3_REGION,
        max_size_bytes=settings.MAX_VIDEO_SIZE_BYTES,
    )


def get_clock() -> Clock:
    return SystemClock()


def build_notifier(session_factory: Callable[[], Session] = SessionLocal) -> RoutingNotifier:
    """Routing notifier reading kill switches and preferences from the database."""

    def policy_provider():
        session = session_factory()
        try:
            return load_notification_policy(session)
        finally:
            session.close()

    def preferences_provider(user_id: UUID) -> Optional[UserNotificationPreferences]:
        session = session_factory()
        try:
            user = session.get(User, user_id)
            return user.preferences() if user else None
        finally:
            session.close()

    return RoutingNotifier(
        senders=[PlatformNotificationSender(session_factory)],
        policy_provider=policy_provider,
        preferences_provider=preferences_provider,
    )


def build_dispatcher(
    blob_store: Optional[BlobStore] = None,
    max_attempts: Optional[int] = None,
    on_exhausted: Optional[Callable[[Effect], None]] = None,
    config: Optional[Settings] = None,
) -> EffectDispatcher:
    config = config or settings
    return EffectDispatcher(
        notifier=build_notifier(),
        blob_store=blob_store or get_blob_store(),
        max_attempts=max_attempts or config.EFFECT_DISPATCH_ATTEMPTS,
        on_exhausted=on_exhausted,
    )


def get_workflow_service(db: Session) -> ShortWorkflowService:
    """Workflow service whose exhausted effects are retried by Celery."""
    from .workers.effect_worker import enqueue_effect

    blob_store = get_blob_store()
    return ShortWorkflowService(
        db=db,
        dispatcher=build_dispatcher(blob_store=blob_store, on_exhausted=enqueue_effect),
        blob_store=blob_store,
        clock=get_clock(),
    )
