"""Pytest fixtures for workflow testing.

Provides reusable test fixtures for:
- Pure domain snapshots (channels, actors, shorts in any status)
- Database session on in-memory SQLite with all tables created
- Users with each role and channels of each content type
- Fake Notifier / BlobStore ports with failure injection
- A workflow service wired to the fakes and a fixed clock

Usage:
    @pytest.mark.asyncio
    async def test_publish(service, admin_user, make_short):
        short = make_short(status="VALIDATED")
        item = await service.publish(short.id, admin_user.id)
        assert item.status == ShortStatus.PUBLISHED
"""

from datetime import datetime, timedelta, timezone
from typing import Generator, List
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shortflow.auth.roles import UserRole, UserStatus
from shortflow.domain.channels.content_type import ChannelPurpose, ContentType
from shortflow.domain.deadlines.clock import FixedClock
from shortflow.domain.notifications.ports import NotificationDeliveryError, Notifier
from shortflow.domain.shorts.models import Actor, Channel as ChannelSnapshot, FileRef, ShortItem
from shortflow.domain.shorts.status import ShortStatus
from shortflow.domain.storage.ports import BlobNotFoundError, BlobStore, BlobStoreError
from shortflow.models import Base, Channel, Short, User
from shortflow.notifications.dispatcher import EffectDispatcher
from shortflow.shorts.service import ShortWorkflowService

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# Fake ports
# ============================================================================

class FakeNotifier(Notifier):
    """Records sent notifications; fails the next ``fail_times`` sends."""

    def __init__(self):
        self.sent = []
        self.fail_times = 0
        self.retryable = True

    async def send(self, effect):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise NotificationDeliveryError("notifier down", retryable=self.retryable)
        self.sent.append(effect)


class FakeBlobStore(BlobStore):
    """In-memory blob store keyed by upload ID."""

    def __init__(self):
        self.blobs = {}
        self.deleted = []
        self.fail_deletes = 0

    def put(self, upload_id: str, name: str = "cut.mp4", size_bytes: int = 1024) -> str:
        self.blobs[upload_id] = FileRef(
            file_id=upload_id, name=name, size_bytes=size_bytes, mime_type="video/mp4"
        )
        return upload_id

    async def confirm(self, upload_id):
        if upload_id not in self.blobs:
            raise BlobNotFoundError(f"Upload not found: {upload_id}")
        return self.blobs[upload_id]

    async def delete(self, file_ref):
        if self.fail_deletes > 0:
            self.fail_deletes -= 1
            raise BlobStoreError("store down")
        self.deleted.append(file_ref)
        return self.blobs.pop(file_ref.file_id, None) is not None


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def deferred() -> List:
    """Effects handed to the background retry hook."""
    return []


@pytest.fixture
def dispatcher(notifier, blob_store, deferred) -> EffectDispatcher:
    return EffectDispatcher(
        notifier=notifier,
        blob_store=blob_store,
        max_attempts=2,
        retry_delay=0,
        on_exhausted=deferred.append,
    )


# ============================================================================
# Pure domain builders
# ============================================================================

@pytest.fixture
def vf_source() -> ChannelSnapshot:
    return ChannelSnapshot(id=uuid4(), content_type=ContentType.VF_AVEC_EDIT, name="Source VF")


@pytest.fixture
def vf_target() -> ChannelSnapshot:
    return ChannelSnapshot(id=uuid4(), content_type=ContentType.VF_SANS_EDIT, name="Pub VF")


@pytest.fixture
def va_target() -> ChannelSnapshot:
    return ChannelSnapshot(id=uuid4(), content_type=ContentType.VA_SANS_EDIT, name="Pub VA")


@pytest.fixture
def admin() -> Actor:
    return Actor(id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def assistant() -> Actor:
    return Actor(id=uuid4(), role=UserRole.ASSISTANT)


@pytest.fixture
def videaste() -> Actor:
    return Actor(id=uuid4(), role=UserRole.VIDEASTE)


@pytest.fixture
def make_item(vf_source, vf_target, admin, videaste):
    """Build a consistent ShortItem snapshot in a given status.

    Example:
        item = make_item(ShortStatus.COMPLETED)
        item = make_item(ShortStatus.ASSIGNED, deadline=NOW - timedelta(hours=1))
    """

    def _make(status: ShortStatus = ShortStatus.ROLLED, **overrides) -> ShortItem:
        fields = dict(
            id=uuid4(),
            status=status,
            source_channel=vf_source,
            created_at=NOW - timedelta(days=10),
        )
        if status != ShortStatus.ROLLED:
            fields["retained_at"] = NOW - timedelta(days=9)
        assigned = status in (
            ShortStatus.ASSIGNED,
            ShortStatus.IN_PROGRESS,
            ShortStatus.COMPLETED,
            ShortStatus.VALIDATED,
            ShortStatus.PUBLISHED,
        )
        if assigned:
            fields.update(
                target_channel=vf_target,
                assigned_to=videaste.id,
                assigned_by=admin.id,
                deadline=NOW + timedelta(days=3),
                assigned_at=NOW - timedelta(days=8),
            )
        if status in (ShortStatus.COMPLETED, ShortStatus.VALIDATED, ShortStatus.PUBLISHED):
            fields.update(
                file_ref=FileRef("shorts/v1.mp4", "v1.mp4", 2048, "video/mp4"),
                completed_at=NOW - timedelta(days=1),
                uploaded_at=NOW - timedelta(days=1),
            )
        if status in (ShortStatus.VALIDATED, ShortStatus.PUBLISHED):
            fields["validated_at"] = NOW - timedelta(hours=12)
        if status == ShortStatus.PUBLISHED:
            fields["published_at"] = NOW - timedelta(hours=6)
        fields.update(overrides)
        return ShortItem(**fields)

    return _make


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Fresh database session for each test (tables created per test)."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def _user(db: Session, role: UserRole, name: str, **kwargs) -> User:
    user = User(name=name, role=role.value, **kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session) -> User:
    return _user(db_session, UserRole.ADMIN, "Admin", email="admin@example.com")


@pytest.fixture
def assistant_user(db_session) -> User:
    return _user(db_session, UserRole.ASSISTANT, "Assistant")


@pytest.fixture
def videaste_user(db_session) -> User:
    return _user(
        db_session, UserRole.VIDEASTE, "Vidéaste",
        email="video@example.com", email_notifications=True,
    )


@pytest.fixture
def other_videaste_user(db_session) -> User:
    return _user(db_session, UserRole.VIDEASTE, "Autre vidéaste")


@pytest.fixture
def blocked_videaste_user(db_session) -> User:
    return _user(db_session, UserRole.VIDEASTE, "Bloqué", status=UserStatus.BLOCKED.value)


def _channel(db: Session, content_type: ContentType, purpose: ChannelPurpose) -> Channel:
    channel = Channel(
        youtube_channel_id=f"UC{uuid4().hex[:22]}",
        name=f"{purpose.value} {content_type.value}",
        content_type=content_type.value,
        purpose=purpose.value,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


@pytest.fixture
def source_channel(db_session) -> Channel:
    return _channel(db_session, ContentType.VF_AVEC_EDIT, ChannelPurpose.SOURCE)


@pytest.fixture
def vf_publication_channel(db_session) -> Channel:
    return _channel(db_session, ContentType.VF_SANS_EDIT, ChannelPurpose.PUBLICATION)


@pytest.fixture
def va_publication_channel(db_session) -> Channel:
    return _channel(db_session, ContentType.VA_SANS_EDIT, ChannelPurpose.PUBLICATION)


@pytest.fixture
def make_short(db_session, source_channel, vf_publication_channel, admin_user, videaste_user):
    """Insert a Short row in a given status with consistent fields."""

    def _make(status: str = "ROLLED", **overrides) -> Short:
        fields = dict(
            youtube_video_id=uuid4().hex[:11],
            title="Un short",
            source_channel_id=source_channel.id,
            status=status,
            created_at=NOW - timedelta(days=10),
        )
        if status != "ROLLED":
            fields["retained_at"] = NOW - timedelta(days=9)
        if status in ("ASSIGNED", "IN_PROGRESS", "COMPLETED", "VALIDATED", "PUBLISHED"):
            fields.update(
                target_channel_id=vf_publication_channel.id,
                assigned_to=videaste_user.id,
                assigned_by=admin_user.id,
                deadline=NOW + timedelta(days=3),
                assigned_at=NOW - timedelta(days=8),
            )
        if status in ("COMPLETED", "VALIDATED", "PUBLISHED"):
            fields.update(
                file_id="shorts/existing.mp4",
                file_name="existing.mp4",
                file_size_bytes=4096,
                file_mime_type="video/mp4",
                completed_at=NOW - timedelta(days=1),
                uploaded_at=NOW - timedelta(days=1),
            )
        if status in ("VALIDATED", "PUBLISHED"):
            fields["validated_at"] = NOW - timedelta(hours=12)
        fields.update(overrides)
        short = Short(**fields)
        db_session.add(short)
        db_session.commit()
        db_session.refresh(short)
        return short

    return _make


@pytest.fixture
def service(db_session, dispatcher, blob_store, clock) -> ShortWorkflowService:
    return ShortWorkflowService(
        db=db_session,
        dispatcher=dispatcher,
        blob_store=blob_store,
        clock=clock,
    )
