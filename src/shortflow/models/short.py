"""Short model for ShortFlow

A short discovered on a source channel, curated, assigned to a videaste,
edited, reviewed and published. The status machine lives in the domain
layer; this row is only its persisted form.

Lateness is never stored. ``deadline_reminder_sent_at`` and
``late_notified_at`` are bookkeeping for the deadline scan only.
"""

from uuid import uuid4

from sqlalchemy import (
    BigInteger, CheckConstraint, Column, ForeignKey, Index, Integer, Text, Uuid,
)
from sqlalchemy.orm import relationship

from ..domain.shorts.models import FileRef
from ..domain.shorts.status import ShortStatus
from .base import Base, UTCDateTime, enum_check, utcnow


class Short(Base):
    """Persisted short.

    Optimistic locking: every update goes through a compare-and-swap on
    (status, version) and increments ``version``.
    """

    __tablename__ = 'short'
    __table_args__ = (
        CheckConstraint(enum_check("status", ShortStatus), name='ck_short_status'),
        Index('ix_short_status', 'status'),
        Index('ix_short_assigned_to_status', 'assigned_to', 'status'),
        Index('ix_short_deadline', 'deadline'),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)

    # Source video
    youtube_video_id = Column(Text, nullable=False)
    title = Column(Text, nullable=True)
    url = Column(Text, nullable=True)
    source_channel_id = Column(Uuid, ForeignKey('channel.id', ondelete='RESTRICT'), nullable=False)

    status = Column(Text, nullable=False, default=ShortStatus.ROLLED.value)

    # Assignment
    target_channel_id = Column(Uuid, ForeignKey('channel.id', ondelete='RESTRICT'), nullable=True)
    assigned_to = Column(Uuid, ForeignKey('user.id', ondelete='RESTRICT'), nullable=True)
    assigned_by = Column(Uuid, ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    deadline = Column(UTCDateTime, nullable=True)
    notes = Column(Text, nullable=True)
    admin_feedback = Column(Text, nullable=True)

    # Uploaded video (confirmed by the blob store)
    file_id = Column(Text, nullable=True)
    file_name = Column(Text, nullable=True)
    file_size_bytes = Column(BigInteger, nullable=True)
    file_mime_type = Column(Text, nullable=True)

    # Lifecycle timestamps, set once
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    retained_at = Column(UTCDateTime, nullable=True)
    assigned_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    uploaded_at = Column(UTCDateTime, nullable=True)
    validated_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    published_at = Column(UTCDateTime, nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    # Deadline scan bookkeeping
    deadline_reminder_sent_at = Column(UTCDateTime, nullable=True)
    late_notified_at = Column(UTCDateTime, nullable=True)

    version = Column(Integer, nullable=False, default=0)

    # Relationships
    source_channel = relationship("Channel", foreign_keys=[source_channel_id])
    target_channel = relationship("Channel", foreign_keys=[target_channel_id])
    comments = relationship(
        "ShortComment",
        back_populates="short",
        order_by="ShortComment.created_at",
        cascade="all, delete-orphan",
    )

    @property
    def file_ref(self):
        if self.file_id is None:
            return None
        return FileRef(
            file_id=self.file_id,
            name=self.file_name,
            size_bytes=self.file_size_bytes,
            mime_type=self.file_mime_type,
        )

    def __repr__(self):
        return f"<Short(id={self.id}, status={self.status}, version={self.version})>"
