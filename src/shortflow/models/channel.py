"""Channel SQLAlchemy model"""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, Text, UniqueConstraint, Uuid

from ..domain.channels.content_type import ChannelPurpose, ContentType
from ..domain.shorts.models import Channel as ChannelSnapshot
from .base import Base, UTCDateTime, enum_check, utcnow


class Channel(Base):
    """A YouTube channel, either a SOURCE shorts are rolled from or a
    PUBLICATION channel they are published on."""
    __tablename__ = "channel"

    id = Column(Uuid, primary_key=True, default=uuid4)
    youtube_channel_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    content_type = Column(Text, nullable=False)
    purpose = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(enum_check("content_type", ContentType), name='ck_channel_content_type'),
        CheckConstraint(enum_check("purpose", ChannelPurpose), name='ck_channel_purpose'),
        UniqueConstraint('youtube_channel_id', 'purpose', name='uq_channel_youtube_purpose'),
    )

    def to_domain(self) -> ChannelSnapshot:
        return ChannelSnapshot(
            id=self.id,
            content_type=ContentType(self.content_type),
            name=self.name,
        )
