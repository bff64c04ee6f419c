"""ShortComment SQLAlchemy model"""

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class ShortComment(Base):
    """Comment on a short. Append-only: never updated or deleted on its own."""
    __tablename__ = "short_comment"
    __table_args__ = (
        Index("ix_short_comment_short_id_created_at", "short_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    short_id = Column(Uuid, ForeignKey("short.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    text = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    short = relationship("Short", back_populates="comments")
