"""Domain models for the short workflow.

These are immutable snapshots, not database models. The state machine takes
a ShortItem and returns the fields to change; persistence is the caller's job.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from ...auth.roles import UserRole, UserStatus
from ..channels.content_type import ContentType
from .status import ShortStatus


@dataclass(frozen=True)
class Channel:
    """A YouTube channel tagged with a content type."""
    id: UUID
    content_type: ContentType
    name: str = ""


@dataclass(frozen=True)
class Actor:
    """The user requesting an action."""
    id: UUID
    role: UserRole
    status: UserStatus = UserStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass(frozen=True)
class FileRef:
    """Reference to an uploaded video confirmed by the blob store.

    Attributes:
        file_id: Blob store identifier (storage key)
        name: Original filename
        size_bytes: File size in bytes
        mime_type: MIME type (e.g. 'video/mp4')
    """
    file_id: str
    name: str
    size_bytes: int
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRef":
        return cls(
            file_id=data["file_id"],
            name=data["name"],
            size_bytes=int(data["size_bytes"]),
            mime_type=data["mime_type"],
        )


@dataclass(frozen=True)
class Comment:
    author_id: UUID
    text: str
    created_at: datetime


@dataclass(frozen=True)
class ShortItem:
    """Snapshot of a short as seen by the state machine.

    Timestamps are set once, when the matching transition first fires, and
    are never cleared. ``version`` is the optimistic-concurrency counter.
    """
    id: UUID
    status: ShortStatus
    source_channel: Channel
    created_at: datetime
    target_channel: Optional[Channel] = None
    assigned_to: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    deadline: Optional[datetime] = None
    notes: Optional[str] = None
    admin_feedback: Optional[str] = None
    file_ref: Optional[FileRef] = None
    comments: Tuple[Comment, ...] = ()
    retained_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    version: int = 0

    def with_changes(self, **changes: Any) -> "ShortItem":
        return replace(self, **changes)


@dataclass(frozen=True)
class TransitionInput:
    """Inputs a transition may require.

    Attributes:
        videaste_id: Videaste to assign (ASSIGNED)
        target_channel: Publication channel, resolved by the caller (ASSIGNED)
        deadline: Due date, must not be in the past (ASSIGNED)
        notes: Free-text instructions for the videaste (ASSIGNED)
        admin_feedback: Review feedback (VALIDATED optional, REJECTED required)
        delete_file: Delete the uploaded video on rejection (REJECTED)
        file_ref: Upload confirmed by the blob store (COMPLETED)
    """
    videaste_id: Optional[UUID] = None
    target_channel: Optional[Channel] = None
    deadline: Optional[datetime] = None
    notes: Optional[str] = None
    admin_feedback: Optional[str] = None
    delete_file: bool = False
    file_ref: Optional[FileRef] = None
