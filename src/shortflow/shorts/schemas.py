"""Pydantic schemas for workflow requests

Validate caller input before it reaches the state machine. Business rules
(deadline not in the past, channel compatibility, role checks) stay in the
domain layer; these only check shape.
"""

from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssignShortRequest(BaseModel):
    """Assign a RETAINED short to a videaste"""
    videaste_id: UUID
    target_channel_id: UUID
    deadline: datetime
    notes: Optional[str] = Field(None, max_length=5000)

    model_config = ConfigDict(extra='forbid')

    @field_validator('deadline')
    @classmethod
    def normalize_deadline(cls, v: datetime) -> datetime:
        """Naive deadlines are taken as UTC; aware ones are converted to UTC"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class ReviewShortRequest(BaseModel):
    """Validate or reject a COMPLETED short"""
    admin_feedback: Optional[str] = Field(None, max_length=5000)
    delete_file: bool = False

    model_config = ConfigDict(extra='forbid')


class ReassignShortRequest(BaseModel):
    videaste_id: UUID

    model_config = ConfigDict(extra='forbid')


class AddCommentRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)

    model_config = ConfigDict(extra='forbid')


class UpdateNotificationSettingsRequest(BaseModel):
    """Toggle the global notification kill switches (omitted = unchanged)"""
    platform_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    whatsapp_enabled: Optional[bool] = None

    model_config = ConfigDict(extra='forbid')


class ShortsStats(BaseModel):
    """Status counts plus derived lateness"""
    by_status: Dict[str, int] = Field(default_factory=dict)
    total: int = 0
    late: int = 0
