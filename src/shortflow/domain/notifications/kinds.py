"""Notification kinds emitted by the short workflow."""

from enum import Enum


class NotificationKind(str, Enum):
    # Sent to the videaste
    SHORT_ASSIGNED = "SHORT_ASSIGNED"
    SHORT_DEADLINE_REMINDER = "SHORT_DEADLINE_REMINDER"  # 24h before the deadline
    SHORT_LATE = "SHORT_LATE"
    SHORT_VALIDATED = "SHORT_VALIDATED"
    SHORT_REJECTED = "SHORT_REJECTED"
    SHORT_PUBLISHED = "SHORT_PUBLISHED"

    # Sent to the assigning admin
    SHORT_COMPLETED = "SHORT_COMPLETED"

    # Sent to the other party of a comment thread
    SHORT_COMMENT_ADDED = "SHORT_COMMENT_ADDED"
