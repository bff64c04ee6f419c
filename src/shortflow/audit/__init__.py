"""Audit logging"""

from .service import (
    NOTIFICATION_SETTINGS_UPDATED,
    SHORT_COMMENTED,
    SHORT_REASSIGNED,
    SHORT_TRANSITIONED,
    log_audit_event,
)

__all__ = [
    "NOTIFICATION_SETTINGS_UPDATED",
    "SHORT_COMMENTED",
    "SHORT_REASSIGNED",
    "SHORT_TRANSITIONED",
    "log_audit_event",
]
