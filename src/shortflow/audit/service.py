"""Audit logging service for workflow events.

Every persisted change to a short goes through ``log_audit_event`` within the
same transaction as the change itself.

Audit Events:
- SHORT_TRANSITIONED (metadata: from_status, to_status, version)
- SHORT_REASSIGNED (metadata: previous_videaste_id, videaste_id)
- SHORT_COMMENTED
- NOTIFICATION_SETTINGS_UPDATED (metadata: old and new switches)
"""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.audit_log import AuditLog

SHORT_TRANSITIONED = "SHORT_TRANSITIONED"
SHORT_REASSIGNED = "SHORT_REASSIGNED"
SHORT_COMMENTED = "SHORT_COMMENTED"
NOTIFICATION_SETTINGS_UPDATED = "NOTIFICATION_SETTINGS_UPDATED"


def log_audit_event(
    db: Session,
    action: str,
    actor_id: Optional[UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Create an audit log entry.

    All parameters are stored as-is. This function does not validate action
    names or entity types.

    Args:
        db: Database session
        action: Event action (e.g., "SHORT_TRANSITIONED")
        actor_id: User who performed the action (None for system events)
        entity_type: Type of entity affected (e.g., "short")
        entity_id: ID of affected entity
        metadata: Additional context as JSON (e.g., {"from_status": "COMPLETED", "to_status": "VALIDATED"})

    Returns:
        AuditLog: The created audit log entry
    """
    audit_entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=metadata,
    )

    db.add(audit_entry)
    db.flush()  # Get ID without committing transaction

    return audit_entry
