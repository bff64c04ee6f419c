"""Global notification settings (kill switches)."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..audit.service import NOTIFICATION_SETTINGS_UPDATED, log_audit_event
from ..auth.roles import Permission, has_permission
from ..config import Settings, settings as app_settings
from ..domain.notifications.policy import NotificationPolicy
from ..domain.shorts.errors import ForbiddenTransitionError
from ..domain.shorts.models import Actor
from ..models.notification import NotificationSettings
from ..shorts.schemas import UpdateNotificationSettingsRequest

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def default_policy(config: Optional[Settings] = None) -> NotificationPolicy:
    config = config or app_settings
    return NotificationPolicy(
        platform_enabled=config.NOTIFY_PLATFORM_ENABLED,
        email_enabled=config.NOTIFY_EMAIL_ENABLED,
        whatsapp_enabled=config.NOTIFY_WHATSAPP_ENABLED,
    )


def load_notification_policy(db: Session, config: Optional[Settings] = None) -> NotificationPolicy:
    """Read the kill switches, falling back to configured defaults when unset."""
    row = db.get(NotificationSettings, SETTINGS_ROW_ID)
    if row is None:
        return default_policy(config)
    return row.to_policy()


def update_notification_settings(
    db: Session,
    actor: Actor,
    request: UpdateNotificationSettingsRequest,
    config: Optional[Settings] = None,
) -> NotificationPolicy:
    """Toggle the global kill switches. Commits.

    Raises:
        ForbiddenTransitionError: If the actor may not manage settings
    """
    if not actor.is_active or not has_permission(actor.role, Permission.MANAGE_SETTINGS):
        raise ForbiddenTransitionError(
            f"User {actor.id} may not change notification settings",
            actor_id=actor.id,
            actor_role=actor.role,
        )

    row = db.get(NotificationSettings, SETTINGS_ROW_ID)
    if row is None:
        policy = default_policy(config)
        row = NotificationSettings(
            id=SETTINGS_ROW_ID,
            platform_enabled=policy.platform_enabled,
            email_enabled=policy.email_enabled,
            whatsapp_enabled=policy.whatsapp_enabled,
        )
        db.add(row)

    old = row.to_policy()
    changes = request.model_dump(exclude_none=True)
    for name, value in changes.items():
        setattr(row, name, value)
    row.updated_by = actor.id

    log_audit_event(
        db=db,
        action=NOTIFICATION_SETTINGS_UPDATED,
        actor_id=actor.id,
        entity_type="notification_settings",
        metadata={
            "old": {
                "platform_enabled": old.platform_enabled,
                "email_enabled": old.email_enabled,
                "whatsapp_enabled": old.whatsapp_enabled,
            },
            "changes": changes,
        },
    )
    db.commit()

    logger.info(
        "Notification settings updated",
        extra={"actor_id": str(actor.id), "changes": changes},
    )
    return row.to_policy()
