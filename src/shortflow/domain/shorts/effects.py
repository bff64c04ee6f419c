"""Side effects requested by the state machine.

The state machine never performs I/O. It returns an ordered tuple of effects
which the caller dispatches after the new state has been persisted.

Effect is a closed union: NotifyUser | DeleteBlob.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union
from uuid import UUID

from ..notifications.kinds import NotificationKind
from .models import FileRef


@dataclass(frozen=True)
class NotifyUser:
    user_id: UUID
    kind: NotificationKind
    payload: Dict[str, Any] = field(default_factory=dict, hash=False, compare=True)


@dataclass(frozen=True)
class DeleteBlob:
    file_ref: FileRef


Effect = Union[NotifyUser, DeleteBlob]


def effect_to_dict(effect: Effect) -> Dict[str, Any]:
    """Serialize an effect for a Celery task payload (JSON-safe).

    Raises:
        TypeError: If the value is not a known effect
    """
    if isinstance(effect, NotifyUser):
        return {
            "type": "notify_user",
            "user_id": str(effect.user_id),
            "kind": effect.kind.value,
            "payload": dict(effect.payload),
        }
    if isinstance(effect, DeleteBlob):
        return {
            "type": "delete_blob",
            "file_ref": effect.file_ref.to_dict(),
        }
    raise TypeError(f"Unknown effect type: {type(effect).__name__}")


def effect_from_dict(data: Dict[str, Any]) -> Effect:
    """Inverse of effect_to_dict.

    Raises:
        ValueError: If the payload type is unknown
    """
    effect_type = data.get("type")
    if effect_type == "notify_user":
        return NotifyUser(
            user_id=UUID(data["user_id"]),
            kind=NotificationKind(data["kind"]),
            payload=dict(data.get("payload") or {}),
        )
    if effect_type == "delete_blob":
        return DeleteBlob(file_ref=FileRef.from_dict(data["file_ref"]))
    raise ValueError(f"Unknown effect payload type: {effect_type!r}")
