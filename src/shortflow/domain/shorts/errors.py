"""Workflow errors.

Every error is a rejected request: nothing has been changed when one is
raised. Each carries the short id, the current and attempted statuses and,
where relevant, the offending field, so the calling layer can render a
precise message (``user_message``) or a structured payload (``to_dict``).
"""

from typing import Any, Dict, Optional
from uuid import UUID

from ...auth.roles import UserRole
from ..channels.content_type import ContentType
from .status import ShortStatus


class TransitionError(Exception):
    """Base class for rejected workflow requests."""

    error_code = "TRANSITION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        short_id: Optional[UUID] = None,
        current_status: Optional[ShortStatus] = None,
        attempted_status: Optional[ShortStatus] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.short_id = short_id
        self.current_status = current_status
        self.attempted_status = attempted_status
        self.field = field

    @property
    def user_message(self) -> str:
        return "L'action demandée n'a pas pu être effectuée."

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "error": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "short_id": str(self.short_id) if self.short_id else None,
            "current_status": self.current_status.value if self.current_status else None,
            "attempted_status": self.attempted_status.value if self.attempted_status else None,
            "field": self.field,
        }
        data.update(self.details())
        return data


def _label(status: Optional[ShortStatus]) -> str:
    return status.label if status else "?"


class InvalidTransitionError(TransitionError):
    """Target status is not reachable from the current status."""

    error_code = "INVALID_TRANSITION"

    @property
    def user_message(self) -> str:
        return (
            f"Impossible de passer de « {_label(self.current_status)} » "
            f"à « {_label(self.attempted_status)} »."
        )


class ForbiddenTransitionError(TransitionError):
    """Actor's role or identity does not allow this transition."""

    error_code = "FORBIDDEN_TRANSITION"

    def __init__(
        self,
        message: str,
        *,
        actor_id: Optional[UUID] = None,
        actor_role: Optional[UserRole] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.actor_id = actor_id
        self.actor_role = actor_role

    @property
    def user_message(self) -> str:
        if self.attempted_status is None:
            return "Vous n'avez pas le droit d'effectuer cette action."
        return (
            f"Vous n'avez pas le droit de passer ce short "
            f"à « {_label(self.attempted_status)} »."
        )

    def details(self) -> Dict[str, Any]:
        return {
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "actor_role": self.actor_role.value if self.actor_role else None,
        }


class IncompatibleChannelError(TransitionError):
    """Target channel content type fails the compatibility check."""

    error_code = "INCOMPATIBLE_CHANNEL"

    def __init__(
        self,
        message: str,
        *,
        source_type: Optional[ContentType] = None,
        target_type: Optional[ContentType] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("field", "target_channel_id")
        super().__init__(message, **kwargs)
        self.source_type = source_type
        self.target_type = target_type

    @property
    def user_message(self) -> str:
        source = self.source_type.label if self.source_type else "?"
        target = self.target_type.label if self.target_type else "?"
        return f"La chaîne cible ({target}) n'est pas compatible avec le type source ({source})."

    def details(self) -> Dict[str, Any]:
        return {
            "source_type": self.source_type.value if self.source_type else None,
            "target_type": self.target_type.value if self.target_type else None,
        }


class MissingInputError(TransitionError):
    """A required transition input is missing or empty."""

    error_code = "MISSING_INPUT"

    @property
    def user_message(self) -> str:
        return f"Le champ « {self.field} » est obligatoire."


class MissingFeedbackError(MissingInputError):
    """Rejection attempted without feedback text."""

    error_code = "MISSING_FEEDBACK"

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("field", "admin_feedback")
        super().__init__(message, **kwargs)

    @property
    def user_message(self) -> str:
        return "Veuillez indiquer la raison du rejet."


class InvalidInputError(TransitionError):
    """A transition input is present but unusable."""

    error_code = "INVALID_INPUT"

    def __init__(self, message: str, *, reason: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.reason = reason or message

    @property
    def user_message(self) -> str:
        return f"Valeur invalide pour « {self.field} » : {self.reason}"

    def details(self) -> Dict[str, Any]:
        return {"reason": self.reason}


class StaleStateError(TransitionError):
    """Optimistic-concurrency mismatch: the snapshot is out of date.

    The caller must re-fetch the short and retry; it must never overwrite.
    """

    error_code = "STALE_STATE"

    def __init__(
        self,
        message: str,
        *,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        actual_status: Optional[ShortStatus] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.actual_status = actual_status

    @property
    def user_message(self) -> str:
        return "Ce short a été modifié entre-temps. Rechargez la page puis réessayez."

    def details(self) -> Dict[str, Any]:
        return {
            "expected_version": self.expected_version,
            "actual_version": self.actual_version,
            "actual_status": self.actual_status.value if self.actual_status else None,
        }


class ShortNotFoundError(TransitionError):
    error_code = "SHORT_NOT_FOUND"

    @property
    def user_message(self) -> str:
        return "Short introuvable."
