"""Shorts domain module - lifecycle state machine, effects, workflow errors"""

from .effects import DeleteBlob, Effect, NotifyUser, effect_from_dict, effect_to_dict
from .errors import (
    ForbiddenTransitionError,
    IncompatibleChannelError,
    InvalidInputError,
    InvalidTransitionError,
    MissingFeedbackError,
    MissingInputError,
    ShortNotFoundError,
    StaleStateError,
    TransitionError,
)
from .invariants import check_invariants
from .models import Actor, Channel, Comment, FileRef, ShortItem, TransitionInput
from .state_machine import (
    TransitionResult,
    add_comment,
    apply_transition,
    is_reachable,
    reassign,
)
from .status import (
    ALLOWED_TRANSITIONS,
    ASSIGNED_STATUSES,
    COMPLETED_STATUSES,
    ShortStatus,
    can_transition,
    get_allowed_transitions,
)

__all__ = [
    "DeleteBlob",
    "Effect",
    "NotifyUser",
    "effect_from_dict",
    "effect_to_dict",
    "ForbiddenTransitionError",
    "IncompatibleChannelError",
    "InvalidInputError",
    "InvalidTransitionError",
    "MissingFeedbackError",
    "MissingInputError",
    "ShortNotFoundError",
    "StaleStateError",
    "TransitionError",
    "check_invariants",
    "Actor",
    "Channel",
    "Comment",
    "FileRef",
    "ShortItem",
    "TransitionInput",
    "TransitionResult",
    "add_comment",
    "apply_transition",
    "is_reachable",
    "reassign",
    "ALLOWED_TRANSITIONS",
    "ASSIGNED_STATUSES",
    "COMPLETED_STATUSES",
    "ShortStatus",
    "can_transition",
    "get_allowed_transitions",
]
