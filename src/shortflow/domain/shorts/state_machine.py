"""Short lifecycle state machine.

``apply_transition`` is a pure decision function: given a snapshot, the
requested status, the actor, the inputs and the current time, it returns the
fields to update and the ordered effects to dispatch, or raises a
TransitionError. It performs no I/O.

Transition rules:

    ROLLED → RETAINED             admin/assistant
    ROLLED/RETAINED → REJECTED    admin/assistant (discard)
    RETAINED → ASSIGNED           admin; videaste, compatible channel, deadline ≥ now
    ASSIGNED → IN_PROGRESS        assigned videaste
    IN_PROGRESS → COMPLETED       assigned videaste; confirmed upload
    REJECTED → COMPLETED          assigned videaste; re-upload after review rejection
    COMPLETED → VALIDATED         admin; optional feedback
    COMPLETED → REJECTED          admin; feedback required, optional file deletion
    VALIDATED → PUBLISHED         admin

Requesting the status the short is already in is a no-op success.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from ...auth.roles import Permission, UserRole, has_permission
from ..channels.compatibility import CompatibilityResolver, compatible_targets
from ..notifications.kinds import NotificationKind
from .effects import DeleteBlob, Effect, NotifyUser
from .errors import (
    ForbiddenTransitionError,
    IncompatibleChannelError,
    InvalidInputError,
    InvalidTransitionError,
    MissingFeedbackError,
    MissingInputError,
)
from .models import Actor, Comment, ShortItem, TransitionInput
from .status import ALLOWED_TRANSITIONS, ShortStatus, can_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful decision.

    Attributes:
        updated_fields: ShortItem field names mapped to their new values
        effects: Effects to dispatch, in order, after persistence
    """
    updated_fields: Dict[str, Any]
    effects: Tuple[Effect, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.updated_fields and not self.effects

    def apply_to(self, item: ShortItem) -> ShortItem:
        """Return the snapshot with updated_fields applied."""
        return item.with_changes(**self.updated_fields)


_Handler = Callable[
    [ShortItem, Actor, TransitionInput, datetime, CompatibilityResolver],
    Tuple[Dict[str, Any], List[Effect]],
]


@dataclass(frozen=True)
class _Rule:
    permission: Permission
    assignee_only: bool
    handler: _Handler


def _stamp(item: ShortItem, name: str, now: datetime) -> Dict[str, Any]:
    """Set a timestamp only if it has never been set."""
    if getattr(item, name) is None:
        return {name: now}
    return {}


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


def _short_payload(item: ShortItem, **extra: Any) -> Dict[str, Any]:
    payload = {"short_id": str(item.id)}
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def _retain(item, actor, inp, now, resolver):
    return _stamp(item, "retained_at", now), []


def _discard(item, actor, inp, now, resolver):
    return _stamp(item, "rejected_at", now), []


def _assign(item, actor, inp, now, resolver):
    if inp.videaste_id is None:
        raise MissingInputError(
            "videaste_id is required to assign a short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="videaste_id",
        )
    if inp.target_channel is None:
        raise MissingInputError(
            "target_channel_id is required to assign a short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="target_channel_id",
        )
    if inp.deadline is None:
        raise MissingInputError(
            "deadline is required to assign a short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="deadline",
        )
    if inp.deadline.tzinfo is None or inp.deadline.utcoffset() is None:
        raise InvalidInputError(
            "deadline must be timezone-aware",
            reason="la date d'échéance doit préciser son fuseau horaire",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="deadline",
        )
    if inp.deadline < now:
        raise InvalidInputError(
            f"deadline {inp.deadline.isoformat()} is in the past",
            reason="la date d'échéance est déjà passée",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="deadline",
        )

    source_type = item.source_channel.content_type
    target_type = inp.target_channel.content_type
    if target_type not in resolver(source_type):
        raise IncompatibleChannelError(
            f"Channel {inp.target_channel.id} ({target_type.value}) is not compatible "
            f"with source type {source_type.value}",
            source_type=source_type, target_type=target_type,
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED,
        )

    notes = _clean(inp.notes)
    fields = {
        "target_channel": inp.target_channel,
        "assigned_to": inp.videaste_id,
        "assigned_by": actor.id,
        "deadline": inp.deadline,
        "notes": notes,
    }
    fields.update(_stamp(item, "assigned_at", now))
    effects = [
        NotifyUser(
            user_id=inp.videaste_id,
            kind=NotificationKind.SHORT_ASSIGNED,
            payload=_short_payload(
                item,
                deadline=inp.deadline.isoformat(),
                target_channel_id=str(inp.target_channel.id),
                notes=notes,
            ),
        )
    ]
    return fields, effects


def _start(item, actor, inp, now, resolver):
    return {}, []


def _complete(item, actor, inp, now, resolver):
    if inp.file_ref is None:
        raise MissingInputError(
            "A confirmed upload is required to complete a short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.COMPLETED, field="file_ref",
        )

    reupload = item.status == ShortStatus.REJECTED
    fields: Dict[str, Any] = {"file_ref": inp.file_ref}
    fields.update(_stamp(item, "completed_at", now))
    fields.update(_stamp(item, "uploaded_at", now))

    effects: List[Effect] = []
    if item.assigned_by is not None:
        effects.append(NotifyUser(
            user_id=item.assigned_by,
            kind=NotificationKind.SHORT_COMPLETED,
            payload=_short_payload(
                item,
                videaste_id=str(actor.id),
                file_name=inp.file_ref.name,
                reupload=reupload,
            ),
        ))
    # A file kept at rejection is superseded by the new upload
    if item.file_ref is not None and item.file_ref.file_id != inp.file_ref.file_id:
        effects.append(DeleteBlob(file_ref=item.file_ref))
    return fields, effects


def _validate(item, actor, inp, now, resolver):
    feedback = _clean(inp.admin_feedback)
    fields: Dict[str, Any] = {"admin_feedback": feedback}
    fields.update(_stamp(item, "validated_at", now))
    effects = [
        NotifyUser(
            user_id=item.assigned_to,
            kind=NotificationKind.SHORT_VALIDATED,
            payload=_short_payload(item, admin_feedback=feedback),
        )
    ]
    return fields, effects


def _reject_review(item, actor, inp, now, resolver):
    feedback = _clean(inp.admin_feedback)
    if feedback is None:
        raise MissingFeedbackError(
            "Feedback is required to reject a completed short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.REJECTED,
        )

    fields: Dict[str, Any] = {"admin_feedback": feedback}
    fields.update(_stamp(item, "rejected_at", now))
    effects: List[Effect] = []
    file_deleted = False
    if inp.delete_file and item.file_ref is not None:
        fields["file_ref"] = None
        effects.append(DeleteBlob(file_ref=item.file_ref))
        file_deleted = True
    effects.append(NotifyUser(
        user_id=item.assigned_to,
        kind=NotificationKind.SHORT_REJECTED,
        payload=_short_payload(item, admin_feedback=feedback, file_deleted=file_deleted),
    ))
    return fields, effects


def _publish(item, actor, inp, now, resolver):
    return _stamp(item, "published_at", now), []


TRANSITION_RULES: Dict[Tuple[ShortStatus, ShortStatus], _Rule] = {
    (ShortStatus.ROLLED, ShortStatus.RETAINED): _Rule(Permission.CURATE, False, _retain),
    (ShortStatus.ROLLED, ShortStatus.REJECTED): _Rule(Permission.CURATE, False, _discard),
    (ShortStatus.RETAINED, ShortStatus.REJECTED): _Rule(Permission.CURATE, False, _discard),
    (ShortStatus.RETAINED, ShortStatus.ASSIGNED): _Rule(Permission.ASSIGN, False, _assign),
    (ShortStatus.ASSIGNED, ShortStatus.IN_PROGRESS): _Rule(Permission.EDIT, True, _start),
    (ShortStatus.IN_PROGRESS, ShortStatus.COMPLETED): _Rule(Permission.EDIT, True, _complete),
    (ShortStatus.REJECTED, ShortStatus.COMPLETED): _Rule(Permission.EDIT, True, _complete),
    (ShortStatus.COMPLETED, ShortStatus.VALIDATED): _Rule(Permission.REVIEW, False, _validate),
    (ShortStatus.COMPLETED, ShortStatus.REJECTED): _Rule(Permission.REVIEW, False, _reject_review),
    (ShortStatus.VALIDATED, ShortStatus.PUBLISHED): _Rule(Permission.PUBLISH, False, _publish),
}

_table_edges = {(src, dst) for src, targets in ALLOWED_TRANSITIONS.items() for dst in targets}
if _table_edges != set(TRANSITION_RULES):
    raise RuntimeError(
        "TRANSITION_RULES and ALLOWED_TRANSITIONS disagree: "
        f"{sorted((a.value, b.value) for a, b in _table_edges ^ set(TRANSITION_RULES))}"
    )


def is_reachable(item: ShortItem, to: ShortStatus) -> bool:
    """Check the transition table plus the re-upload rule.

    A REJECTED short may only go back to COMPLETED if it had been completed
    before, i.e. it was rejected at review rather than discarded.
    """
    if not can_transition(item.status, to):
        return False
    if item.status == ShortStatus.REJECTED and to == ShortStatus.COMPLETED:
        return item.completed_at is not None and item.assigned_to is not None
    return True


def _authorize(
    item: ShortItem,
    to: Optional[ShortStatus],
    actor: Actor,
    permission: Permission,
    assignee_only: bool = False,
) -> None:
    context = dict(
        short_id=item.id, current_status=item.status, attempted_status=to,
        actor_id=actor.id, actor_role=actor.role,
    )
    if not actor.is_active:
        raise ForbiddenTransitionError(f"User {actor.id} is blocked", **context)
    if not has_permission(actor.role, permission):
        raise ForbiddenTransitionError(
            f"Role {actor.role.value} lacks {permission.value} permission", **context
        )
    if assignee_only and actor.id != item.assigned_to:
        raise ForbiddenTransitionError(
            f"User {actor.id} is not the videaste assigned to short {item.id}", **context
        )


def apply_transition(
    item: ShortItem,
    to: ShortStatus,
    actor: Actor,
    transition_input: Optional[TransitionInput],
    now: datetime,
    resolver: CompatibilityResolver = compatible_targets,
) -> TransitionResult:
    """Decide a status transition.

    Args:
        item: Snapshot the decision is based on
        to: Requested status
        actor: User requesting the transition
        transition_input: Inputs required by the transition (may be None)
        now: Current time, from the caller's clock
        resolver: Compatibility resolver used by the ASSIGNED guard

    Returns:
        TransitionResult with the fields to update (always including ``status``
        unless no-op) and the effects to dispatch

    Raises:
        InvalidTransitionError: Target unreachable from the current status
        ForbiddenTransitionError: Actor may not perform this transition
        IncompatibleChannelError: Target channel fails the compatibility check
        MissingFeedbackError: Review rejection without feedback
        MissingInputError: Another required input is missing
        InvalidInputError: An input is present but unusable
    """
    try:
        to = ShortStatus(to)
    except ValueError:
        raise InvalidTransitionError(
            f"Unknown status: {to!r}", short_id=item.id, current_status=item.status,
        )

    if item.status == to:
        logger.debug(
            "Transition is a no-op",
            extra={"short_id": str(item.id), "status": to.value},
        )
        return TransitionResult(updated_fields={})

    if not is_reachable(item, to):
        raise InvalidTransitionError(
            f"Invalid transition: {item.status.value} -> {to.value}",
            short_id=item.id, current_status=item.status, attempted_status=to,
        )

    rule = TRANSITION_RULES[(item.status, to)]
    _authorize(item, to, actor, rule.permission, rule.assignee_only)

    fields, effects = rule.handler(
        item, actor, transition_input or TransitionInput(), now, resolver
    )
    fields["status"] = to

    logger.info(
        "Transition decided",
        extra={
            "short_id": str(item.id),
            "actor_id": str(actor.id),
            "from_status": item.status.value,
            "to_status": to.value,
            "effects": len(effects),
        },
    )
    return TransitionResult(updated_fields=fields, effects=tuple(effects))


REASSIGNABLE_STATUSES = (ShortStatus.ASSIGNED, ShortStatus.IN_PROGRESS)


def reassign(
    item: ShortItem,
    actor: Actor,
    new_videaste_id: Optional[UUID],
    now: datetime,
) -> TransitionResult:
    """Hand an assigned short over to another videaste.

    Allowed while ASSIGNED or IN_PROGRESS. The short goes back to ASSIGNED so
    the new videaste starts it themselves; target channel and deadline are
    kept, ``assigned_at`` is not reset.

    Raises:
        InvalidTransitionError: Short is not in a reassignable status
        ForbiddenTransitionError: Actor may not assign
        MissingInputError: No videaste given
    """
    if item.status not in REASSIGNABLE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot reassign a short in status {item.status.value}",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED,
        )
    _authorize(item, ShortStatus.ASSIGNED, actor, Permission.ASSIGN)
    if new_videaste_id is None:
        raise MissingInputError(
            "videaste_id is required to reassign a short",
            short_id=item.id, current_status=item.status,
            attempted_status=ShortStatus.ASSIGNED, field="videaste_id",
        )
    if new_videaste_id == item.assigned_to:
        return TransitionResult(updated_fields={})

    fields = {
        "status": ShortStatus.ASSIGNED,
        "assigned_to": new_videaste_id,
        "assigned_by": actor.id,
    }
    effects = (
        NotifyUser(
            user_id=new_videaste_id,
            kind=NotificationKind.SHORT_ASSIGNED,
            payload=_short_payload(
                item,
                deadline=item.deadline.isoformat() if item.deadline else None,
                target_channel_id=str(item.target_channel.id) if item.target_channel else None,
                notes=item.notes,
                reassigned=True,
            ),
        ),
    )
    logger.info(
        "Reassignment decided",
        extra={
            "short_id": str(item.id),
            "actor_id": str(actor.id),
            "previous_videaste_id": str(item.assigned_to) if item.assigned_to else None,
            "videaste_id": str(new_videaste_id),
        },
    )
    return TransitionResult(updated_fields=fields, effects=effects)


def add_comment(
    item: ShortItem,
    actor: Actor,
    text: Optional[str],
    now: datetime,
) -> TransitionResult:
    """Append a comment to a short's thread.

    Comments never change the status. A videaste may only comment on shorts
    assigned to them. The other party is notified: the assigning admin when
    the videaste writes, the videaste otherwise.

    Raises:
        ForbiddenTransitionError: Actor may not comment on this short
        MissingInputError: Empty comment
    """
    _authorize(
        item, None, actor, Permission.COMMENT,
        assignee_only=actor.role == UserRole.VIDEASTE,
    )
    body = _clean(text)
    if body is None:
        raise MissingInputError(
            "Comment text is required",
            short_id=item.id, current_status=item.status, field="comment",
        )

    comment = Comment(author_id=actor.id, text=body, created_at=now)
    recipient = item.assigned_by if actor.id == item.assigned_to else item.assigned_to
    effects: Tuple[Effect, ...] = ()
    if recipient is not None and recipient != actor.id:
        effects = (
            NotifyUser(
                user_id=recipient,
                kind=NotificationKind.SHORT_COMMENT_ADDED,
                payload=_short_payload(item, author_id=str(actor.id), comment=body[:200]),
            ),
        )
    return TransitionResult(
        updated_fields={"comments": item.comments + (comment,)},
        effects=effects,
    )
