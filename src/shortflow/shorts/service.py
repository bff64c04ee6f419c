"""Short workflow service - the caller of the state machine.

Each operation follows the same sequence:

1. Load a snapshot of the short (optionally checking ``expected_version``)
2. Ask the pure state machine for a decision
3. Persist the decision with a compare-and-swap, write the audit entry, commit
4. Dispatch the decision's effects

Dispatch happens only after the commit; a failed notification or deletion
never undoes the transition. A CAS conflict raises StaleStateError and
nothing is written.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..audit.service import (
    SHORT_COMMENTED,
    SHORT_REASSIGNED,
    SHORT_TRANSITIONED,
    log_audit_event,
)
from ..auth.roles import UserRole, UserStatus
from ..config import Settings, settings as app_settings
from ..domain.channels.compatibility import CompatibilityResolver, get_resolver
from ..domain.channels.content_type import ChannelPurpose
from ..domain.deadlines.clock import Clock
from ..domain.deadlines.lateness import DeadlineStatus, evaluate_deadline
from ..domain.shorts.effects import DeleteBlob
from ..domain.shorts.errors import (
    ForbiddenTransitionError,
    InvalidInputError,
    StaleStateError,
    TransitionError,
)
from ..domain.shorts.models import Actor, Comment, ShortItem, TransitionInput
from ..domain.shorts.state_machine import (
    TransitionResult,
    add_comment,
    apply_transition,
    reassign,
)
from ..domain.shorts.status import ShortStatus
from ..domain.storage.ports import BlobStore
from ..models.channel import Channel
from ..models.user import User
from ..notifications.dispatcher import EffectDispatcher
from ..observability.metrics import stale_state_conflicts_total, transitions_total
from .repository import ShortRepository
from .schemas import (
    AddCommentRequest,
    AssignShortRequest,
    ReassignShortRequest,
    ReviewShortRequest,
    ShortsStats,
)

logger = logging.getLogger(__name__)


def _status_value(status) -> str:
    return status.value if isinstance(status, ShortStatus) else str(status)


class ShortWorkflowService:
    """Service for short workflow operations."""

    def __init__(
        self,
        db: Session,
        dispatcher: EffectDispatcher,
        blob_store: BlobStore,
        clock: Clock,
        resolver: Optional[CompatibilityResolver] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.repository = ShortRepository(db)
        self.dispatcher = dispatcher
        self.blob_store = blob_store
        self.clock = clock
        self.config = config or app_settings
        self.resolver = resolver or get_resolver(self.config.COMPATIBILITY_MODE)

    # ------------------------------------------------------------------
    # Generic transition
    # ------------------------------------------------------------------

    async def transition(
        self,
        short_id: UUID,
        to: ShortStatus,
        actor_id: UUID,
        transition_input: Optional[TransitionInput] = None,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        """Request a status transition.

        Args:
            short_id: Short to transition
            to: Requested status
            actor_id: User requesting the transition
            transition_input: Inputs required by the transition
            expected_version: Version the caller's view was based on, if known

        Returns:
            ShortItem: Snapshot after the transition (unchanged on a no-op)

        Raises:
            ShortNotFoundError: If the short does not exist
            StaleStateError: If the short changed since expected_version,
                or concurrently during this call
            TransitionError: Any rejection decided by the state machine
        """
        actor = self._load_actor(actor_id)
        snapshot = self._load(short_id, expected_version)
        now = self.clock.now()

        try:
            result = apply_transition(
                snapshot, to, actor, transition_input, now, resolver=self.resolver
            )
        except TransitionError as e:
            transitions_total.labels(
                from_status=snapshot.status.value, to_status=_status_value(to), outcome="rejected"
            ).inc()
            logger.info(
                "Transition rejected",
                extra={
                    "short_id": str(short_id),
                    "actor_id": str(actor_id),
                    "from_status": snapshot.status.value,
                    "to_status": _status_value(to),
                    "error_code": e.error_code,
                },
            )
            raise

        if result.is_noop:
            transitions_total.labels(
                from_status=snapshot.status.value, to_status=snapshot.status.value, outcome="noop"
            ).inc()
            return snapshot

        updated = self._persist(
            snapshot,
            result,
            actor,
            action=SHORT_TRANSITIONED,
            metadata={
                "from_status": snapshot.status.value,
                "to_status": result.updated_fields["status"].value,
            },
        )
        transitions_total.labels(
            from_status=snapshot.status.value, to_status=updated.status.value, outcome="applied"
        ).inc()

        await self.dispatcher.dispatch(result.effects)
        return updated

    # ------------------------------------------------------------------
    # Named operations
    # ------------------------------------------------------------------

    async def retain(self, short_id: UUID, actor_id: UUID, expected_version: Optional[int] = None) -> ShortItem:
        return await self.transition(short_id, ShortStatus.RETAINED, actor_id, expected_version=expected_version)

    async def discard(self, short_id: UUID, actor_id: UUID, expected_version: Optional[int] = None) -> ShortItem:
        return await self.transition(short_id, ShortStatus.REJECTED, actor_id, expected_version=expected_version)

    async def assign(
        self,
        short_id: UUID,
        actor_id: UUID,
        request: AssignShortRequest,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        """Assign a RETAINED short to a videaste.

        The target channel must be a publication channel and the videaste an
        active VIDEASTE user; compatibility and the deadline are checked by
        the state machine.

        Raises:
            InvalidInputError: Unknown or unusable channel or videaste
        """
        channel = self.db.get(Channel, request.target_channel_id)
        if channel is None or channel.purpose != ChannelPurpose.PUBLICATION.value:
            raise InvalidInputError(
                f"Channel {request.target_channel_id} is not a publication channel",
                reason="la chaîne cible n'est pas une chaîne de publication",
                short_id=short_id,
                attempted_status=ShortStatus.ASSIGNED,
                field="target_channel_id",
            )
        self._check_videaste(short_id, request.videaste_id)

        transition_input = TransitionInput(
            videaste_id=request.videaste_id,
            target_channel=channel.to_domain(),
            deadline=request.deadline,
            notes=request.notes,
        )
        return await self.transition(
            short_id, ShortStatus.ASSIGNED, actor_id, transition_input, expected_version
        )

    async def start(self, short_id: UUID, actor_id: UUID, expected_version: Optional[int] = None) -> ShortItem:
        return await self.transition(short_id, ShortStatus.IN_PROGRESS, actor_id, expected_version=expected_version)

    async def complete_upload(
        self,
        short_id: UUID,
        actor_id: UUID,
        upload_id: str,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        """Confirm an upload with the blob store, then mark the short COMPLETED.

        If the transition is refused the confirmed upload is orphaned and is
        deleted through the dispatcher.

        Raises:
            BlobNotFoundError: If the upload was never stored
            TransitionError: If the transition is refused
        """
        file_ref = await self.blob_store.confirm(upload_id)
        try:
            updated = await self.transition(
                short_id,
                ShortStatus.COMPLETED,
                actor_id,
                TransitionInput(file_ref=file_ref),
                expected_version,
            )
        except StaleStateError:
            # The caller re-fetches and retries with the same upload
            raise
        except TransitionError:
            logger.info(
                "Discarding upload of refused completion",
                extra={"short_id": str(short_id), "file_id": file_ref.file_id},
            )
            await self.dispatcher.dispatch((DeleteBlob(file_ref=file_ref),))
            raise

        if updated.file_ref != file_ref:
            # No-op: the short was already completed with another file
            await self.dispatcher.dispatch((DeleteBlob(file_ref=file_ref),))
        return updated

    async def validate(
        self,
        short_id: UUID,
        actor_id: UUID,
        request: Optional[ReviewShortRequest] = None,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        request = request or ReviewShortRequest()
        return await self.transition(
            short_id,
            ShortStatus.VALIDATED,
            actor_id,
            TransitionInput(admin_feedback=request.admin_feedback),
            expected_version,
        )

    async def reject(
        self,
        short_id: UUID,
        actor_id: UUID,
        request: ReviewShortRequest,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        """Reject a short: discard when ROLLED/RETAINED, review rejection when COMPLETED."""
        return await self.transition(
            short_id,
            ShortStatus.REJECTED,
            actor_id,
            TransitionInput(admin_feedback=request.admin_feedback, delete_file=request.delete_file),
            expected_version,
        )

    async def publish(self, short_id: UUID, actor_id: UUID, expected_version: Optional[int] = None) -> ShortItem:
        return await self.transition(short_id, ShortStatus.PUBLISHED, actor_id, expected_version=expected_version)

    async def reassign(
        self,
        short_id: UUID,
        actor_id: UUID,
        request: ReassignShortRequest,
        expected_version: Optional[int] = None,
    ) -> ShortItem:
        """Hand an ASSIGNED or IN_PROGRESS short to another videaste."""
        actor = self._load_actor(actor_id)
        snapshot = self._load(short_id, expected_version)
        self._check_videaste(short_id, request.videaste_id)

        result = reassign(snapshot, actor, request.videaste_id, self.clock.now())
        if result.is_noop:
            return snapshot

        updated = self._persist(
            snapshot,
            result,
            actor,
            action=SHORT_REASSIGNED,
            metadata={
                "from_status": snapshot.status.value,
                "previous_videaste_id": str(snapshot.assigned_to) if snapshot.assigned_to else None,
                "videaste_id": str(request.videaste_id),
            },
            reset_deadline_notices=True,
        )
        await self.dispatcher.dispatch(result.effects)
        return updated

    async def add_comment(self, short_id: UUID, actor_id: UUID, request: AddCommentRequest) -> Comment:
        """Append a comment. Comments do not change the status or the version."""
        actor = self._load_actor(actor_id)
        snapshot = self.repository.load_snapshot(short_id)
        result = add_comment(snapshot, actor, request.text, self.clock.now())
        comment = result.updated_fields["comments"][-1]

        try:
            self.repository.append_comments(short_id, [comment])
            log_audit_event(
                db=self.db,
                action=SHORT_COMMENTED,
                actor_id=actor.id,
                entity_type="short",
                entity_id=short_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        await self.dispatcher.dispatch(result.effects)
        return comment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, short_id: UUID) -> ShortItem:
        return self.repository.load_snapshot(short_id)

    def deadline_status(self, short_id: UUID) -> DeadlineStatus:
        """Lateness of a short, derived from a single clock reading."""
        snapshot = self.repository.load_snapshot(short_id)
        return evaluate_deadline(snapshot, self.clock, urgent_days=self.config.URGENT_DEADLINE_DAYS)

    def stats(self) -> ShortsStats:
        by_status = self.repository.count_by_status()
        return ShortsStats(
            by_status=by_status,
            total=sum(by_status.values()),
            late=self.repository.count_late(self.clock.now()),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, short_id: UUID, expected_version: Optional[int]) -> ShortItem:
        snapshot = self.repository.load_snapshot(short_id)
        if expected_version is not None and snapshot.version != expected_version:
            stale_state_conflicts_total.inc()
            raise StaleStateError(
                f"Short {short_id} is at version {snapshot.version}, "
                f"caller expected {expected_version}",
                short_id=short_id,
                current_status=snapshot.status,
                expected_version=expected_version,
                actual_version=snapshot.version,
                actual_status=snapshot.status,
            )
        return snapshot

    def _load_actor(self, actor_id: UUID) -> Actor:
        user = self.db.get(User, actor_id)
        if user is None:
            raise ForbiddenTransitionError(f"Unknown user {actor_id}", actor_id=actor_id)
        return user.to_actor()

    def _check_videaste(self, short_id: UUID, videaste_id: UUID) -> None:
        user = self.db.get(User, videaste_id)
        if (
            user is None
            or user.role != UserRole.VIDEASTE.value
            or user.status != UserStatus.ACTIVE.value
        ):
            raise InvalidInputError(
                f"User {videaste_id} is not an active videaste",
                reason="l'utilisateur n'est pas un vidéaste actif",
                short_id=short_id,
                attempted_status=ShortStatus.ASSIGNED,
                field="videaste_id",
            )

    def _persist(
        self,
        snapshot: ShortItem,
        result: TransitionResult,
        actor: Actor,
        action: str,
        metadata: Dict[str, Any],
        reset_deadline_notices: bool = False,
    ) -> ShortItem:
        """Compare-and-swap, audit and commit in one transaction."""
        try:
            updated = self.repository.compare_and_swap(snapshot, result.updated_fields)
            if reset_deadline_notices:
                self.repository.reset_deadline_notices(snapshot.id)
            log_audit_event(
                db=self.db,
                action=action,
                actor_id=actor.id,
                entity_type="short",
                entity_id=snapshot.id,
                metadata={**metadata, "version": updated.version},
            )
            self.db.commit()
        except StaleStateError:
            self.db.rollback()
            stale_state_conflicts_total.inc()
            transitions_total.labels(
                from_status=snapshot.status.value,
                to_status=str(metadata.get("to_status", snapshot.status.value)),
                outcome="stale",
            ).inc()
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Short updated",
            extra={
                "short_id": str(snapshot.id),
                "actor_id": str(actor.id),
                "action": action,
                "from_status": snapshot.status.value,
                "to_status": updated.status.value,
                "version": updated.version,
            },
        )
        return updated
