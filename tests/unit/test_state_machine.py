"""Unit tests for the short lifecycle state machine.

The state machine is pure, so every test builds a snapshot with
``make_item`` and inspects the returned TransitionResult.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from shortflow.auth.roles import UserRole, UserStatus
from shortflow.domain.channels import ContentType, edit_preserving_targets
from shortflow.domain.notifications import NotificationKind
from shortflow.domain.shorts import (
    Actor,
    Channel,
    DeleteBlob,
    FileRef,
    ForbiddenTransitionError,
    IncompatibleChannelError,
    InvalidInputError,
    InvalidTransitionError,
    MissingFeedbackError,
    MissingInputError,
    NotifyUser,
    ShortStatus,
    TransitionInput,
    add_comment,
    apply_transition,
    check_invariants,
    reassign,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

NEW_FILE = FileRef("shorts/v2.mp4", "v2.mp4", 4096, "video/mp4")


def assign_input(videaste, channel, deadline=None, notes=None):
    return TransitionInput(
        videaste_id=videaste.id,
        target_channel=channel,
        deadline=deadline or NOW + timedelta(days=5),
        notes=notes,
    )


class TestNoOpAndUnknownTargets:
    """Test idempotency and malformed targets"""

    @pytest.mark.parametrize("status", list(ShortStatus))
    def test_same_status_is_a_noop(self, make_item, admin, status):
        item = make_item(status)

        result = apply_transition(item, status, admin, None, NOW)

        assert result.is_noop
        assert result.updated_fields == {}
        assert result.effects == ()
        assert result.apply_to(item) == item

    def test_noop_does_not_check_permissions(self, make_item, videaste):
        item = make_item(ShortStatus.PUBLISHED)

        result = apply_transition(item, ShortStatus.PUBLISHED, videaste, None, NOW)

        assert result.is_noop

    def test_string_target_is_coerced(self, make_item, assistant):
        item = make_item(ShortStatus.ROLLED)

        result = apply_transition(item, "RETAINED", assistant, None, NOW)

        assert result.updated_fields["status"] == ShortStatus.RETAINED

    def test_unknown_status_is_invalid(self, make_item, admin):
        item = make_item(ShortStatus.ROLLED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            apply_transition(item, "ARCHIVED", admin, None, NOW)

        assert exc_info.value.current_status == ShortStatus.ROLLED
        assert exc_info.value.attempted_status is None


class TestInvalidTransitions:
    """Test edges missing from the transition table"""

    @pytest.mark.parametrize("current,target", [
        (ShortStatus.ROLLED, ShortStatus.ASSIGNED),
        (ShortStatus.ROLLED, ShortStatus.PUBLISHED),
        (ShortStatus.ASSIGNED, ShortStatus.COMPLETED),
        (ShortStatus.COMPLETED, ShortStatus.PUBLISHED),
        (ShortStatus.PUBLISHED, ShortStatus.REJECTED),
        (ShortStatus.VALIDATED, ShortStatus.COMPLETED),
    ])
    def test_edge_not_in_table(self, make_item, admin, current, target):
        item = make_item(current)

        with pytest.raises(InvalidTransitionError) as exc_info:
            apply_transition(item, target, admin, None, NOW)

        assert exc_info.value.current_status == current
        assert exc_info.value.attempted_status == target

    def test_invalid_edge_wins_over_forbidden_role(self, make_item, videaste):
        item = make_item(ShortStatus.ROLLED)

        with pytest.raises(InvalidTransitionError):
            apply_transition(item, ShortStatus.PUBLISHED, videaste, None, NOW)

    def test_discarded_short_cannot_be_completed(self, make_item, videaste):
        item = make_item(ShortStatus.REJECTED, assigned_to=videaste.id)

        with pytest.raises(InvalidTransitionError):
            apply_transition(
                item, ShortStatus.COMPLETED, videaste,
                TransitionInput(file_ref=NEW_FILE), NOW,
            )


class TestPermissions:
    """Test role and identity checks"""

    @pytest.mark.parametrize("current,target", [
        (ShortStatus.ROLLED, ShortStatus.RETAINED),
        (ShortStatus.ROLLED, ShortStatus.REJECTED),
        (ShortStatus.RETAINED, ShortStatus.REJECTED),
    ])
    def test_videaste_cannot_curate(self, make_item, videaste, current, target):
        item = make_item(current)

        with pytest.raises(ForbiddenTransitionError) as exc_info:
            apply_transition(item, target, videaste, None, NOW)

        assert exc_info.value.actor_role == UserRole.VIDEASTE

    def test_assistant_cannot_assign(self, make_item, assistant, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)

        with pytest.raises(ForbiddenTransitionError):
            apply_transition(
                item, ShortStatus.ASSIGNED, assistant, assign_input(videaste, vf_target), NOW
            )

    @pytest.mark.parametrize("role", [UserRole.ASSISTANT, UserRole.VIDEASTE])
    def test_only_admin_reviews_and_publishes(self, make_item, role):
        actor = Actor(id=uuid4(), role=role)

        with pytest.raises(ForbiddenTransitionError):
            apply_transition(make_item(ShortStatus.COMPLETED), ShortStatus.VALIDATED, actor, None, NOW)
        with pytest.raises(ForbiddenTransitionError):
            apply_transition(make_item(ShortStatus.VALIDATED), ShortStatus.PUBLISHED, actor, None, NOW)

    def test_admin_cannot_start_editing(self, make_item, admin):
        item = make_item(ShortStatus.ASSIGNED)

        with pytest.raises(ForbiddenTransitionError):
            apply_transition(item, ShortStatus.IN_PROGRESS, admin, None, NOW)

    def test_other_videaste_cannot_start(self, make_item):
        item = make_item(ShortStatus.ASSIGNED)
        intruder = Actor(id=uuid4(), role=UserRole.VIDEASTE)

        with pytest.raises(ForbiddenTransitionError) as exc_info:
            apply_transition(item, ShortStatus.IN_PROGRESS, intruder, None, NOW)

        assert exc_info.value.actor_id == intruder.id

    def test_blocked_actor_is_refused(self, make_item, admin):
        item = make_item(ShortStatus.VALIDATED)
        blocked = Actor(id=admin.id, role=UserRole.ADMIN, status=UserStatus.BLOCKED)

        with pytest.raises(ForbiddenTransitionError):
            apply_transition(item, ShortStatus.PUBLISHED, blocked, None, NOW)


class TestCuration:
    """Test retain / discard"""

    def test_retain(self, make_item, assistant):
        item = make_item(ShortStatus.ROLLED)

        result = apply_transition(item, ShortStatus.RETAINED, assistant, None, NOW)

        assert result.updated_fields == {"status": ShortStatus.RETAINED, "retained_at": NOW}
        assert result.effects == ()

    def test_discard_sets_rejected_at(self, make_item, admin):
        item = make_item(ShortStatus.RETAINED)

        result = apply_transition(item, ShortStatus.REJECTED, admin, None, NOW)

        assert result.updated_fields["status"] == ShortStatus.REJECTED
        assert result.updated_fields["rejected_at"] == NOW
        assert check_invariants(result.apply_to(item)) == []


class TestAssign:
    """Test RETAINED → ASSIGNED"""

    def test_compatible_assignment(self, make_item, admin, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)
        deadline = NOW + timedelta(days=5)

        result = apply_transition(
            item, ShortStatus.ASSIGNED, admin,
            assign_input(videaste, vf_target, deadline, notes="  Coupe à 45s  "), NOW,
        )

        fields = result.updated_fields
        assert fields["status"] == ShortStatus.ASSIGNED
        assert fields["target_channel"] == vf_target
        assert fields["assigned_to"] == videaste.id
        assert fields["assigned_by"] == admin.id
        assert fields["deadline"] == deadline
        assert fields["notes"] == "Coupe à 45s"
        assert fields["assigned_at"] == NOW

        assert len(result.effects) == 1
        effect = result.effects[0]
        assert isinstance(effect, NotifyUser)
        assert effect.user_id == videaste.id
        assert effect.kind == NotificationKind.SHORT_ASSIGNED
        assert effect.payload["short_id"] == str(item.id)
        assert effect.payload["deadline"] == deadline.isoformat()
        assert check_invariants(result.apply_to(item)) == []

    def test_cross_language_target_is_incompatible(self, make_item, admin, videaste, va_target):
        item = make_item(ShortStatus.RETAINED)

        with pytest.raises(IncompatibleChannelError) as exc_info:
            apply_transition(
                item, ShortStatus.ASSIGNED, admin, assign_input(videaste, va_target), NOW
            )

        assert exc_info.value.source_type == ContentType.VF_AVEC_EDIT
        assert exc_info.value.target_type == ContentType.VA_SANS_EDIT
        assert exc_info.value.field == "target_channel_id"

    def test_resolver_is_injectable(self, make_item, admin, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)

        # VF_AVEC_EDIT only maps to VF_AVEC_EDIT under the edit-preserving rule
        with pytest.raises(IncompatibleChannelError):
            apply_transition(
                item, ShortStatus.ASSIGNED, admin, assign_input(videaste, vf_target), NOW,
                resolver=edit_preserving_targets,
            )

    @pytest.mark.parametrize("missing", ["videaste_id", "target_channel", "deadline"])
    def test_missing_inputs(self, make_item, admin, videaste, vf_target, missing):
        item = make_item(ShortStatus.RETAINED)
        values = dict(
            videaste_id=videaste.id,
            target_channel=vf_target,
            deadline=NOW + timedelta(days=1),
        )
        values[missing] = None

        with pytest.raises(MissingInputError) as exc_info:
            apply_transition(item, ShortStatus.ASSIGNED, admin, TransitionInput(**values), NOW)

        expected_field = "target_channel_id" if missing == "target_channel" else missing
        assert exc_info.value.field == expected_field

    def test_no_input_at_all(self, make_item, admin):
        item = make_item(ShortStatus.RETAINED)

        with pytest.raises(MissingInputError):
            apply_transition(item, ShortStatus.ASSIGNED, admin, None, NOW)

    def test_past_deadline_is_invalid(self, make_item, admin, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)

        with pytest.raises(InvalidInputError) as exc_info:
            apply_transition(
                item, ShortStatus.ASSIGNED, admin,
                assign_input(videaste, vf_target, NOW - timedelta(minutes=1)), NOW,
            )

        assert exc_info.value.field == "deadline"

    def test_deadline_equal_to_now_is_accepted(self, make_item, admin, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)

        result = apply_transition(
            item, ShortStatus.ASSIGNED, admin, assign_input(videaste, vf_target, NOW), NOW
        )

        assert result.updated_fields["deadline"] == NOW

    def test_naive_deadline_is_invalid(self, make_item, admin, videaste, vf_target):
        item = make_item(ShortStatus.RETAINED)
        naive = datetime(2024, 3, 10, 18, 0)

        with pytest.raises(InvalidInputError) as exc_info:
            apply_transition(
                item, ShortStatus.ASSIGNED, admin, assign_input(videaste, vf_target, naive), NOW
            )

        assert exc_info.value.field == "deadline"
        assert exc_info.value.to_dict()["error"] == "INVALID_INPUT"


class TestEditing:
    """Test ASSIGNED → IN_PROGRESS → COMPLETED"""

    def test_start(self, make_item, videaste):
        item = make_item(ShortStatus.ASSIGNED)

        result = apply_transition(item, ShortStatus.IN_PROGRESS, videaste, None, NOW)

        assert result.updated_fields == {"status": ShortStatus.IN_PROGRESS}
        assert result.effects == ()

    def test_complete_requires_file(self, make_item, videaste):
        item = make_item(ShortStatus.IN_PROGRESS)

        with pytest.raises(MissingInputError) as exc_info:
            apply_transition(item, ShortStatus.COMPLETED, videaste, TransitionInput(), NOW)

        assert exc_info.value.field == "file_ref"

    def test_complete(self, make_item, admin, videaste):
        item = make_item(ShortStatus.IN_PROGRESS)

        result = apply_transition(
            item, ShortStatus.COMPLETED, videaste, TransitionInput(file_ref=NEW_FILE), NOW
        )

        fields = result.updated_fields
        assert fields["file_ref"] == NEW_FILE
        assert fields["completed_at"] == NOW
        assert fields["uploaded_at"] == NOW
        assert result.effects == (
            NotifyUser(
                user_id=admin.id,
                kind=NotificationKind.SHORT_COMPLETED,
                payload={
                    "short_id": str(item.id),
                    "videaste_id": str(videaste.id),
                    "file_name": "v2.mp4",
                    "reupload": False,
                },
            ),
        )
        assert check_invariants(result.apply_to(item)) == []


class TestReview:
    """Test COMPLETED → VALIDATED / REJECTED"""

    def test_validate_without_feedback(self, make_item, admin, videaste):
        item = make_item(ShortStatus.COMPLETED)

        result = apply_transition(item, ShortStatus.VALIDATED, admin, None, NOW)

        assert result.updated_fields["validated_at"] == NOW
        assert result.updated_fields["admin_feedback"] is None
        assert [e.kind for e in result.effects] == [NotificationKind.SHORT_VALIDATED]
        assert result.effects[0].user_id == videaste.id

    def test_validate_with_feedback(self, make_item, admin):
        item = make_item(ShortStatus.COMPLETED)

        result = apply_transition(
            item, ShortStatus.VALIDATED, admin, TransitionInput(admin_feedback="Parfait"), NOW
        )

        assert result.updated_fields["admin_feedback"] == "Parfait"
        assert result.effects[0].payload["admin_feedback"] == "Parfait"

    @pytest.mark.parametrize("feedback", [None, "", "   \n\t"])
    def test_reject_requires_feedback(self, make_item, admin, feedback):
        item = make_item(ShortStatus.COMPLETED)

        with pytest.raises(MissingFeedbackError) as exc_info:
            apply_transition(
                item, ShortStatus.REJECTED, admin, TransitionInput(admin_feedback=feedback), NOW
            )

        assert exc_info.value.field == "admin_feedback"

    def test_missing_feedback_is_a_missing_input(self):
        assert issubclass(MissingFeedbackError, MissingInputError)

    def test_reject_keeping_file(self, make_item, admin, videaste):
        item = make_item(ShortStatus.COMPLETED)

        result = apply_transition(
            item, ShortStatus.REJECTED, admin, TransitionInput(admin_feedback="Trop long"), NOW
        )

        assert "file_ref" not in result.updated_fields
        assert result.updated_fields["rejected_at"] == NOW
        assert len(result.effects) == 1
        assert result.effects[0].kind == NotificationKind.SHORT_REJECTED
        assert result.effects[0].payload["file_deleted"] is False
        assert check_invariants(result.apply_to(item)) == []

    def test_reject_deleting_file_orders_delete_before_notify(self, make_item, admin, videaste):
        item = make_item(ShortStatus.COMPLETED)
        old_file = item.file_ref

        result = apply_transition(
            item, ShortStatus.REJECTED, admin,
            TransitionInput(admin_feedback="Son coupé", delete_file=True), NOW,
        )

        assert result.updated_fields["file_ref"] is None
        assert result.updated_fields["admin_feedback"] == "Son coupé"
        assert result.effects[0] == DeleteBlob(file_ref=old_file)
        assert isinstance(result.effects[1], NotifyUser)
        assert result.effects[1].user_id == videaste.id
        assert result.effects[1].kind == NotificationKind.SHORT_REJECTED
        assert result.effects[1].payload["admin_feedback"] == "Son coupé"
        assert result.effects[1].payload["file_deleted"] is True


class TestReupload:
    """Test REJECTED → COMPLETED after review rejection"""

    def _rejected(self, make_item, admin, **kwargs):
        item = make_item(ShortStatus.COMPLETED)
        result = apply_transition(
            item, ShortStatus.REJECTED, admin,
            TransitionInput(admin_feedback="À refaire", **kwargs),
            NOW - timedelta(hours=1),
        )
        return result.apply_to(item)

    def test_reupload_after_deleted_file(self, make_item, admin, videaste):
        rejected = self._rejected(make_item, admin, delete_file=True)
        later = NOW + timedelta(hours=2)

        result = apply_transition(
            rejected, ShortStatus.COMPLETED, videaste, TransitionInput(file_ref=NEW_FILE), later
        )

        assert result.updated_fields["file_ref"] == NEW_FILE
        # First completion and upload timestamps are kept
        assert "completed_at" not in result.updated_fields
        assert "uploaded_at" not in result.updated_fields
        assert [type(e) for e in result.effects] == [NotifyUser]
        assert result.effects[0].payload["reupload"] is True

    def test_reupload_supersedes_kept_file(self, make_item, admin, videaste):
        rejected = self._rejected(make_item, admin)
        old_file = rejected.file_ref

        result = apply_transition(
            rejected, ShortStatus.COMPLETED, videaste, TransitionInput(file_ref=NEW_FILE), NOW
        )

        assert result.effects[-1] == DeleteBlob(file_ref=old_file)

    def test_reupload_same_file_keeps_it(self, make_item, admin, videaste):
        rejected = self._rejected(make_item, admin)

        result = apply_transition(
            rejected, ShortStatus.COMPLETED, videaste,
            TransitionInput(file_ref=rejected.file_ref), NOW,
        )

        assert not any(isinstance(e, DeleteBlob) for e in result.effects)

    def test_only_assigned_videaste_reuploads(self, make_item, admin):
        rejected = self._rejected(make_item, admin)
        intruder = Actor(id=uuid4(), role=UserRole.VIDEASTE)

        with pytest.raises(ForbiddenTransitionError):
            apply_transition(
                rejected, ShortStatus.COMPLETED, intruder, TransitionInput(file_ref=NEW_FILE), NOW
            )


class TestPublish:
    """Test VALIDATED → PUBLISHED"""

    def test_publish(self, make_item, admin):
        item = make_item(ShortStatus.VALIDATED)

        result = apply_transition(item, ShortStatus.PUBLISHED, admin, None, NOW)

        assert result.updated_fields == {"status": ShortStatus.PUBLISHED, "published_at": NOW}
        assert result.effects == ()
        assert check_invariants(result.apply_to(item)) == []


class TestFullLifecycle:
    """Test that each decided step keeps the snapshot consistent"""

    def test_happy_path(self, make_item, admin, assistant, videaste, vf_target):
        item = make_item(ShortStatus.ROLLED)
        steps = [
            (ShortStatus.RETAINED, assistant, None),
            (ShortStatus.ASSIGNED, admin, assign_input(videaste, vf_target)),
            (ShortStatus.IN_PROGRESS, videaste, None),
            (ShortStatus.COMPLETED, videaste, TransitionInput(file_ref=NEW_FILE)),
            (ShortStatus.VALIDATED, admin, None),
            (ShortStatus.PUBLISHED, admin, None),
        ]

        for to, actor, inputs in steps:
            item = apply_transition(item, to, actor, inputs, NOW).apply_to(item)
            assert item.status == to
            assert check_invariants(item) == []

        assert item.published_at == NOW
        assert item.file_ref == NEW_FILE


class TestReassign:
    """Test handing a short over to another videaste"""

    @pytest.mark.parametrize("status", [ShortStatus.ASSIGNED, ShortStatus.IN_PROGRESS])
    def test_reassign(self, make_item, admin, status):
        item = make_item(status)
        new_videaste = uuid4()

        result = reassign(item, admin, new_videaste, NOW)

        assert result.updated_fields == {
            "status": ShortStatus.ASSIGNED,
            "assigned_to": new_videaste,
            "assigned_by": admin.id,
        }
        effect = result.effects[0]
        assert effect.user_id == new_videaste
        assert effect.kind == NotificationKind.SHORT_ASSIGNED
        assert effect.payload["reassigned"] is True
        updated = result.apply_to(item)
        assert updated.assigned_at == item.assigned_at
        assert check_invariants(updated) == []

    def test_same_videaste_is_noop(self, make_item, admin, videaste):
        item = make_item(ShortStatus.ASSIGNED)

        assert reassign(item, admin, videaste.id, NOW).is_noop

    @pytest.mark.parametrize("status", [ShortStatus.RETAINED, ShortStatus.COMPLETED])
    def test_not_reassignable(self, make_item, admin, status):
        with pytest.raises(InvalidTransitionError):
            reassign(make_item(status), admin, uuid4(), NOW)

    def test_requires_assign_permission(self, make_item, assistant):
        with pytest.raises(ForbiddenTransitionError):
            reassign(make_item(ShortStatus.ASSIGNED), assistant, uuid4(), NOW)

    def test_requires_videaste(self, make_item, admin):
        with pytest.raises(MissingInputError):
            reassign(make_item(ShortStatus.ASSIGNED), admin, None, NOW)


class TestAddComment:
    """Test the comment thread"""

    def test_videaste_comment_notifies_assigner(self, make_item, admin, videaste):
        item = make_item(ShortStatus.IN_PROGRESS)

        result = add_comment(item, videaste, "  Quelle musique ?  ", NOW)

        comments = result.updated_fields["comments"]
        assert len(comments) == 1
        assert comments[0].text == "Quelle musique ?"
        assert comments[0].author_id == videaste.id
        assert comments[0].created_at == NOW
        assert "status" not in result.updated_fields
        assert result.effects[0].user_id == admin.id
        assert result.effects[0].kind == NotificationKind.SHORT_COMMENT_ADDED

    def test_admin_comment_notifies_videaste(self, make_item, admin, videaste):
        item = make_item(ShortStatus.ASSIGNED)

        result = add_comment(item, admin, "Garde l'intro", NOW)

        assert result.effects[0].user_id == videaste.id

    def test_comment_before_assignment_notifies_nobody(self, make_item, assistant):
        item = make_item(ShortStatus.RETAINED)

        result = add_comment(item, assistant, "À garder", NOW)

        assert result.effects == ()

    def test_comments_are_appended(self, make_item, admin):
        item = make_item(ShortStatus.ASSIGNED)
        item = add_comment(item, admin, "un", NOW).apply_to(item)
        item = add_comment(item, admin, "deux", NOW).apply_to(item)

        assert [c.text for c in item.comments] == ["un", "deux"]

    def test_long_comment_is_truncated_in_payload(self, make_item, admin):
        item = make_item(ShortStatus.ASSIGNED)

        result = add_comment(item, admin, "x" * 500, NOW)

        assert len(result.updated_fields["comments"][0].text) == 500
        assert len(result.effects[0].payload["comment"]) == 200

    def test_empty_comment(self, make_item, admin):
        with pytest.raises(MissingInputError) as exc_info:
            add_comment(make_item(ShortStatus.ASSIGNED), admin, "   ", NOW)

        assert exc_info.value.field == "comment"

    def test_unassigned_videaste_cannot_comment(self, make_item):
        intruder = Actor(id=uuid4(), role=UserRole.VIDEASTE)

        with pytest.raises(ForbiddenTransitionError) as exc_info:
            add_comment(make_item(ShortStatus.ASSIGNED), intruder, "Salut", NOW)

        assert exc_info.value.attempted_status is None


class TestPurity:
    """Test that decisions never mutate the snapshot"""

    def test_snapshot_unchanged(self, make_item, admin):
        item = make_item(ShortStatus.COMPLETED)
        before = item.with_changes()

        apply_transition(
            item, ShortStatus.REJECTED, admin,
            TransitionInput(admin_feedback="Non", delete_file=True), NOW,
        )

        assert item == before
        assert item.file_ref is not None

    def test_target_channel_snapshot_is_used_as_is(self, make_item, admin, videaste):
        item = make_item(ShortStatus.RETAINED)
        channel = Channel(id=uuid4(), content_type=ContentType.VF_AVEC_EDIT, name="VF bis")

        result = apply_transition(
            item, ShortStatus.ASSIGNED, admin, assign_input(videaste, channel), NOW
        )

        assert result.updated_fields["target_channel"] is channel
