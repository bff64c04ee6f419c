"""Short repository - persistence for workflow snapshots.

Loads ShortItem snapshots from the database and writes transition results
back with a compare-and-swap on (id, status, version). A CAS that matches no
row means somebody else changed the short since the snapshot was taken; the
caller gets a StaleStateError and must re-fetch.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from ..domain.shorts.errors import ShortNotFoundError, StaleStateError
from ..domain.shorts.models import Comment, ShortItem
from ..domain.shorts.status import COMPLETED_STATUSES, ShortStatus
from ..models.base import utcnow
from ..models.short import Short
from ..models.short_comment import ShortComment

logger = logging.getLogger(__name__)

# Snapshot fields stored in a column of the same name
_PLAIN_FIELDS = frozenset({
    "assigned_to",
    "assigned_by",
    "deadline",
    "notes",
    "admin_feedback",
    "retained_at",
    "assigned_at",
    "completed_at",
    "uploaded_at",
    "validated_at",
    "rejected_at",
    "published_at",
})

_OPEN_STATUSES = [s.value for s in ShortStatus if s not in COMPLETED_STATUSES]


def to_snapshot(row: Short) -> ShortItem:
    """Build the immutable domain snapshot of a Short row."""
    return ShortItem(
        id=row.id,
        status=ShortStatus(row.status),
        source_channel=row.source_channel.to_domain(),
        created_at=row.created_at,
        target_channel=row.target_channel.to_domain() if row.target_channel else None,
        assigned_to=row.assigned_to,
        assigned_by=row.assigned_by,
        deadline=row.deadline,
        notes=row.notes,
        admin_feedback=row.admin_feedback,
        file_ref=row.file_ref,
        comments=tuple(
            Comment(author_id=c.author_id, text=c.text, created_at=c.created_at)
            for c in row.comments
        ),
        retained_at=row.retained_at,
        assigned_at=row.assigned_at,
        completed_at=row.completed_at,
        uploaded_at=row.uploaded_at,
        validated_at=row.validated_at,
        rejected_at=row.rejected_at,
        published_at=row.published_at,
        version=row.version,
    )


def to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate snapshot field updates into Short column values.

    Raises:
        ValueError: If a field has no column mapping
    """
    values: Dict[str, Any] = {}
    for name, value in fields.items():
        if name == "status":
            values["status"] = ShortStatus(value).value
        elif name == "target_channel":
            values["target_channel_id"] = value.id if value is not None else None
        elif name == "file_ref":
            values["file_id"] = value.file_id if value else None
            values["file_name"] = value.name if value else None
            values["file_size_bytes"] = value.size_bytes if value else None
            values["file_mime_type"] = value.mime_type if value else None
        elif name in _PLAIN_FIELDS:
            values[name] = value
        else:
            raise ValueError(f"Field {name!r} cannot be persisted on a short")
    return values


class ShortRepository:
    """Repository for Short rows and their comments."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, short_id: UUID) -> Short:
        """Get a short row.

        Raises:
            ShortNotFoundError: If no short has this ID
        """
        row = (
            self.db.query(Short)
            .options(
                joinedload(Short.source_channel),
                joinedload(Short.target_channel),
            )
            .filter(Short.id == short_id)
            .first()
        )
        if row is None:
            raise ShortNotFoundError(f"Short {short_id} not found", short_id=short_id)
        return row

    def load_snapshot(self, short_id: UUID) -> ShortItem:
        return to_snapshot(self.get(short_id))

    def compare_and_swap(self, snapshot: ShortItem, fields: Dict[str, Any]) -> ShortItem:
        """Persist updated fields if the row still matches the snapshot.

        The row is updated only where id, status and version equal the
        snapshot's; ``version`` is incremented. Does not commit.

        Args:
            snapshot: Snapshot the fields were decided from
            fields: Snapshot field updates (from TransitionResult.updated_fields)

        Returns:
            ShortItem: The new snapshot, as persisted

        Raises:
            StaleStateError: If the row changed since the snapshot was taken
        """
        values = to_columns(fields)
        values["version"] = snapshot.version + 1
        values["updated_at"] = utcnow()

        stmt = (
            update(Short)
            .where(
                Short.id == snapshot.id,
                Short.status == snapshot.status.value,
                Short.version == snapshot.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount != 1:
            current = (
                self.db.query(Short.status, Short.version)
                .filter(Short.id == snapshot.id)
                .first()
            )
            if current is None:
                raise ShortNotFoundError(
                    f"Short {snapshot.id} not found", short_id=snapshot.id
                )
            logger.warning(
                "Compare-and-swap conflict",
                extra={
                    "short_id": str(snapshot.id),
                    "expected_status": snapshot.status.value,
                    "expected_version": snapshot.version,
                    "actual_status": current.status,
                    "actual_version": current.version,
                },
            )
            raise StaleStateError(
                f"Short {snapshot.id} changed concurrently "
                f"(expected version {snapshot.version}, found {current.version})",
                short_id=snapshot.id,
                current_status=snapshot.status,
                attempted_status=fields.get("status"),
                expected_version=snapshot.version,
                actual_version=current.version,
                actual_status=ShortStatus(current.status),
            )

        # Rows already in the session still hold the pre-update values
        self.db.expire_all()
        return snapshot.with_changes(**fields, version=snapshot.version + 1)

    def append_comments(self, short_id: UUID, comments: Sequence[Comment]) -> List[ShortComment]:
        """Insert comments without touching the short's version. Does not commit."""
        rows = [
            ShortComment(
                short_id=short_id,
                author_id=comment.author_id,
                text=comment.text,
                created_at=comment.created_at,
            )
            for comment in comments
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.query(Short.status, func.count(Short.id)).group_by(Short.status).all()
        counts = {status.value: 0 for status in ShortStatus}
        counts.update({status: count for status, count in rows})
        return counts

    def count_late(self, now: datetime) -> int:
        """Count shorts past their deadline that are not completed (now > deadline)."""
        return (
            self.db.query(func.count(Short.id))
            .filter(
                Short.deadline.isnot(None),
                Short.deadline < now,
                Short.status.in_(_OPEN_STATUSES),
            )
            .scalar()
        )

    def list_deadline_candidates(self, limit: Optional[int] = None) -> List[Short]:
        """Open shorts with a deadline whose late notice has not been sent yet."""
        query = (
            self.db.query(Short)
            .options(
                joinedload(Short.source_channel),
                joinedload(Short.target_channel),
            )
            .filter(
                Short.deadline.isnot(None),
                Short.status.in_(_OPEN_STATUSES),
                Short.late_notified_at.is_(None),
            )
            .order_by(Short.deadline)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def mark_reminder_sent(self, short_id: UUID, now: datetime) -> bool:
        """Record the deadline reminder once. Returns False if already recorded."""
        return self._mark_once(short_id, Short.deadline_reminder_sent_at, now)

    def mark_late_notified(self, short_id: UUID, now: datetime) -> bool:
        """Record the late notice once. Returns False if already recorded."""
        return self._mark_once(short_id, Short.late_notified_at, now)

    def reset_deadline_notices(self, short_id: UUID) -> None:
        """Clear the reminder and late-notice markers so they go out again. Does not commit."""
        stmt = (
            update(Short)
            .where(Short.id == short_id)
            .values(deadline_reminder_sent_at=None, late_notified_at=None)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)

    def _mark_once(self, short_id: UUID, column, now: datetime) -> bool:
        stmt = (
            update(Short)
            .where(Short.id == short_id, column.is_(None))
            .values({column.key: now})
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1
