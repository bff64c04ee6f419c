"""Structural invariants of a ShortItem snapshot.

Used by tests and by the repository as a sanity check on loaded rows.
"""

from typing import List

from ..channels.compatibility import CompatibilityResolver, compatible_targets
from .models import ShortItem
from .status import ASSIGNED_STATUSES, COMPLETED_STATUSES, ShortStatus


def check_invariants(
    item: ShortItem,
    resolver: CompatibilityResolver = compatible_targets,
) -> List[str]:
    """Return the list of invariants the snapshot violates (empty if valid)."""
    violations = []

    was_assigned = item.status in ASSIGNED_STATUSES or (
        item.status == ShortStatus.REJECTED and item.assigned_at is not None
    )
    if was_assigned and item.target_channel is None:
        violations.append(f"target_channel must be set in status {item.status.value}")
    if not was_assigned and item.target_channel is not None:
        violations.append(f"target_channel must not be set in status {item.status.value}")

    if (item.deadline is None) != (item.target_channel is None):
        violations.append("deadline must be set if and only if target_channel is set")

    if item.status in COMPLETED_STATUSES and item.file_ref is None:
        violations.append(f"file_ref must be set in status {item.status.value}")
    if item.file_ref is not None and item.status not in COMPLETED_STATUSES:
        if item.status != ShortStatus.REJECTED or item.completed_at is None:
            violations.append(f"file_ref must not be set in status {item.status.value}")

    if item.target_channel is not None:
        source_type = item.source_channel.content_type
        if item.target_channel.content_type not in resolver(source_type):
            violations.append(
                f"target channel type {item.target_channel.content_type.value} "
                f"is not compatible with source type {source_type.value}"
            )

    if item.status in ASSIGNED_STATUSES and item.assigned_to is None:
        violations.append(f"assigned_to must be set in status {item.status.value}")

    return violations
