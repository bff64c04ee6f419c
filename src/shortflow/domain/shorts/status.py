"""Short status state machine.

State Flow:
    ROLLED → RETAINED → ASSIGNED → IN_PROGRESS → COMPLETED → VALIDATED → PUBLISHED
                                                           ↘ REJECTED

ROLLED and RETAINED may also be discarded straight to REJECTED.
A REJECTED short that had been completed may be re-uploaded (REJECTED → COMPLETED).

Terminal States: PUBLISHED, REJECTED (unless re-uploaded)
"""

from enum import Enum
from typing import Dict, FrozenSet, List


class ShortStatus(str, Enum):
    """Short status enumeration.

    Values are stored as TEXT in the database and must match exactly.
    """
    ROLLED = "ROLLED"            # Picked at random from a source channel
    RETAINED = "RETAINED"        # Kept by an admin or assistant
    REJECTED = "REJECTED"        # Discarded, or refused at review
    ASSIGNED = "ASSIGNED"        # Assigned to a videaste with a deadline
    IN_PROGRESS = "IN_PROGRESS"  # Videaste is editing
    COMPLETED = "COMPLETED"      # Video uploaded, waiting for review
    VALIDATED = "VALIDATED"      # Approved by an admin
    PUBLISHED = "PUBLISHED"      # Live on the publication channel

    @property
    def label(self) -> str:
        """French display label."""
        return STATUS_LABELS[self]


STATUS_LABELS: Dict[ShortStatus, str] = {
    ShortStatus.ROLLED: "Rollé",
    ShortStatus.RETAINED: "Retenu",
    ShortStatus.REJECTED: "Rejeté",
    ShortStatus.ASSIGNED: "Assigné",
    ShortStatus.IN_PROGRESS: "En cours",
    ShortStatus.COMPLETED: "Terminé",
    ShortStatus.VALIDATED: "Validé",
    ShortStatus.PUBLISHED: "Publié",
}


ALLOWED_TRANSITIONS: Dict[ShortStatus, List[ShortStatus]] = {
    ShortStatus.ROLLED: [ShortStatus.RETAINED, ShortStatus.REJECTED],
    ShortStatus.RETAINED: [ShortStatus.ASSIGNED, ShortStatus.REJECTED],
    ShortStatus.ASSIGNED: [ShortStatus.IN_PROGRESS],
    ShortStatus.IN_PROGRESS: [ShortStatus.COMPLETED],
    ShortStatus.COMPLETED: [ShortStatus.VALIDATED, ShortStatus.REJECTED],
    ShortStatus.VALIDATED: [ShortStatus.PUBLISHED],
    ShortStatus.PUBLISHED: [],  # Terminal state
    ShortStatus.REJECTED: [ShortStatus.COMPLETED],  # Re-upload only
}

_missing = set(ShortStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"ALLOWED_TRANSITIONS is missing statuses: {sorted(s.value for s in _missing)}")

# Work is done: no deadline tracking past these
COMPLETED_STATUSES: FrozenSet[ShortStatus] = frozenset({
    ShortStatus.COMPLETED,
    ShortStatus.VALIDATED,
    ShortStatus.PUBLISHED,
})

# Statuses that always carry a target channel, an assignee and a deadline
ASSIGNED_STATUSES: FrozenSet[ShortStatus] = frozenset({
    ShortStatus.ASSIGNED,
    ShortStatus.IN_PROGRESS,
    ShortStatus.COMPLETED,
    ShortStatus.VALIDATED,
    ShortStatus.PUBLISHED,
})


def can_transition(current_status: ShortStatus, new_status: ShortStatus) -> bool:
    """Check if a status edge exists in the transition table.

    This is the table check only; guards such as the re-upload rule are
    applied by the state machine.

    Example:
        >>> can_transition(ShortStatus.ROLLED, ShortStatus.RETAINED)
        True
        >>> can_transition(ShortStatus.PUBLISHED, ShortStatus.REJECTED)
        False
    """
    return new_status in ALLOWED_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(status: ShortStatus) -> List[ShortStatus]:
    """Get list of allowed target statuses from a given status."""
    return list(ALLOWED_TRANSITIONS.get(status, []))
