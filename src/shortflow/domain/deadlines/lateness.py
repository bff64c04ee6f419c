"""Deadline and lateness helpers.

Lateness is derived from (deadline, status, now) on every read and is never
stored on the short. An item is late iff it has a deadline, its status is not
one of COMPLETED/VALIDATED/PUBLISHED, and ``now > deadline`` (a deadline equal
to now is not late yet).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from ..notifications.kinds import NotificationKind
from ..shorts.effects import NotifyUser
from ..shorts.models import ShortItem
from ..shorts.status import COMPLETED_STATUSES, ShortStatus
from .clock import Clock

URGENT_DEADLINE_DAYS = 2
DEFAULT_REMINDER_WINDOW = timedelta(hours=24)

_ONE_DAY = timedelta(days=1)


class DeadlineUrgency(str, Enum):
    NONE = "NONE"        # No deadline, or work already done
    NORMAL = "NORMAL"
    URGENT = "URGENT"    # Due within URGENT_DEADLINE_DAYS
    LATE = "LATE"


def days_until(deadline: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days from now until the deadline, truncated toward zero.

    Negative once the deadline is more than a day past. None without deadline.

    Example:
        >>> days_until(datetime(2024, 3, 2, 12, 0), datetime(2024, 3, 1))
        1
    """
    if deadline is None:
        return None
    return int((deadline - now) / _ONE_DAY)


def is_late(deadline: Optional[datetime], status: ShortStatus, now: datetime) -> bool:
    if deadline is None:
        return False
    if status in COMPLETED_STATUSES:
        return False
    return now > deadline


def deadline_urgency(
    deadline: Optional[datetime],
    status: ShortStatus,
    now: datetime,
    urgent_days: int = URGENT_DEADLINE_DAYS,
) -> DeadlineUrgency:
    if deadline is None or status in COMPLETED_STATUSES:
        return DeadlineUrgency.NONE
    if is_late(deadline, status, now):
        return DeadlineUrgency.LATE
    if days_until(deadline, now) <= urgent_days:
        return DeadlineUrgency.URGENT
    return DeadlineUrgency.NORMAL


def needs_reminder(
    deadline: Optional[datetime],
    status: ShortStatus,
    now: datetime,
    window: timedelta = DEFAULT_REMINDER_WINDOW,
) -> bool:
    """True when the deadline falls within ``window`` and is not yet past."""
    if deadline is None or status in COMPLETED_STATUSES:
        return False
    if is_late(deadline, status, now):
        return False
    return deadline - now <= window


@dataclass(frozen=True)
class DeadlineStatus:
    deadline: Optional[datetime]
    is_late: bool
    days_until: Optional[int]
    urgency: DeadlineUrgency

    def to_dict(self) -> dict:
        return {
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "is_late": self.is_late,
            "days_until_deadline": self.days_until,
            "urgency": self.urgency.value,
        }


def evaluate_deadline(
    item: ShortItem,
    clock: Clock,
    urgent_days: int = URGENT_DEADLINE_DAYS,
) -> DeadlineStatus:
    """Evaluate an item's deadline against a single reading of the clock."""
    now = clock.now()
    return DeadlineStatus(
        deadline=item.deadline,
        is_late=is_late(item.deadline, item.status, now),
        days_until=days_until(item.deadline, now),
        urgency=deadline_urgency(item.deadline, item.status, now, urgent_days),
    )


def deadline_notification(
    item: ShortItem,
    now: datetime,
    reminder_sent: bool = False,
    late_notified: bool = False,
    window: timedelta = DEFAULT_REMINDER_WINDOW,
) -> Optional[NotifyUser]:
    """Decide the deadline notification owed to the assignee, if any.

    A late item gets SHORT_LATE once; an item inside the reminder window gets
    SHORT_DEADLINE_REMINDER once. The flags say what was already sent.
    """
    if item.assigned_to is None or item.deadline is None:
        return None

    payload = {
        "short_id": str(item.id),
        "deadline": item.deadline.isoformat(),
        "days_until_deadline": days_until(item.deadline, now),
    }
    if is_late(item.deadline, item.status, now):
        if late_notified:
            return None
        return NotifyUser(item.assigned_to, NotificationKind.SHORT_LATE, payload)
    if needs_reminder(item.deadline, item.status, now, window) and not reminder_sent:
        return NotifyUser(item.assigned_to, NotificationKind.SHORT_DEADLINE_REMINDER, payload)
    return None
