"""Deadlines domain module - clock port and lateness helpers"""

from .clock import Clock, FixedClock, SystemClock
from .lateness import (
    DEFAULT_REMINDER_WINDOW,
    URGENT_DEADLINE_DAYS,
    DeadlineStatus,
    DeadlineUrgency,
    days_until,
    deadline_notification,
    deadline_urgency,
    evaluate_deadline,
    is_late,
    needs_reminder,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "DEFAULT_REMINDER_WINDOW",
    "URGENT_DEADLINE_DAYS",
    "DeadlineStatus",
    "DeadlineUrgency",
    "days_until",
    "deadline_notification",
    "deadline_urgency",
    "evaluate_deadline",
    "is_late",
    "needs_reminder",
]
