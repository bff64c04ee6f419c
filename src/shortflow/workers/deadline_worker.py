"""Periodic deadline scan.

Notifies assignees once when their deadline comes within the reminder window
and once when it has passed. Lateness itself is never written; only the
"already notified" bookkeeping columns are.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from celery import shared_task
from sqlalchemy.orm import Session

from ..config import Settings, settings
from ..database import SessionLocal
from ..dependencies import build_dispatcher
from ..domain.deadlines.clock import Clock, SystemClock
from ..domain.deadlines.lateness import deadline_notification
from ..domain.notifications.kinds import NotificationKind
from ..notifications.dispatcher import EffectDispatcher
from ..observability.metrics import deadline_notifications_total, late_shorts
from ..shorts.repository import ShortRepository, to_snapshot
from .effect_worker import enqueue_effect

logger = logging.getLogger(__name__)


async def run_deadline_scan(
    db: Session,
    dispatcher: EffectDispatcher,
    clock: Clock,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Scan open shorts and emit the deadline notifications they are owed.

    Bookkeeping is committed before dispatch so a crash cannot notify twice
    through the scan; failed dispatches are handled by the dispatcher.

    Returns:
        Dict with scan statistics:
        - scanned: Candidate shorts examined
        - reminders: SHORT_DEADLINE_REMINDER notifications emitted
        - late_notices: SHORT_LATE notifications emitted
        - late_total: Shorts currently late
    """
    config = config or settings
    now = clock.now()
    window = timedelta(hours=config.DEADLINE_REMINDER_HOURS)
    repository = ShortRepository(db)

    effects = []
    candidates = repository.list_deadline_candidates()
    for row in candidates:
        effect = deadline_notification(
            to_snapshot(row),
            now,
            reminder_sent=row.deadline_reminder_sent_at is not None,
            late_notified=row.late_notified_at is not None,
            window=window,
        )
        if effect is None:
            continue
        if effect.kind == NotificationKind.SHORT_LATE:
            marked = repository.mark_late_notified(row.id, now)
        else:
            marked = repository.mark_reminder_sent(row.id, now)
        if marked:
            effects.append(effect)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    await dispatcher.dispatch(effects)

    reminders = sum(1 for e in effects if e.kind == NotificationKind.SHORT_DEADLINE_REMINDER)
    late_notices = len(effects) - reminders
    late_total = repository.count_late(now)

    deadline_notifications_total.labels(kind=NotificationKind.SHORT_DEADLINE_REMINDER.value).inc(reminders)
    deadline_notifications_total.labels(kind=NotificationKind.SHORT_LATE.value).inc(late_notices)
    late_shorts.set(late_total)

    stats = {
        "scanned": len(candidates),
        "reminders": reminders,
        "late_notices": late_notices,
        "late_total": late_total,
    }
    logger.info("Deadline scan completed", extra=stats)
    return stats


@shared_task(name="shorts.deadline_scan", bind=True)
def deadline_scan_task(self) -> Dict[str, Any]:
    """Run the deadline scan (scheduled by Celery Beat).

    Idempotent: a second run in the same window finds nothing left to send.
    """
    logger.info("Deadline scan task started")
    db = SessionLocal()
    try:
        return asyncio.run(run_deadline_scan(
            db,
            build_dispatcher(on_exhausted=enqueue_effect),
            SystemClock(),
        ))
    finally:
        db.close()
