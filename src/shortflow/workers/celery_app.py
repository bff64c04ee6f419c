"""Celery application and beat schedule.

Run a worker with:
    celery -A shortflow.workers.celery_app worker --beat
"""

from celery import Celery

from ..config import settings
from ..observability.logging_config import configure_logging

celery_app = Celery(
    "shortflow",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "shortflow.workers.effect_worker",
        "shortflow.workers.deadline_worker",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)

celery_app.conf.beat_schedule = {
    'shorts-deadline-scan': {
        'task': 'shorts.deadline_scan',
        'schedule': float(settings.DEADLINE_SCAN_INTERVAL_SECONDS),
        'options': {
            'expires': settings.DEADLINE_SCAN_INTERVAL_SECONDS,  # Skip stale runs
        },
    },
}

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
