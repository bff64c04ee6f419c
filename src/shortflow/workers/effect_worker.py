"""Effect retry worker.

Effects whose inline dispatch attempts are exhausted are serialized and
handed to ``effects.dispatch``, which retries them with exponential backoff.
Both Notifier and BlobStore operations are idempotent, so a redelivered task
is harmless.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

from ..config import settings
from ..dependencies import build_dispatcher
from ..domain.shorts.effects import Effect, effect_from_dict, effect_to_dict
from ..notifications.dispatcher import TRANSIENT_ERRORS, is_retryable
from ..observability.request_id import get_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)


@shared_task(name="effects.dispatch", bind=True, max_retries=settings.EFFECT_MAX_RETRIES)
def dispatch_effect_task(
    self,
    effect: Dict[str, Any],
    correlation_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Execute one serialized effect.

    Args:
        effect: Effect serialized with effect_to_dict
        correlation_id: Correlation ID of the request that produced the effect

    Returns:
        Dict with the outcome:
            - status: 'delivered' or 'failed'
            - effect_type: 'notify_user' or 'delete_blob'
            - error: Error message (if failed)
    """
    set_correlation_id(correlation_id)
    decoded = effect_from_dict(effect)
    dispatcher = build_dispatcher(max_attempts=1)

    try:
        asyncio.run(dispatcher.execute(decoded))
    except TRANSIENT_ERRORS as e:
        if is_retryable(e) and self.request.retries < self.max_retries:
            countdown = settings.EFFECT_RETRY_COUNTDOWN_SECONDS * (2 ** self.request.retries)
            logger.warning(
                "Effect retry scheduled",
                extra={
                    "effect_type": effect["type"],
                    "retries": self.request.retries,
                    "countdown": countdown,
                    "error": str(e),
                },
            )
            raise self.retry(exc=e, countdown=countdown)

        logger.error(
            "Effect abandoned",
            extra={"effect_type": effect["type"], "retries": self.request.retries, "error": str(e)},
        )
        return {"status": "failed", "effect_type": effect["type"], "error": str(e)}

    logger.info("Effect delivered by worker", extra={"effect_type": effect["type"]})
    return {"status": "delivered", "effect_type": effect["type"]}


def enqueue_effect(effect: Effect) -> None:
    """Hand an effect to the retry worker (EffectDispatcher.on_exhausted hook)."""
    dispatch_effect_task.delay(
        effect=effect_to_dict(effect),
        correlation_id=get_correlation_id(),
    )
