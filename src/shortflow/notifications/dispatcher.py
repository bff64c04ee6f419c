"""Effect dispatcher.

Executes the effects returned by the state machine after the new state has
been committed. Dispatch is at-least-once: transient Notifier/BlobStore
failures are retried inline, and effects that still fail are handed to
``on_exhausted`` (the Celery ``effects.dispatch`` task in production).
A failed effect never rolls back the persisted transition.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ..domain.notifications.ports import NotificationDeliveryError, Notifier
from ..domain.shorts.effects import DeleteBlob, Effect, NotifyUser
from ..domain.storage.ports import BlobStore, BlobStoreError
from ..observability.metrics import effect_dispatch_duration_seconds, effects_dispatched_total

logger = logging.getLogger(__name__)

# Failures worth retrying; anything else is a bug and propagates
TRANSIENT_ERRORS = (NotificationDeliveryError, BlobStoreError)


def _effect_type(effect: Effect) -> str:
    return "notify_user" if isinstance(effect, NotifyUser) else "delete_blob"


def is_retryable(error: Exception) -> bool:
    if isinstance(error, NotificationDeliveryError):
        return error.retryable
    return isinstance(error, BlobStoreError)


@dataclass
class DispatchReport:
    """Outcome of dispatching a batch of effects.

    Attributes:
        delivered: Effects executed successfully
        deferred: Effects handed to on_exhausted for a later retry
        failed: Effects dropped (non-retryable, or no on_exhausted hook)
    """
    delivered: List[Effect] = field(default_factory=list)
    deferred: List[Effect] = field(default_factory=list)
    failed: List[Effect] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.deferred and not self.failed


class EffectDispatcher:
    """Runs effects against the Notifier and BlobStore ports.

    Args:
        notifier: Notifier port for NotifyUser
        blob_store: BlobStore port for DeleteBlob
        max_attempts: Inline attempts per effect before giving up
        retry_delay: Base delay in seconds between inline attempts (doubles each time)
        on_exhausted: Called with each effect whose inline attempts are exhausted
    """

    def __init__(
        self,
        notifier: Notifier,
        blob_store: BlobStore,
        max_attempts: int = 3,
        retry_delay: float = 0.2,
        on_exhausted: Optional[Callable[[Effect], None]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.notifier = notifier
        self.blob_store = blob_store
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.on_exhausted = on_exhausted

    async def execute(self, effect: Effect) -> None:
        """Execute a single effect once.

        Raises:
            NotificationDeliveryError, BlobStoreError: On delivery failure
            TypeError: If the value is not a known effect
        """
        if isinstance(effect, NotifyUser):
            await self.notifier.send(effect)
        elif isinstance(effect, DeleteBlob):
            await self.blob_store.delete(effect.file_ref)
        else:
            raise TypeError(f"Unknown effect type: {type(effect).__name__}")

    async def dispatch(self, effects: Iterable[Effect]) -> DispatchReport:
        """Dispatch effects in order, one at a time."""
        report = DispatchReport()
        for effect in effects:
            effect_type = _effect_type(effect)
            started = time.monotonic()
            error = await self._run_with_retries(effect)
            effect_dispatch_duration_seconds.labels(effect_type=effect_type).observe(
                time.monotonic() - started
            )

            if error is None:
                report.delivered.append(effect)
                effects_dispatched_total.labels(effect_type=effect_type, status="delivered").inc()
            elif is_retryable(error) and self.on_exhausted is not None:
                self.on_exhausted(effect)
                report.deferred.append(effect)
                effects_dispatched_total.labels(effect_type=effect_type, status="deferred").inc()
                logger.warning(
                    "Effect deferred to background retry",
                    extra={"effect_type": effect_type, "error": str(error)},
                )
            else:
                report.failed.append(effect)
                effects_dispatched_total.labels(effect_type=effect_type, status="failed").inc()
                logger.error(
                    "Effect dispatch failed",
                    extra={"effect_type": effect_type, "error": str(error)},
                )
        return report

    async def _run_with_retries(self, effect: Effect) -> Optional[Exception]:
        """Return None on success, or the last transient error."""
        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            try:
                await self.execute(effect)
                return None
            except TRANSIENT_ERRORS as e:
                last_error = e
                logger.warning(
                    "Effect attempt failed",
                    extra={
                        "effect_type": _effect_type(effect),
                        "attempt": attempt + 1,
                        "max_attempts": self.max_attempts,
                        "error": str(e),
                    },
                )
                if not is_retryable(e):
                    break
                if attempt + 1 < self.max_attempts and self.retry_delay:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
        return last_error
