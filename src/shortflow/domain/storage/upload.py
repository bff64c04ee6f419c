"""Upload progress tracking.

An UploadTracker follows a single video upload: progress is reported as a
monotonic percentage (0-100), the upload can be cancelled mid-transfer, and
the tracker only exposes a FileRef once the blob store has confirmed it.
Cancelling or failing an upload never changes the short's status.

``on_bytes`` has the signature boto3 expects for its transfer ``Callback``
and raises UploadCancelledError to abort a cancelled transfer.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from ..shorts.models import FileRef

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    PENDING = "PENDING"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"        # Bytes sent, not yet confirmed by the store
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


TERMINAL_UPLOAD_STATES = frozenset({
    UploadState.CONFIRMED,
    UploadState.CANCELLED,
    UploadState.FAILED,
})


class UploadCancelledError(Exception):
    """Raised inside the transfer when the upload has been cancelled."""
    pass


class UploadTracker:
    """Thread-safe progress tracker for one upload.

    boto3 calls the transfer callback from its worker threads, hence the lock.

    Example:
        tracker = UploadTracker(total_bytes=size)
        tracker.subscribe(lambda percent: print(percent))
        store.upload(short_id, file, "cut.mp4", "video/mp4", tracker=tracker)
    """

    def __init__(self, total_bytes: int):
        if total_bytes < 0:
            raise ValueError("total_bytes must be >= 0")
        self.total_bytes = total_bytes
        self._sent = 0
        self._progress = 0
        self._state = UploadState.PENDING
        self._file_ref: Optional[FileRef] = None
        self._error: Optional[str] = None
        self._listeners: List[Callable[[int], None]] = []
        self._lock = threading.Lock()
        # Delivery state, guarded by _lock
        self._last_notified = 0
        self._delivering = False

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._state == UploadState.CANCELLED

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def file_ref(self) -> Optional[FileRef]:
        """Confirmed reference, None until the store has confirmed the upload."""
        if self._state != UploadState.CONFIRMED:
            return None
        return self._file_ref

    def subscribe(self, listener: Callable[[int], None]) -> None:
        self._listeners.append(listener)

    def on_bytes(self, bytes_transferred: int) -> None:
        """Record transferred bytes (boto3 transfer callback)."""
        with self._lock:
            if self._state == UploadState.CANCELLED:
                raise UploadCancelledError("Upload cancelled")
            if self._state in TERMINAL_UPLOAD_STATES:
                return
            self._state = UploadState.UPLOADING
            self._sent += bytes_transferred
            percent = self._percent()
            if percent > self._progress:
                self._progress = percent
        self._deliver()

    def mark_uploaded(self) -> None:
        with self._lock:
            if self._state == UploadState.CANCELLED:
                raise UploadCancelledError("Upload cancelled")
            if self._state in TERMINAL_UPLOAD_STATES:
                return
            self._state = UploadState.UPLOADED
            self._progress = 100
        self._deliver()

    def confirm(self, file_ref: FileRef) -> None:
        """Attach the store-confirmed reference."""
        with self._lock:
            if self._state == UploadState.CANCELLED:
                raise UploadCancelledError("Upload cancelled")
            self._file_ref = file_ref
            self._state = UploadState.CONFIRMED
            self._progress = 100

    def cancel(self) -> bool:
        """Cancel the upload.

        Returns:
            bool: True if cancelled, False if the upload had already finished
        """
        with self._lock:
            if self._state in TERMINAL_UPLOAD_STATES:
                return False
            self._state = UploadState.CANCELLED
        logger.info("Upload cancelled", extra={"progress": self._progress})
        return True

    def fail(self, error: str) -> None:
        with self._lock:
            if self._state in TERMINAL_UPLOAD_STATES:
                return
            self._state = UploadState.FAILED
            self._error = error

    def _percent(self) -> int:
        if self.total_bytes == 0:
            return 0
        return min(100, int(self._sent * 100 / self.total_bytes))

    def _deliver(self) -> None:
        """Notify listeners of every progress increase, in increasing order.

        Only one caller delivers at a time. Progress recorded by other threads
        (or by a listener) while a delivery runs is picked up by that delivery,
        so listeners never see a value lower than one they already received.
        """
        with self._lock:
            if self._delivering:
                return
            self._delivering = True
        while True:
            with self._lock:
                percent = self._progress
                if percent <= self._last_notified:
                    self._delivering = False
                    return
                self._last_notified = percent
            try:
                for listener in self._listeners:
                    listener(percent)
            except BaseException:
                with self._lock:
                    self._delivering = False
                raise
