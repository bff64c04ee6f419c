"""Clock port.

Every deadline evaluation reads ``now`` once from an injected Clock so two
checks made while handling the same request cannot disagree.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant, moved explicitly with ``advance``.

    Example:
        >>> clock = FixedClock(datetime(2024, 3, 1, tzinfo=timezone.utc))
        >>> clock.advance(hours=2).now().hour
        2
    """

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> "FixedClock":
        if instant.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._instant = instant
        return self

    def advance(self, **kwargs) -> "FixedClock":
        """Move the clock forward by ``timedelta(**kwargs)``."""
        self._instant = self._instant + timedelta(**kwargs)
        return self
