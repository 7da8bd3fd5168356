"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that lifecycle managers and services never
    call ``datetime.now()`` directly.  Every deadline, validity expiry and
    transition stamp in the sourcing engine is computed from a ``now`` value
    that came from a Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - DeterministicClock.set_time raises ValueError for naive datetimes.

Audit relevance:
    Lazy auto-transitions (RFQ close/expiry, bid expiry) are wall-clock driven.
    Injecting the clock makes "expired on next load, and not before" testable
    to the second.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current UTC time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Initialize with optional fixed time.

        Args:
            fixed_time: Starting instant.  Defaults to 2024-01-01T12:00Z.
        """
        self._fixed_time = _require_aware(
            fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        )
        self._offset = timedelta()

    def now(self) -> datetime:
        return (self._fixed_time + self._offset).astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = _require_aware(time)
        self._offset = timedelta()

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        """Advance the clock and return the new time."""
        self._offset += timedelta(days=days, seconds=seconds)
        return self.now()


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Clock times must be timezone-aware")
    return value
