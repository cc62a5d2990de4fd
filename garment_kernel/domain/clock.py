"""
Clock -- injectable time source.

Layer creation timestamps drive FIFO order, and posted/cancelled timestamps
end up on goods issues, so no service calls ``datetime.now()`` directly.
Services receive a ``Clock``; production code uses ``SystemClock`` and tests
use ``DeterministicClock`` to control ordering exactly.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC time."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock, UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Fixed, manually advanced clock for tests.

    ``auto_advance`` moves the clock forward after every ``now()`` call so
    that successive receipts get strictly increasing timestamps.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        auto_advance: timedelta | None = None,
    ):
        self._current = fixed_time or datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
        if self._current.tzinfo is None:
            self._current = self._current.replace(tzinfo=UTC)
        self._auto_advance = auto_advance

    def now(self) -> datetime:
        current = self._current
        if self._auto_advance is not None:
            self._current = current + self._auto_advance
        return current

    def advance(self, delta: timedelta | None = None, *, seconds: float = 0) -> datetime:
        """Move the clock forward and return the new time."""
        self._current += delta if delta is not None else timedelta(seconds=seconds)
        return self._current

    def set_time(self, new_time: datetime) -> None:
        self._current = new_time if new_time.tzinfo else new_time.replace(tzinfo=UTC)
