"""
Injectable time source.

Services, the chart cache and the VAT due-date computation read the time
from a Clock handed to them at construction, never from ``datetime.now()``.
``SystemClock`` is the only place the wall clock is consulted.
"""

import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Source of the current instant.

    Guarantees:
        - ``now()`` is timezone-aware UTC.
        - ``monotonic()`` never goes backwards; cache expiry is computed on it.
    """

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()

    @abstractmethod
    def monotonic(self) -> float: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``monotonic()`` is derived from ``now()``, so advancing the clock also
    ages cached entries.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._now.timestamp()

    def advance(self, seconds: float = 1) -> None:
        self._now += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance(1)
        return self._now
