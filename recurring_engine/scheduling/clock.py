"""
Clock collaborator.

The engine asks a Clock for "today" and never reads the system time inside
its date math, so every rule can be tested against a fixed date.
"""

from abc import ABC, abstractmethod
from datetime import date, timedelta


class Clock(ABC):
    """Supplies the current calendar date."""

    @abstractmethod
    def today(self) -> date:
        pass


class SystemClock(Clock):
    """Local calendar date of the host."""

    def today(self) -> date:
        return date.today()


class FixedClock(Clock):
    """A clock pinned to one date, movable by hand. Used in tests."""

    def __init__(self, current: date):
        self._current = current

    def today(self) -> date:
        return self._current

    def set(self, current: date) -> None:
        self._current = current

    def advance(self, days: int = 1) -> date:
        self._current = self._current + timedelta(days=days)
        return self._current
