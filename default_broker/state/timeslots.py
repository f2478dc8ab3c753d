"""
Read-only view of simulated time used by the broker.
The simulation owns the clock; the broker only asks which timeslot is
current and which future timeslots are still open for trading.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from state.domain import Competition


class TimeslotClock(Protocol):
    """What the broker needs from the timeslot registry."""

    @property
    def timeslot_duration(self) -> timedelta:
        ...

    @property
    def deactivate_timeslots_ahead(self) -> int:
        ...

    def current_timeslot(self) -> int:
        ...

    def enabled_timeslots(self) -> list[int]:
        ...

    def start_instant(self, serial: int) -> datetime:
        ...


class SimulationClock:
    """Hour-by-hour clock driven by the simulation loop.

    Enabled timeslots are the `timeslots_open` slots after the current one,
    less the ones already deactivated ahead of delivery.
    """

    def __init__(self, competition: Competition | None = None,
                 base: datetime | None = None, current: int = 0):
        self.competition = competition or Competition()
        self.base = base or datetime(2010, 6, 21, tzinfo=timezone.utc)
        self._current = current

    @property
    def timeslot_duration(self) -> timedelta:
        return self.competition.timeslot_duration

    @property
    def deactivate_timeslots_ahead(self) -> int:
        return self.competition.deactivate_timeslots_ahead

    def current_timeslot(self) -> int:
        return self._current

    def set_current(self, serial: int):
        self._current = serial

    def advance(self) -> int:
        """Move to the next timeslot and return its serial number."""
        self._current += 1
        return self._current

    def enabled_timeslots(self) -> list[int]:
        first = self._current + 1 + self.deactivate_timeslots_ahead
        last = self._current + self.competition.timeslots_open
        return list(range(first, last + 1))

    def start_instant(self, serial: int) -> datetime:
        return self.base + serial * self.timeslot_duration

    def current_instant(self) -> datetime:
        return self.start_instant(self._current)
