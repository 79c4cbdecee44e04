"""
Injectable "now" providers.

Everything time-dependent takes a clock (or an explicit now) so that period
logic, the game clock and the scheduler run in tests without real time
passing. Datetimes are naive local wall-clock time in the tournament timezone.
"""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from schoolcup.config import get_timezone


class SystemClock:
    """Wall clock in the tournament timezone, returned naive."""

    def __init__(self, tz: Optional[ZoneInfo] = None):
        self.tz = tz or get_timezone()

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)


class FixedClock:
    """Clock frozen at a given instant; set() moves it."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current
