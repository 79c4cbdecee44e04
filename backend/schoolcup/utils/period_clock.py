"""
Period Clock

Maps wall-clock time onto the four day periods that gate automatic game
activation and cancellation:

    MORNING    [06, 12)
    MIDDAY     [12, 14)
    AFTERNOON  [14, 18)
    EVENING    [18, 24) + [00, 06)   (crosses midnight)

EVENING needs special handling everywhere: it is "current" both late at night
and in the small hours, and it only "passes" at 06:00 of the following day.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from schoolcup.models.game import Period

EVENING_END_HOUR = 6  # on the following calendar day


@dataclass(frozen=True)
class PeriodConfig:
    period: Period
    label: str
    start_hour: int
    end_hour: int  # exclusive; EVENING stores 24 and wraps to 06:00


PERIOD_CONFIGS: Mapping[Period, PeriodConfig] = MappingProxyType(
    {
        Period.MORNING: PeriodConfig(Period.MORNING, "Morning", 6, 12),
        Period.MIDDAY: PeriodConfig(Period.MIDDAY, "Midday", 12, 14),
        Period.AFTERNOON: PeriodConfig(Period.AFTERNOON, "Afternoon", 14, 18),
        Period.EVENING: PeriodConfig(Period.EVENING, "Evening", 18, 24),
    }
)


def period_for_hour(hour: int) -> Period:
    """Total over 0..23: every hour belongs to exactly one period."""
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0..23, got {hour}")
    if 6 <= hour < 12:
        return Period.MORNING
    if 12 <= hour < 14:
        return Period.MIDDAY
    if 14 <= hour < 18:
        return Period.AFTERNOON
    return Period.EVENING  # 18-24 and 0-6


def period_for_datetime(moment: datetime) -> Period:
    return period_for_hour(moment.hour)


def parse_period(text: Optional[str]) -> Optional[Period]:
    """Case-insensitive lookup; None for blank or unknown names."""
    if not text:
        return None
    try:
        return Period(text.strip().upper())
    except ValueError:
        return None


def same_local_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def is_currently_in_period(period: Period, now: datetime) -> bool:
    config = PERIOD_CONFIGS[Period(period)]
    hour = now.hour
    if config.period == Period.EVENING:
        return hour >= config.start_hour or hour < EVENING_END_HOUR
    return config.start_hour <= hour < config.end_hour


def has_period_passed(period: Period, now: datetime) -> bool:
    config = PERIOD_CONFIGS[Period(period)]
    hour = now.hour
    if config.period == Period.EVENING:
        # Only over once we are past 06:00 and before the next evening starts
        return EVENING_END_HOUR <= hour < config.start_hour
    return hour >= config.end_hour


def can_activate_game(assigned_period: Optional[Period], scheduled_at: datetime, now: datetime) -> bool:
    """
    Whether a SCHEDULED game may move to IN_PROGRESS at `now`.

    Without an assigned period the game activates once its exact start time
    is reached. With a period it activates on its scheduled day while that
    period is current.
    """
    if assigned_period is None:
        return scheduled_at <= now
    if not same_local_day(scheduled_at, now):
        return False
    return is_currently_in_period(assigned_period, now)


def should_cancel_game(assigned_period: Optional[Period], scheduled_at: datetime, now: datetime) -> bool:
    """
    Whether a SCHEDULED game missed its period and must be cancelled.

    Games without a period are never auto-cancelled. A game from an earlier
    calendar day is always cancelled; a game dated after today never is.
    """
    if assigned_period is None:
        return False
    if not same_local_day(scheduled_at, now):
        return scheduled_at.date() < now.date()
    return has_period_passed(assigned_period, now)


def next_activation_period(now: datetime) -> Period:
    """The next period whose start will trigger an activation sweep."""
    hour = now.hour
    if hour < 6:
        return Period.MORNING
    if hour < 12:
        return Period.MIDDAY
    if hour < 14:
        return Period.AFTERNOON
    if hour < 18:
        return Period.EVENING
    return Period.MORNING  # tomorrow


def period_start(period: Period, day: date) -> datetime:
    return datetime.combine(day, time(PERIOD_CONFIGS[Period(period)].start_hour))


def period_end(period: Period, day: date) -> datetime:
    """End instant of `period` as it starts on `day`; EVENING ends on day + 1."""
    config = PERIOD_CONFIGS[Period(period)]
    if config.period == Period.EVENING:
        return datetime.combine(day + timedelta(days=1), time(EVENING_END_HOUR))
    return datetime.combine(day, time(config.end_hour))


def period_boundaries(day: date) -> List[Tuple[datetime, str, Period]]:
    """
    The 8 boundary instants of `day`: (instant, kind, period) with kind
    "activation" for period starts and "cancellation" for period ends.
    Sorted by instant; a start and an end may share the same instant.
    """
    boundaries: List[Tuple[datetime, str, Period]] = []
    for period in PERIOD_CONFIGS:
        boundaries.append((period_start(period, day), "activation", period))
        boundaries.append((period_end(period, day), "cancellation", period))
    boundaries.sort(key=lambda b: (b[0], b[1] != "cancellation"))
    return boundaries
