"""
Pause-aware game clock.

Elapsed playing minutes are wall-clock time since the scheduled start minus
every recorded pause. Open pauses (no end yet) count up to `now`.

Inputs are plain values so the same code serves the scheduler, the runtime
service and the tests:
  - pause intervals: any objects with `started_at` / `ended_at`
  - statuses: GameStatus or its string value
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from schoolcup.models.game import GameStatus

MAX_GAME_MINUTES = 120
REGULATION_MINUTES = 90  # overtime flag and expected end
DEFAULT_MINUTE_TOLERANCE = 5

EVENT_WINDOW_STATUSES = frozenset({GameStatus.IN_PROGRESS, GameStatus.PAUSED, GameStatus.FINISHED})


class PauseLike(Protocol):
    started_at: datetime
    ended_at: Optional[datetime]


@dataclass
class EventWindow:
    can_add: bool
    reason: Optional[str] = None
    suggested_minute: Optional[int] = None


@dataclass
class MinuteValidation:
    is_valid: bool
    auto_minute: int
    difference: int
    warning: Optional[str] = None


@dataclass
class GameTimeStats:
    elapsed_minutes: int
    formatted: str
    is_overtime: bool
    expected_end: datetime


def paused_seconds(pause_intervals: Iterable[PauseLike], now: datetime) -> float:
    total = 0.0
    for pause in pause_intervals:
        end = pause.ended_at if pause.ended_at is not None else now
        total += (end - pause.started_at).total_seconds()
    return total


def _raw_minutes(scheduled_start: datetime, pause_intervals: Iterable[PauseLike], now: datetime) -> Optional[int]:
    """Unclamped playing minutes, None when the adjusted span is negative."""
    played = (now - scheduled_start).total_seconds() - paused_seconds(pause_intervals, now)
    if played < 0:
        return None
    return math.floor(played / 60)


def elapsed_minutes(scheduled_start: datetime, pause_intervals: Iterable[PauseLike], now: datetime) -> int:
    if now < scheduled_start:
        return 0
    minutes = _raw_minutes(scheduled_start, pause_intervals, now)
    if minutes is None:
        return 0
    return min(minutes, MAX_GAME_MINUTES)


def can_add_event(
    status,
    scheduled_start: datetime,
    pause_intervals: Iterable[PauseLike],
    now: datetime,
) -> EventWindow:
    """Whether a timeline event may be recorded at `now`, with the suggested minute."""
    if GameStatus(status) not in EVENT_WINDOW_STATUSES:
        return EventWindow(False, reason="Game is not in progress, paused or finished")
    if now < scheduled_start:
        return EventWindow(False, reason="Cannot add events before the game starts")

    pauses = list(pause_intervals)
    minutes = _raw_minutes(scheduled_start, pauses, now)
    if minutes is not None and minutes > MAX_GAME_MINUTES:
        return EventWindow(False, reason=f"Game time exceeds the maximum ({MAX_GAME_MINUTES} minutes)")

    return EventWindow(True, suggested_minute=elapsed_minutes(scheduled_start, pauses, now))


def validate_manual_minute(
    auto_minute: int, manual_minute: int, tolerance: int = DEFAULT_MINUTE_TOLERANCE
) -> MinuteValidation:
    """Compare an operator-entered minute with the computed one. Never raises."""
    difference = abs(manual_minute - auto_minute)
    result = MinuteValidation(is_valid=difference <= tolerance, auto_minute=auto_minute, difference=difference)
    if manual_minute > auto_minute + tolerance:
        result.warning = (
            f"Minute {manual_minute}' is in the future. Current computed minute: {auto_minute}'."
        )
    elif difference > tolerance:
        result.warning = (
            f"Minute {manual_minute}' differs from the computed minute ({auto_minute}') "
            f"by {difference} minutes."
        )
    return result


def format_game_time(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}'"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours}h"
    return f"{hours}h{rest}'"


def minute_to_timestamp(scheduled_start: datetime, minute: int) -> datetime:
    """Approximate wall-clock instant of a game minute (ignores pauses)."""
    return scheduled_start + timedelta(minutes=minute)


def game_time_stats(scheduled_start: datetime, pause_intervals: Iterable[PauseLike], now: datetime) -> GameTimeStats:
    minutes = elapsed_minutes(scheduled_start, pause_intervals, now)
    return GameTimeStats(
        elapsed_minutes=minutes,
        formatted=format_game_time(minutes),
        is_overtime=minutes > REGULATION_MINUTES,
        expected_end=scheduled_start + timedelta(minutes=REGULATION_MINUTES),
    )
