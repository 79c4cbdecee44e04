"""
Tournament Scheduler

Moves games through their lifecycle without manual intervention:
1. Activation: SCHEDULED -> IN_PROGRESS once the game's period is current
2. Cancellation: SCHEDULED -> CANCELLED once the game's period has passed
3. Overdue finalization: IN_PROGRESS/PAUSED -> FINISHED two hours after the
   scheduled start

A sweep runs those three steps over the currently persisted games. Sweeps run
at every period boundary of today and tomorrow (EVENING ends 06:00 next day)
plus once at startup; a timer at 00:01 re-arms everything for the new day.

Guarantees:
- Idempotent: a second sweep right after the first makes no transitions
- One bad game never stops the rest of a sweep (logged and reported)
- Timer-fired sweeps never raise; the next boundary still fires
- The sweep is callable directly with an injected now (force_execution / tests)
"""
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Protocol

from sqlmodel import Session

from schoolcup.models.game import GameStatus, Period
from schoolcup.services.game_repository import close_pause_interval, find_games, update_game_status
from schoolcup.services.game_state_machine import TransitionContext
from schoolcup.utils.clock import SystemClock
from schoolcup.utils.period_clock import (
    can_activate_game,
    period_boundaries,
    period_for_datetime,
    should_cancel_game,
)

logger = logging.getLogger(__name__)

OVERDUE_AFTER = timedelta(hours=2)
RESCHEDULE_AT = time(0, 1)
# Timers fire slightly after the boundary so the hour check lands on the new period
BOUNDARY_GRACE_SECONDS = 1.0

KIND_RESCHEDULE = "reschedule"


class Clock(Protocol):
    def now(self) -> datetime: ...


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    return timer


@dataclass
class SweepFailure:
    step: str
    game_id: int
    error: str


@dataclass
class SweepResult:
    at: datetime
    activated: List[int] = field(default_factory=list)
    cancelled: List[int] = field(default_factory=list)
    finalized: List[int] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)

    @property
    def transitions(self) -> int:
        return len(self.activated) + len(self.cancelled) + len(self.finalized)


@dataclass(frozen=True)
class ScheduledExecution:
    at: datetime
    kind: str
    period: Optional[Period] = None


class TournamentScheduler:
    """
    Boundary-driven sweep service. One instance per process, owned by
    whatever composes the app (see main.py); start()/stop() define its
    lifecycle.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Optional[Clock] = None,
        timer_factory: Optional[TimerFactory] = None,
        overdue_after: timedelta = OVERDUE_AFTER,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._timer_factory = timer_factory or thread_timer
        self.overdue_after = overdue_after

        self._lock = threading.RLock()  # guards _timers/_running
        self._sweep_lock = threading.Lock()  # one sweep at a time
        self._timers: Dict[int, TimerHandle] = {}
        self._executions: Dict[int, ScheduledExecution] = {}
        self._keys = itertools.count()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._running:
                logger.info("Tournament scheduler is already running")
                return
            self._running = True
        logger.info("Starting tournament scheduler (period-boundary execution)")
        self._safe_sweep("startup")
        with self._lock:
            if not self._running:
                logger.info("Tournament scheduler stopped during startup sweep; no timers armed")
                return
            self._arm_day_timers()
        logger.info("Tournament scheduler started with %d timers armed", len(self._timers))

    def stop(self) -> None:
        with self._lock:
            self._cancel_all_timers()
            self._running = False
        logger.info("Tournament scheduler stopped")

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Activation, cancellation and overdue finalization against persisted state."""
        now = now or self._clock.now()
        result = SweepResult(at=now)
        with self._sweep_lock:
            session = self._session_factory()
            try:
                self._activate(session, now, result)
                self._cancel_expired(session, now, result)
                self._finalize_overdue(session, now, result)
            finally:
                session.close()

        if result.transitions or result.failures:
            logger.info(
                "Sweep at %s: activated %d, cancelled %d, finalized %d, failures %d",
                now.isoformat(),
                len(result.activated),
                len(result.cancelled),
                len(result.finalized),
                len(result.failures),
            )
        return result

    def force_execution(self, now: Optional[datetime] = None) -> SweepResult:
        """Manual trigger: same sweep a boundary timer runs."""
        result = self.run_sweep(now)
        logger.info(
            "Force execution: activated %d, cancelled %d, finalized %d",
            len(result.activated),
            len(result.cancelled),
            len(result.finalized),
        )
        return result

    def _apply(
        self,
        session: Session,
        game_id: int,
        target: GameStatus,
        reason: str,
        now: datetime,
        step: str,
        result: SweepResult,
    ) -> bool:
        try:
            update_game_status(session, game_id, target, TransitionContext(reason=reason), now=now)
            return True
        except Exception as exc:
            session.rollback()
            logger.exception("Sweep step %s failed for game %s", step, game_id)
            result.failures.append(SweepFailure(step=step, game_id=game_id, error=str(exc)))
            return False

    def _activate(self, session: Session, now: datetime, result: SweepResult) -> None:
        day_start = datetime.combine(now.date(), time.min)
        # Snapshot before any commit expires the loaded rows
        candidates = [
            (g.id, g.assigned_period, g.scheduled_at)
            for g in find_games(session, [GameStatus.SCHEDULED], start=day_start, end=day_start + timedelta(days=1))
        ]
        for game_id, period, scheduled_at in candidates:
            if not can_activate_game(period, scheduled_at, now):
                continue
            if self._apply(session, game_id, GameStatus.IN_PROGRESS, "period activation", now, "activation", result):
                result.activated.append(game_id)

    def _cancel_expired(self, session: Session, now: datetime, result: SweepResult) -> None:
        candidates = [(g.id, g.assigned_period, g.scheduled_at) for g in find_games(session, [GameStatus.SCHEDULED])]
        for game_id, period, scheduled_at in candidates:
            if not should_cancel_game(period, scheduled_at, now):
                continue
            if self._apply(session, game_id, GameStatus.CANCELLED, "period expired", now, "cancellation", result):
                result.cancelled.append(game_id)

    def _finalize_overdue(self, session: Session, now: datetime, result: SweepResult) -> None:
        threshold = now - self.overdue_after
        candidates = [
            (g.id, g.status == GameStatus.PAUSED)
            for g in find_games(session, [GameStatus.IN_PROGRESS, GameStatus.PAUSED], end=threshold)
        ]
        for game_id, was_paused in candidates:
            if not self._apply(session, game_id, GameStatus.FINISHED, "overdue", now, "finalization", result):
                continue
            result.finalized.append(game_id)
            if was_paused:
                try:
                    close_pause_interval(session, game_id, now)
                except Exception:
                    session.rollback()
                    logger.exception("Could not close pause interval of finalized game %s", game_id)

    def _safe_sweep(self, trigger: str) -> Optional[SweepResult]:
        try:
            return self.run_sweep()
        except Exception:
            logger.exception("Scheduled sweep failed (trigger: %s)", trigger)
            return None

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _arm_day_timers(self) -> None:
        """Arm one timer per future boundary of today and tomorrow, plus the 00:01 reschedule."""
        now = self._clock.now()
        today = now.date()
        tomorrow = today + timedelta(days=1)

        armed_instants = set()
        for day in (today, tomorrow):
            for instant, kind, period in period_boundaries(day):
                if instant in armed_instants:
                    continue  # e.g. MORNING end == MIDDAY start: one sweep covers both
                if self._arm(now, ScheduledExecution(instant, kind, period), self._on_boundary):
                    armed_instants.add(instant)

        self._arm(
            now,
            ScheduledExecution(datetime.combine(tomorrow, RESCHEDULE_AT), KIND_RESCHEDULE),
            lambda _execution: self._on_reschedule(),
        )

    def _arm(
        self,
        now: datetime,
        execution: ScheduledExecution,
        callback: Callable[[ScheduledExecution], None],
    ) -> bool:
        delay = (execution.at - now).total_seconds()
        if delay <= 0:
            return False
        key = next(self._keys)

        def fire() -> None:
            with self._lock:
                self._timers.pop(key, None)
                self._executions.pop(key, None)
                if not self._running:
                    return
            callback(execution)

        timer = self._timer_factory(delay + BOUNDARY_GRACE_SECONDS, fire)
        self._timers[key] = timer
        self._executions[key] = execution
        timer.start()
        logger.debug(
            "Scheduled %s for %s at %s",
            execution.kind,
            execution.period.value if execution.period else "system",
            execution.at.isoformat(),
        )
        return True

    def _cancel_all_timers(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._executions.clear()

    def _on_boundary(self, execution: ScheduledExecution) -> None:
        logger.info(
            "Period %s triggered for %s",
            execution.kind,
            execution.period.value if execution.period else "system",
        )
        self._safe_sweep(f"{execution.kind}:{execution.period.value if execution.period else ''}")

    def _on_reschedule(self) -> None:
        logger.info("Rescheduling tournament scheduler for the next day")
        with self._lock:
            if not self._running:
                return
            self._cancel_all_timers()
            self._arm_day_timers()
        self._safe_sweep(KIND_RESCHEDULE)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def armed_executions(self) -> List[ScheduledExecution]:
        with self._lock:
            return sorted(self._executions.values(), key=lambda e: e.at)

    def scheduled_executions(self, now: Optional[datetime] = None) -> List[ScheduledExecution]:
        """Upcoming boundary sweeps for today and tomorrow, whether or not timers are armed."""
        now = now or self._clock.now()
        today: date = now.date()
        upcoming = [
            ScheduledExecution(instant, kind, period)
            for day in (today, today + timedelta(days=1))
            for instant, kind, period in period_boundaries(day)
            if instant > now
        ]
        return sorted(set(upcoming), key=lambda e: (e.at, e.kind, e.period.value if e.period else ""))

    def stats(self, now: Optional[datetime] = None) -> Dict:
        now = now or self._clock.now()
        upcoming = self.scheduled_executions(now)
        with self._lock:
            armed = len(self._timers)
        return {
            "is_running": self._running,
            "scheduled_executions": armed,
            "next_execution": upcoming[0].at if upcoming else None,
            "current_period": period_for_datetime(now),
        }
