"""
Game runtime operations: status changes, pauses, score and timeline events
for a single game. Every status change goes through the state machine via
game_repository.update_game_status.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from schoolcup.exceptions import InvalidTransitionError
from schoolcup.models.game import Game, GameStatus
from schoolcup.models.game_event import GameEvent, GameEventType
from schoolcup.services.game_repository import (
    close_pause_interval,
    find_pause_intervals,
    get_game,
    open_pause_interval,
    update_game_status,
)
from schoolcup.services.game_state_machine import (
    GameStateTransition,
    TransitionContext,
    can_update_score,
    describe_state,
    get_valid_transitions,
)
from schoolcup.utils.clock import SystemClock
from schoolcup.utils.game_clock import (
    EventWindow,
    MinuteValidation,
    can_add_event,
    game_time_stats,
    validate_manual_minute,
)

logger = logging.getLogger(__name__)


@dataclass
class RecordedEvent:
    event: GameEvent
    minute_check: Optional[MinuteValidation] = None


def apply_transition(
    session: Session,
    game_id: int,
    target: GameStatus,
    context: Optional[TransitionContext] = None,
    now: Optional[datetime] = None,
) -> GameStateTransition:
    """Generic status change; pause bookkeeping follows PAUSED entries/exits."""
    now = now or SystemClock().now()
    transition = update_game_status(session, game_id, target, context, now=now)
    if transition.to_status == GameStatus.PAUSED:
        open_pause_interval(session, game_id, now)
    elif transition.from_status == GameStatus.PAUSED:
        close_pause_interval(session, game_id, now)
    return transition


def pause_game(
    session: Session, game_id: int, context: Optional[TransitionContext] = None, now: Optional[datetime] = None
) -> GameStateTransition:
    return _apply_exact(session, game_id, GameStatus.IN_PROGRESS, GameStatus.PAUSED, context, now)


def resume_game(
    session: Session, game_id: int, context: Optional[TransitionContext] = None, now: Optional[datetime] = None
) -> GameStateTransition:
    return _apply_exact(session, game_id, GameStatus.PAUSED, GameStatus.IN_PROGRESS, context, now)


def finish_game(
    session: Session, game_id: int, context: Optional[TransitionContext] = None, now: Optional[datetime] = None
) -> GameStateTransition:
    return apply_transition(session, game_id, GameStatus.FINISHED, context, now)


def cancel_game(
    session: Session, game_id: int, context: Optional[TransitionContext] = None, now: Optional[datetime] = None
) -> GameStateTransition:
    return apply_transition(session, game_id, GameStatus.CANCELLED, context, now)


def _apply_exact(
    session: Session,
    game_id: int,
    expected: GameStatus,
    target: GameStatus,
    context: Optional[TransitionContext],
    now: Optional[datetime],
) -> GameStateTransition:
    # Resume only from PAUSED (IN_PROGRESS is reachable from SCHEDULED too)
    game = get_game(session, game_id)
    session.refresh(game)
    if game.status != expected:
        raise InvalidTransitionError(game.status, target, get_valid_transitions(game.status), game_id=game_id)
    return apply_transition(session, game_id, target, context, now)


def get_game_time_info(session: Session, game_id: int, now: Optional[datetime] = None) -> Dict:
    now = now or SystemClock().now()
    game = get_game(session, game_id)
    pauses = find_pause_intervals(session, game_id)
    stats = game_time_stats(game.scheduled_at, pauses, now)
    window = can_add_event(game.status, game.scheduled_at, pauses, now)
    return {
        "game_id": game.id,
        "status": game.status,
        "status_description": describe_state(game.status),
        "elapsed_minutes": stats.elapsed_minutes,
        "formatted": stats.formatted,
        "is_overtime": stats.is_overtime,
        "expected_end": stats.expected_end,
        "is_paused": any(p.is_open for p in pauses),
        "pause_count": len(pauses),
        "can_add_event": window.can_add,
        "event_block_reason": window.reason,
        "suggested_minute": window.suggested_minute,
    }


def update_score(
    session: Session, game_id: int, team_a_score: int, team_b_score: int, now: Optional[datetime] = None
) -> Game:
    if team_a_score < 0 or team_b_score < 0:
        raise ValueError("Scores cannot be negative")
    game = get_game(session, game_id)
    if not can_update_score(game.status):
        raise ValueError(f"Score of game {game_id} cannot be changed while {GameStatus(game.status).value}")
    game.team_a_score = team_a_score
    game.team_b_score = team_b_score
    game.updated_at = now or SystemClock().now()
    session.add(game)
    session.commit()
    session.refresh(game)
    logger.info("Game %d: score set to %d x %d", game_id, team_a_score, team_b_score)
    return game


def record_event(
    session: Session,
    game_id: int,
    event_type: GameEventType,
    team_id: int,
    minute: Optional[int] = None,
    player_id: Optional[int] = None,
    substituted_player_id: Optional[int] = None,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RecordedEvent:
    """
    Append a timeline event. Without a minute the computed game minute is
    used; a manual minute far from it is accepted with a logged warning.
    """
    now = now or SystemClock().now()
    event_type = GameEventType(event_type)
    game = get_game(session, game_id)
    if team_id not in (game.team_a_id, game.team_b_id):
        raise ValueError(f"Team {team_id} does not play in game {game_id}")

    window: EventWindow = can_add_event(game.status, game.scheduled_at, find_pause_intervals(session, game_id), now)
    if not window.can_add:
        raise ValueError(window.reason)

    minute_check = None
    if minute is None:
        minute = window.suggested_minute
    else:
        if minute < 0:
            raise ValueError("Minute cannot be negative")
        minute_check = validate_manual_minute(window.suggested_minute, minute)
        if minute_check.warning:
            logger.warning("Game %d: %s", game_id, minute_check.warning)

    event = GameEvent(
        game_id=game_id,
        event_type=event_type,
        minute=minute,
        team_id=team_id,
        player_id=player_id,
        substituted_player_id=substituted_player_id if event_type == GameEventType.SUBSTITUTION else None,
        description=description,
    )
    session.add(event)
    session.commit()
    session.refresh(event)
    logger.info("Game %d: %s at %d' for team %d", game_id, event_type.value, minute, team_id)
    return RecordedEvent(event=event, minute_check=minute_check)


def list_events(session: Session, game_id: int) -> List[GameEvent]:
    get_game(session, game_id)
    return list(
        session.exec(
            select(GameEvent).where(GameEvent.game_id == game_id).order_by(GameEvent.minute, GameEvent.id)
        ).all()
    )
