"""
Game persistence operations.

Thin query/mutation helpers over a SQLModel Session used by the scheduler,
fixture generation and the runtime service. Status changes go through the
state machine here and nowhere else.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from schoolcup.exceptions import StaleOrMissingGameError
from schoolcup.models.game import Game, GameStage, GameStatus, Period
from schoolcup.models.modality import Category, Modality
from schoolcup.models.pause_interval import PauseInterval
from schoolcup.models.team import Team
from schoolcup.services.game_state_machine import GameStateTransition, TransitionContext, require_transition
from schoolcup.utils.clock import SystemClock
from schoolcup.utils.period_clock import period_for_datetime

logger = logging.getLogger(__name__)


def get_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id)
    if not game:
        raise StaleOrMissingGameError(game_id)
    return game


def find_games(
    session: Session,
    statuses: Optional[Iterable[GameStatus]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    modality_id: Optional[int] = None,
) -> List[Game]:
    """
    Games filtered by status, scheduled_at in [start, end) and modality.
    Deterministic order: scheduled_at, id.
    """
    query = select(Game)
    if statuses is not None:
        query = query.where(Game.status.in_([GameStatus(s).value for s in statuses]))
    if start is not None:
        query = query.where(Game.scheduled_at >= start)
    if end is not None:
        query = query.where(Game.scheduled_at < end)
    if modality_id is not None:
        query = query.where(Game.modality_id == modality_id)
    return list(session.exec(query.order_by(Game.scheduled_at, Game.id)).all())


def update_game_status(
    session: Session,
    game_id: int,
    new_status: GameStatus,
    context: Optional[TransitionContext] = None,
    now: Optional[datetime] = None,
) -> GameStateTransition:
    """
    Apply one status change after validating it against the *current*
    persisted status. Raises StaleOrMissingGameError or InvalidTransitionError;
    the game is left untouched on failure.
    """
    now = now or SystemClock().now()
    game = get_game(session, game_id)
    session.refresh(game)  # another sweep may have moved it already
    transition = require_transition(game.status, new_status, context=context, timestamp=now, game_id=game_id)

    game.status = transition.to_status
    if transition.to_status == GameStatus.IN_PROGRESS and game.started_at is None:
        game.started_at = now
    if transition.to_status in (GameStatus.FINISHED, GameStatus.CANCELLED):
        game.finished_at = now
    game.updated_at = now
    session.add(game)
    session.commit()

    logger.info(
        "Game %d: %s -> %s%s",
        game_id,
        transition.from_status.value,
        transition.to_status.value,
        f" ({transition.reason})" if transition.reason else "",
    )
    return transition


def list_group_teams(
    session: Session,
    modality_id: int,
    category: Category,
    group_label: Optional[str] = None,
    grouped_only: bool = False,
) -> List[Team]:
    """Active teams of a modality/category, optionally restricted to one group. Ordered by id."""
    query = (
        select(Team)
        .join(Modality, Team.modality_id == Modality.id)
        .where(
            Team.modality_id == modality_id,
            Modality.category == Category(category).value,
            Team.active == True,  # noqa: E712
        )
    )
    if group_label is not None:
        query = query.where(Team.group_label == group_label)
    elif grouped_only:
        query = query.where(Team.group_label.is_not(None))
    return list(session.exec(query.order_by(Team.id)).all())


def list_finished_group_games(
    session: Session, modality_id: int, category: Category, group_label: str
) -> List[Game]:
    """FINISHED GROUP-stage games played between two teams of the given group."""
    team_ids = [t.id for t in list_group_teams(session, modality_id, category, group_label)]
    if not team_ids:
        return []
    query = select(Game).where(
        Game.modality_id == modality_id,
        Game.stage == GameStage.GROUP.value,
        Game.status == GameStatus.FINISHED.value,
        Game.team_a_id.in_(team_ids),
        Game.team_b_id.in_(team_ids),
    )
    return list(session.exec(query.order_by(Game.scheduled_at, Game.id)).all())


def list_finished_games(session: Session, modality_id: int, category: Category, stage: GameStage) -> List[Game]:
    query = (
        select(Game)
        .join(Modality, Game.modality_id == Modality.id)
        .where(
            Game.modality_id == modality_id,
            Modality.category == Category(category).value,
            Game.stage == GameStage(stage).value,
            Game.status == GameStatus.FINISHED.value,
        )
    )
    return list(session.exec(query.order_by(Game.scheduled_at, Game.id)).all())


def create_game(
    session: Session,
    team_a_id: int,
    team_b_id: int,
    modality_id: int,
    stage: GameStage,
    scheduled_at: datetime,
    assigned_period: Optional[Period] = None,
    infer_period: bool = True,
    location: Optional[str] = None,
    description: Optional[str] = None,
    commit: bool = True,
) -> Game:
    """
    Create a SCHEDULED game. When no period is given and infer_period is set,
    the period is derived from the scheduled hour.
    """
    if team_a_id == team_b_id:
        raise ValueError(f"A game needs two different teams, got {team_a_id} twice")
    if assigned_period is None and infer_period:
        assigned_period = period_for_datetime(scheduled_at)

    game = Game(
        modality_id=modality_id,
        team_a_id=team_a_id,
        team_b_id=team_b_id,
        stage=stage,
        scheduled_at=scheduled_at,
        assigned_period=assigned_period,
        status=GameStatus.SCHEDULED,
        location=location,
        description=description,
    )
    session.add(game)
    if commit:
        session.commit()
        session.refresh(game)
    else:
        session.flush()
    return game


def find_pause_intervals(session: Session, game_id: int) -> List[PauseInterval]:
    return list(
        session.exec(
            select(PauseInterval).where(PauseInterval.game_id == game_id).order_by(PauseInterval.started_at)
        ).all()
    )


def _open_pause(session: Session, game_id: int) -> Optional[PauseInterval]:
    return session.exec(
        select(PauseInterval)
        .where(PauseInterval.game_id == game_id, PauseInterval.ended_at.is_(None))
        .order_by(PauseInterval.started_at.desc())
    ).first()


def open_pause_interval(session: Session, game_id: int, at: datetime) -> PauseInterval:
    """Start a pause. Idempotent: an already open interval is returned as is."""
    get_game(session, game_id)
    existing = _open_pause(session, game_id)
    if existing:
        return existing
    pause = PauseInterval(game_id=game_id, started_at=at)
    session.add(pause)
    session.commit()
    session.refresh(pause)
    logger.info("Game %d: pause started at %s", game_id, at.isoformat())
    return pause


def close_pause_interval(session: Session, game_id: int, at: datetime) -> Optional[PauseInterval]:
    """End the open pause, if any. The end is never earlier than the start."""
    pause = _open_pause(session, game_id)
    if not pause:
        return None
    pause.ended_at = max(at, pause.started_at)
    session.add(pause)
    session.commit()
    session.refresh(pause)
    logger.info("Game %d: pause ended at %s", game_id, pause.ended_at.isoformat())
    return pause
