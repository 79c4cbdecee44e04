"""
Game Runtime API Routes
Status transitions, pause/resume, score, timeline events and game clock.
All status changes are validated by the game state machine.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from schoolcup.database import get_session
from schoolcup.dependencies import get_clock, to_http_error
from schoolcup.exceptions import TournamentError
from schoolcup.models.game import GameStatus
from schoolcup.models.game_event import GameEventType
from schoolcup.routes.fixtures import GameResponse
from schoolcup.services import game_runtime
from schoolcup.services.game_repository import get_game
from schoolcup.services.game_state_machine import GameStateTransition, TransitionContext, describe_states

router = APIRouter()


class TransitionRequest(BaseModel):
    status: GameStatus
    actor_id: Optional[int] = None
    reason: Optional[str] = None


class ActionRequest(BaseModel):
    actor_id: Optional[int] = None
    reason: Optional[str] = None


class TransitionResponse(BaseModel):
    game_id: int
    from_status: GameStatus
    to_status: GameStatus
    timestamp: datetime
    actor_id: Optional[int] = None
    reason: Optional[str] = None


class ScoreRequest(BaseModel):
    team_a_score: int = Field(..., ge=0)
    team_b_score: int = Field(..., ge=0)


class EventCreateRequest(BaseModel):
    event_type: GameEventType
    team_id: int
    minute: Optional[int] = Field(default=None, ge=0)
    player_id: Optional[int] = None
    substituted_player_id: Optional[int] = None
    description: Optional[str] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    game_id: int
    event_type: GameEventType
    minute: int
    team_id: int
    player_id: Optional[int] = None
    substituted_player_id: Optional[int] = None
    description: Optional[str] = None


class EventCreateResponse(BaseModel):
    event: EventResponse
    minute_warning: Optional[str] = None
    computed_minute: Optional[int] = None


class GameTimeResponse(BaseModel):
    game_id: int
    status: GameStatus
    status_description: str
    elapsed_minutes: int
    formatted: str
    is_overtime: bool
    expected_end: datetime
    is_paused: bool
    pause_count: int
    can_add_event: bool
    event_block_reason: Optional[str] = None
    suggested_minute: Optional[int] = None


def _transition_response(game_id: int, transition: GameStateTransition) -> TransitionResponse:
    return TransitionResponse(
        game_id=game_id,
        from_status=transition.from_status,
        to_status=transition.to_status,
        timestamp=transition.timestamp,
        actor_id=transition.actor_id,
        reason=transition.reason,
    )


def _context(request: Optional[ActionRequest]) -> TransitionContext:
    if request is None:
        return TransitionContext()
    return TransitionContext(actor_id=request.actor_id, reason=request.reason)


@router.get("/games/states", response_model=List[Dict[str, Any]])
def get_state_descriptions():
    """Every game status with its valid transitions and permissions."""
    return describe_states()


@router.get("/games/{game_id}", response_model=GameResponse)
def read_game(game_id: int, session: Session = Depends(get_session)):
    try:
        return get_game(session, game_id)
    except TournamentError as e:
        raise to_http_error(e)


@router.post("/games/{game_id}/transition", response_model=TransitionResponse)
def transition_game(
    game_id: int,
    request: TransitionRequest,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    try:
        transition = game_runtime.apply_transition(
            session,
            game_id,
            request.status,
            TransitionContext(actor_id=request.actor_id, reason=request.reason),
            now=clock.now(),
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)
    return _transition_response(game_id, transition)


def _action(operation, game_id: int, request: Optional[ActionRequest], session: Session, clock) -> TransitionResponse:
    try:
        transition = operation(session, game_id, _context(request), now=clock.now())
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)
    return _transition_response(game_id, transition)


@router.post("/games/{game_id}/pause", response_model=TransitionResponse)
def pause(
    game_id: int,
    request: Optional[ActionRequest] = None,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    return _action(game_runtime.pause_game, game_id, request, session, clock)


@router.post("/games/{game_id}/resume", response_model=TransitionResponse)
def resume(
    game_id: int,
    request: Optional[ActionRequest] = None,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    return _action(game_runtime.resume_game, game_id, request, session, clock)


@router.post("/games/{game_id}/finish", response_model=TransitionResponse)
def finish(
    game_id: int,
    request: Optional[ActionRequest] = None,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    return _action(game_runtime.finish_game, game_id, request, session, clock)


@router.post("/games/{game_id}/cancel", response_model=TransitionResponse)
def cancel(
    game_id: int,
    request: Optional[ActionRequest] = None,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    return _action(game_runtime.cancel_game, game_id, request, session, clock)


@router.get("/games/{game_id}/time", response_model=GameTimeResponse)
def get_game_time(game_id: int, session: Session = Depends(get_session), clock=Depends(get_clock)):
    try:
        info = game_runtime.get_game_time_info(session, game_id, now=clock.now())
    except TournamentError as e:
        raise to_http_error(e)
    return GameTimeResponse(**info)


@router.put("/games/{game_id}/score", response_model=GameResponse)
def set_score(
    game_id: int,
    request: ScoreRequest,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    try:
        return game_runtime.update_score(
            session, game_id, request.team_a_score, request.team_b_score, now=clock.now()
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)


@router.get("/games/{game_id}/events", response_model=List[EventResponse])
def get_events(game_id: int, session: Session = Depends(get_session)):
    try:
        return game_runtime.list_events(session, game_id)
    except TournamentError as e:
        raise to_http_error(e)


@router.post("/games/{game_id}/events", response_model=EventCreateResponse, status_code=201)
def add_event(
    game_id: int,
    request: EventCreateRequest,
    session: Session = Depends(get_session),
    clock=Depends(get_clock),
):
    try:
        recorded = game_runtime.record_event(
            session,
            game_id,
            event_type=request.event_type,
            team_id=request.team_id,
            minute=request.minute,
            player_id=request.player_id,
            substituted_player_id=request.substituted_player_id,
            description=request.description,
            now=clock.now(),
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)
    check = recorded.minute_check
    return EventCreateResponse(
        event=EventResponse.model_validate(recorded.event),
        minute_warning=check.warning if check else None,
        computed_minute=check.auto_minute if check else None,
    )
