"""
Fixture Generation API Routes
Group stage, seeded or manual semifinals, final, and the whole chain at once.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from schoolcup.database import get_session
from schoolcup.dependencies import to_http_error
from schoolcup.exceptions import TournamentError
from schoolcup.models.game import GameStage, GameStatus, Period
from schoolcup.models.modality import Category
from schoolcup.services import fixture_generator

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class StageRequest(BaseModel):
    category: Category
    start_time: datetime
    location: Optional[str] = None


class SemifinalPairing(BaseModel):
    team_a_id: int
    team_b_id: int


class ManualSemifinalRequest(StageRequest):
    pairings: List[SemifinalPairing] = Field(..., min_length=2, max_length=2)


class GenerateAllRequest(BaseModel):
    category: Category
    group_start: datetime
    semifinal_start: datetime
    final_start: Optional[datetime] = None
    location: Optional[str] = None


class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    modality_id: int
    team_a_id: int
    team_b_id: int
    stage: GameStage
    status: GameStatus
    scheduled_at: datetime
    assigned_period: Optional[Period] = None
    team_a_score: int
    team_b_score: int
    location: Optional[str] = None
    description: Optional[str] = None


class GenerateAllResponse(BaseModel):
    group_games: List[GameResponse]
    semifinals: List[GameResponse]
    final: Optional[GameResponse] = None
    group_stage_skipped: bool
    final_deferred_reason: Optional[str] = None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/modalities/{modality_id}/fixtures/group-stage", response_model=List[GameResponse], status_code=201)
def create_group_stage(modality_id: int, request: StageRequest, session: Session = Depends(get_session)):
    try:
        return fixture_generator.generate_group_stage(
            session, modality_id, request.category, request.start_time, request.location
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)


@router.post("/modalities/{modality_id}/fixtures/semifinals", response_model=List[GameResponse], status_code=201)
def create_semifinals(modality_id: int, request: StageRequest, session: Session = Depends(get_session)):
    """Seeded from group tables (1A x 2B, 1B x 2A) or from the name-ordered team list."""
    try:
        return fixture_generator.generate_semifinals(
            session, modality_id, request.category, request.start_time, request.location
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)


@router.post(
    "/modalities/{modality_id}/fixtures/semifinals/manual", response_model=List[GameResponse], status_code=201
)
def create_manual_semifinals(
    modality_id: int, request: ManualSemifinalRequest, session: Session = Depends(get_session)
):
    try:
        return fixture_generator.generate_semifinals_manual(
            session,
            modality_id,
            request.category,
            request.start_time,
            [(p.team_a_id, p.team_b_id) for p in request.pairings],
            request.location,
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)


@router.post("/modalities/{modality_id}/fixtures/final", response_model=GameResponse, status_code=201)
def create_final(modality_id: int, request: StageRequest, session: Session = Depends(get_session)):
    try:
        return fixture_generator.generate_final(
            session, modality_id, request.category, request.start_time, request.location
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)


@router.post("/modalities/{modality_id}/fixtures/all", response_model=GenerateAllResponse, status_code=201)
def create_all(modality_id: int, request: GenerateAllRequest, session: Session = Depends(get_session)):
    try:
        summary = fixture_generator.generate_all(
            session,
            modality_id,
            request.category,
            group_start=request.group_start,
            semifinal_start=request.semifinal_start,
            final_start=request.final_start,
            location=request.location,
        )
    except (TournamentError, ValueError) as e:
        raise to_http_error(e)
    return GenerateAllResponse(
        group_games=[GameResponse.model_validate(g) for g in summary.group_games],
        semifinals=[GameResponse.model_validate(g) for g in summary.semifinals],
        final=GameResponse.model_validate(summary.final) if summary.final else None,
        group_stage_skipped=summary.group_stage_skipped,
        final_deferred_reason=summary.final_deferred_reason,
    )
