"""
Standings API Routes
Group tables, qualified teams and group listing for a modality/category.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from schoolcup.database import get_session
from schoolcup.models.modality import Category
from schoolcup.services.standings import get_group_table, get_qualified, list_groups

router = APIRouter()


class StandingRowResponse(BaseModel):
    rank: int
    team_id: int
    team_name: str
    group_label: Optional[str] = None
    points: int
    played: int
    wins: int
    draws: int
    losses: int
    goals_for: int
    goals_against: int
    goal_difference: int


@router.get("/modalities/{modality_id}/groups", response_model=List[str])
def get_groups(modality_id: int, category: Category = Query(...), session: Session = Depends(get_session)):
    return list_groups(session, modality_id, category)


@router.get(
    "/modalities/{modality_id}/groups/{group_label}/standings",
    response_model=List[StandingRowResponse],
)
def get_standings(
    modality_id: int,
    group_label: str,
    category: Category = Query(...),
    session: Session = Depends(get_session),
):
    """Ranked table built from the group's finished games."""
    return [StandingRowResponse(**row.to_dict()) for row in get_group_table(session, modality_id, category, group_label)]


@router.get(
    "/modalities/{modality_id}/groups/{group_label}/qualified",
    response_model=List[StandingRowResponse],
)
def get_qualified_teams(
    modality_id: int,
    group_label: str,
    category: Category = Query(...),
    n: int = Query(2, ge=0),
    session: Session = Depends(get_session),
):
    try:
        rows = get_qualified(session, modality_id, category, group_label, n)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [StandingRowResponse(**row.to_dict()) for row in rows]
