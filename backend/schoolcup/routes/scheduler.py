"""
Scheduler API Routes
Manual sweep trigger and introspection of the running tournament scheduler.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from schoolcup.dependencies import get_clock, get_scheduler
from schoolcup.models.game import Period
from schoolcup.services.tournament_scheduler import TournamentScheduler

router = APIRouter()


class SweepFailureResponse(BaseModel):
    step: str
    game_id: int
    error: str


class SweepResponse(BaseModel):
    at: datetime
    activated: List[int]
    cancelled: List[int]
    finalized: List[int]
    failures: List[SweepFailureResponse]


class SchedulerStatsResponse(BaseModel):
    is_running: bool
    scheduled_executions: int
    next_execution: Optional[datetime] = None
    current_period: Period


class ExecutionResponse(BaseModel):
    at: datetime
    kind: str
    period: Optional[Period] = None


@router.post("/scheduler/sweep", response_model=SweepResponse)
def force_sweep(scheduler: TournamentScheduler = Depends(get_scheduler), clock=Depends(get_clock)):
    """Run activation, cancellation and overdue finalization now."""
    result = scheduler.force_execution(clock.now())
    return SweepResponse(
        at=result.at,
        activated=result.activated,
        cancelled=result.cancelled,
        finalized=result.finalized,
        failures=[SweepFailureResponse(**f.__dict__) for f in result.failures],
    )


@router.get("/scheduler/stats", response_model=SchedulerStatsResponse)
def scheduler_stats(scheduler: TournamentScheduler = Depends(get_scheduler), clock=Depends(get_clock)):
    return SchedulerStatsResponse(**scheduler.stats(clock.now()))


@router.get("/scheduler/executions", response_model=List[ExecutionResponse])
def upcoming_executions(scheduler: TournamentScheduler = Depends(get_scheduler), clock=Depends(get_clock)):
    return [ExecutionResponse(at=e.at, kind=e.kind, period=e.period) for e in scheduler.scheduled_executions(clock.now())]
