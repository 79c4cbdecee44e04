"""FastAPI dependencies shared by the routers."""
from fastapi import HTTPException, Request

from schoolcup.exceptions import (
    InsufficientDataError,
    StaleOrMissingGameError,
    TieNotAllowedError,
)
from schoolcup.services.tournament_scheduler import TournamentScheduler
from schoolcup.utils.clock import SystemClock

_clock = SystemClock()


def get_clock():
    """Now provider for request handlers; tests override it with a FixedClock."""
    return _clock


def get_scheduler(request: Request) -> TournamentScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Tournament scheduler is not configured")
    return scheduler


def to_http_error(exc: Exception) -> HTTPException:
    """Translate engine errors into HTTP responses."""
    if isinstance(exc, StaleOrMissingGameError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (InsufficientDataError, TieNotAllowedError)):
        return HTTPException(status_code=409, detail=str(exc))
    # InvalidTransitionError, ValueError and any other engine error
    return HTTPException(status_code=400, detail=str(exc))
