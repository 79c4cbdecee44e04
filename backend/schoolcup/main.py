import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolcup import __version__
from schoolcup.config import CORS_ORIGINS, LOG_LEVEL, SCHEDULER_ENABLED, TOURNAMENT_TIMEZONE
from schoolcup.database import init_db, new_session
from schoolcup.routes import fixtures, games, scheduler, standings
from schoolcup.services.tournament_scheduler import TournamentScheduler

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="School Cup Tournament API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(standings.router, prefix="/api", tags=["standings"])
app.include_router(fixtures.router, prefix="/api", tags=["fixtures"])
# Game runtime (status, pauses, score, events)
app.include_router(games.router, prefix="/api", tags=["games"])
app.include_router(scheduler.router, prefix="/api", tags=["scheduler"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables

    # Tests install their own scheduler before startup
    if getattr(app.state, "scheduler", None) is None:
        app.state.scheduler = TournamentScheduler(session_factory=new_session)

    if SCHEDULER_ENABLED:
        app.state.scheduler.start()
    else:
        logger.info("Tournament scheduler disabled (SCHEDULER_ENABLED=false)")


@app.on_event("shutdown")
def on_shutdown():
    scheduler_instance = getattr(app.state, "scheduler", None)
    if scheduler_instance is not None:
        scheduler_instance.stop()


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {
        "app_name": "School Cup Tournament API",
        "version": __version__,
        "timezone": TOURNAMENT_TIMEZONE,
        "status": "healthy",
    }
