# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from schoolcup.models import Game, GameEvent, Modality, PauseInterval, Team  # noqa: E402,F401
