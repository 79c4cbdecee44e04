from schoolcup.models.game import Game, GameStage, GameStatus, Period
from schoolcup.models.game_event import GameEvent, GameEventType
from schoolcup.models.modality import Category, Modality
from schoolcup.models.pause_interval import PauseInterval
from schoolcup.models.team import Team

__all__ = [
    "Category",
    "Modality",
    "Team",
    "Game",
    "GameStage",
    "GameStatus",
    "Period",
    "GameEvent",
    "GameEventType",
    "PauseInterval",
]
