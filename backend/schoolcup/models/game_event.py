from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from schoolcup.models.game import Game


class GameEventType(str, Enum):
    GOAL = "GOAL"
    YELLOW_CARD = "YELLOW_CARD"
    RED_CARD = "RED_CARD"
    SUBSTITUTION = "SUBSTITUTION"
    INJURY = "INJURY"
    OTHER = "OTHER"


class GameEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    event_type: GameEventType = Field(sa_column=Column(String, nullable=False))
    minute: int
    team_id: int = Field(foreign_key="team.id")
    player_id: Optional[int] = Field(default=None)
    substituted_player_id: Optional[int] = Field(default=None)  # SUBSTITUTION only
    description: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    game: "Game" = Relationship(back_populates="events")
