from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from schoolcup.models.game_event import GameEvent
    from schoolcup.models.modality import Modality
    from schoolcup.models.pause_interval import PauseInterval
    from schoolcup.models.team import Team


class GameStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class GameStage(str, Enum):
    GROUP = "GROUP"
    SEMIFINAL = "SEMIFINAL"
    FINAL = "FINAL"


class Period(str, Enum):
    MORNING = "MORNING"
    MIDDAY = "MIDDAY"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"


class Game(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    modality_id: int = Field(foreign_key="modality.id", index=True)
    team_a_id: int = Field(foreign_key="team.id")
    team_b_id: int = Field(foreign_key="team.id")
    stage: GameStage = Field(default=GameStage.GROUP, sa_column=Column(String, nullable=False))
    scheduled_at: datetime = Field(index=True)
    # Null means exact-time activation instead of period logic
    assigned_period: Optional[Period] = Field(default=None, sa_column=Column(String, nullable=True))
    status: GameStatus = Field(default=GameStatus.SCHEDULED, sa_column=Column(String, nullable=False, index=True))
    team_a_score: int = Field(default=0)
    team_b_score: int = Field(default=0)
    location: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)

    started_at: Optional[datetime] = Field(default=None)
    finished_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    modality: "Modality" = Relationship(back_populates="games")
    team_a: "Team" = Relationship(
        back_populates="games_as_team_a", sa_relationship_kwargs={"foreign_keys": "Game.team_a_id"}
    )
    team_b: "Team" = Relationship(
        back_populates="games_as_team_b", sa_relationship_kwargs={"foreign_keys": "Game.team_b_id"}
    )
    events: List["GameEvent"] = Relationship(back_populates="game")
    pause_intervals: List["PauseInterval"] = Relationship(back_populates="game")

    def winner_team_id(self) -> Optional[int]:
        """Team with the higher score, None when level."""
        if self.team_a_score > self.team_b_score:
            return self.team_a_id
        if self.team_b_score > self.team_a_score:
            return self.team_b_id
        return None
