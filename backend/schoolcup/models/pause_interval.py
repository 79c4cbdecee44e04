from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from schoolcup.models.game import Game


class PauseInterval(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: int = Field(foreign_key="game.id", index=True)
    started_at: datetime
    ended_at: Optional[datetime] = Field(default=None)  # null while the game is still paused

    game: "Game" = Relationship(back_populates="pause_intervals")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None
