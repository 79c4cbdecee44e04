from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from schoolcup.models.game import Game
    from schoolcup.models.modality import Modality


class Team(SQLModel, table=True):
    __table_args__ = (
        # A class fields one team per modality; names are unique inside it
        SAUniqueConstraint("modality_id", "name", name="uq_modality_team_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    modality_id: int = Field(foreign_key="modality.id", index=True)
    name: str
    # Group stage label ("A", "B", ...); null for ungrouped modalities
    group_label: Optional[str] = Field(default=None, index=True)
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    modality: "Modality" = Relationship(back_populates="teams")
    games_as_team_a: List["Game"] = Relationship(
        back_populates="team_a", sa_relationship_kwargs={"foreign_keys": "Game.team_a_id"}
    )
    games_as_team_b: List["Game"] = Relationship(
        back_populates="team_b", sa_relationship_kwargs={"foreign_keys": "Game.team_b_id"}
    )
