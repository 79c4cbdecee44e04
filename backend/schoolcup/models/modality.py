from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from schoolcup.models.game import Game
    from schoolcup.models.team import Team


class Category(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    MIXED = "MIXED"


class Modality(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("name", "category", name="uq_modality_name_category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str  # "Futsal", "Volleyball", ...
    category: Category = Field(sa_column=Column(String, nullable=False))
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    teams: List["Team"] = Relationship(back_populates="modality")
    games: List["Game"] = Relationship(back_populates="modality")
