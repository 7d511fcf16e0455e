from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class PlayerGender(str, Enum):
    M = "M"
    F = "F"


class Player(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_player_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    gender: PlayerGender = Field(sa_column=Column(String, nullable=False))
    department: Optional[str] = None
    categories: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Doubles partner (symmetric: both sides point at each other or both are null)
    partner_id: Optional[int] = Field(default=None, foreign_key="player.id")
    group_id: Optional[str] = Field(default=None)
    seeded: bool = Field(default=False)
    added_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="players")
