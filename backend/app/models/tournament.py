from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.match import Match
    from app.models.player import Player


class TournamentStatus(str, Enum):
    draft = "draft"
    group_stage = "group_stage"
    knockout = "knockout"
    completed = "completed"


# Forward-only lifecycle order
TOURNAMENT_STATUS_ORDER = [
    TournamentStatus.draft,
    TournamentStatus.group_stage,
    TournamentStatus.knockout,
    TournamentStatus.completed,
]


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)
    status: TournamentStatus = Field(default=TournamentStatus.draft, sa_column=Column(String, nullable=False))
    categories: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Scoring rules (immutable after creation)
    best_of: int = Field(default=3)
    points_per_game: int = Field(default=21)
    deuce_enabled: bool = Field(default=True)
    deuce_at: int = Field(default=20)
    clear_by: int = Field(default=2)
    max_points: int = Field(default=30)

    group_count: int = Field(default=1)
    knockout_size: int = Field(default=8)  # 4 | 8 | 16
    public_view_enabled: bool = Field(default=False)
    venue_pin: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    players: List["Player"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
