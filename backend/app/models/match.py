from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class MatchCategory(str, Enum):
    MS = "MS"
    WS = "WS"
    MD = "MD"
    WD = "WD"
    XD = "XD"


class MatchRound(str, Enum):
    group = "group"
    R16 = "R16"
    QF = "QF"
    SF = "SF"
    F = "F"
    third_place = "3rd"


class MatchStatus(str, Enum):
    scheduled = "scheduled"
    live = "live"
    completed = "completed"
    walkover = "walkover"


KNOCKOUT_ROUNDS = [MatchRound.R16, MatchRound.QF, MatchRound.SF, MatchRound.F, MatchRound.third_place]
TERMINAL_STATUSES = (MatchStatus.completed, MatchStatus.walkover)


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    category: MatchCategory = Field(sa_column=Column(String, nullable=False, index=True))
    round: MatchRound = Field(sa_column=Column(String, nullable=False, index=True))
    group_id: Optional[str] = Field(default=None, index=True)  # non-null iff round == "group"
    bracket_position: int = Field(default=0)  # 0-based index within (category, round)
    court_number: Optional[int] = Field(default=None)
    scheduled_time: Optional[datetime] = Field(default=None)

    status: MatchStatus = Field(default=MatchStatus.scheduled, sa_column=Column(String, nullable=False))

    # Player slots (id None + name "TBD" while the slot is open)
    player1_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player1_name: str = Field(default="TBD")
    player2_name: str = Field(default="TBD")

    # Ordered list of ScoreGame dicts (see app.services.score_rules.ScoreGame)
    scores: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Bounded undo stack of {"game_index", "player", "delta"}
    score_history: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    winner_id: Optional[int] = Field(default=None, foreign_key="player.id")
    # Clinched but not yet confirmed by the score-keeper
    pending_winner_id: Optional[int] = Field(default=None, foreign_key="player.id")

    # Knockout forward link (immutable once set)
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
