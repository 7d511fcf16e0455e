"""
Plain value types exchanged between the pure generators and the store layer.

Generators return CreateMatch intents; app.services.fixture_service turns them into
Match rows. Keeping these free of sessions lets the generators run on snapshots.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.models.match import MatchCategory, MatchRound, MatchStatus
from app.services.draw_rules import TBD
from app.services.score_rules import blank_game


@dataclass(frozen=True)
class SchedulePlayer:
    id: int
    name: str


def _blank_scores() -> List[Dict[str, Any]]:
    return [blank_game(1).to_dict()]


@dataclass
class CreateMatch:
    category: MatchCategory
    round: MatchRound
    group_id: Optional[str] = None
    bracket_position: int = 0
    player1_id: Optional[int] = None
    player1_name: str = TBD
    player2_id: Optional[int] = None
    player2_name: str = TBD
    status: MatchStatus = MatchStatus.scheduled
    scores: List[Dict[str, Any]] = field(default_factory=_blank_scores)

    @classmethod
    def between(
        cls,
        category: MatchCategory,
        round: MatchRound,
        p1: Optional[SchedulePlayer],
        p2: Optional[SchedulePlayer],
        group_id: Optional[str] = None,
        bracket_position: int = 0,
    ) -> "CreateMatch":
        """Fixture between two (possibly missing) players; a missing player leaves the slot TBD."""
        return cls(
            category=category,
            round=round,
            group_id=group_id,
            bracket_position=bracket_position,
            player1_id=p1.id if p1 else None,
            player1_name=p1.name if p1 else TBD,
            player2_id=p2.id if p2 else None,
            player2_name=p2.name if p2 else TBD,
        )
