"""
Knockout bracket generation.

Builds every knockout round for a seeded slot list:
  - first round pairs consecutive slots (0-1, 2-3, ...); an empty slot is TBD
  - later rounds are TBD-vs-TBD placeholders, max(1, previous // 2) matches each
  - match i of round r feeds match i // 2 of round r + 1 (binary merge tree)

The plan is pure. Persisting it has to go round by round in increasing order:
next_match_id can only be written once the later round's rows have ids
(see app.services.fixture_service.persist_bracket).
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from app.models.match import MatchCategory, MatchRound
from app.services.draw_rules import BRACKET_ROUNDS
from app.services.fixture_types import CreateMatch, SchedulePlayer

# ((round_index, match_index), (next_round_index, next_match_index))
BracketLink = Tuple[Tuple[int, int], Tuple[int, int]]


@dataclass
class BracketPlan:
    category: MatchCategory
    rounds: List[MatchRound] = field(default_factory=list)
    matches: List[List[CreateMatch]] = field(default_factory=list)  # one list per round

    @property
    def bracket_size(self) -> int:
        return len(self.matches[0]) * 2 if self.matches else 0

    @property
    def match_count(self) -> int:
        return sum(len(round_matches) for round_matches in self.matches)

    def links(self) -> List[BracketLink]:
        """Forward links for every match except the final."""
        result: List[BracketLink] = []
        for round_index in range(len(self.matches) - 1):
            for match_index in range(len(self.matches[round_index])):
                result.append(((round_index, match_index), (round_index + 1, next_match_index(match_index))))
        return result


def next_match_index(match_index: int) -> int:
    return match_index // 2


def rounds_for_bracket(size: int) -> List[MatchRound]:
    if size not in BRACKET_ROUNDS:
        raise ValueError(f"Unsupported bracket size: {size}")
    return list(BRACKET_ROUNDS[size])


def generate_knockout_bracket(
    seeded: Sequence[Optional[SchedulePlayer]],
    category: MatchCategory,
    start_round: Optional[MatchRound] = None,
) -> BracketPlan:
    """
    Build all rounds for a seeded slot list (output of seed_knockout).

    start_round, when given, must match the first round implied by the bracket size.
    """
    rounds = rounds_for_bracket(len(seeded))
    if start_round is not None and MatchRound(start_round) != rounds[0]:
        raise ValueError(f"Bracket of {len(seeded)} starts at {rounds[0].value}, not {MatchRound(start_round).value}")

    plan = BracketPlan(category=MatchCategory(category), rounds=rounds)

    first_round = [
        CreateMatch.between(
            category=category,
            round=rounds[0],
            p1=seeded[slot],
            p2=seeded[slot + 1] if slot + 1 < len(seeded) else None,
            bracket_position=slot // 2,
        )
        for slot in range(0, len(seeded), 2)
    ]
    plan.matches.append(first_round)

    previous_count = len(first_round)
    for round_name in rounds[1:]:
        count = max(1, previous_count // 2)
        plan.matches.append(
            [CreateMatch(category=category, round=round_name, bracket_position=index) for index in range(count)]
        )
        previous_count = count

    return plan
