"""
Knockout qualifier selection for one category.

Layered policy, in priority order:
  1. group winners (top standing of every group, groups in first-appearance order)
  2. all other standings rows, pooled and re-ranked with the standings comparator
  3. roster players of the category not yet selected, seeded first then by name
Then dedupe by player id (first occurrence wins) and truncate to the knockout size.

With no completed group matches the selection falls through entirely to tier 3, so
a bracket can be drawn before group play starts.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Sequence

from app.models.match import MatchCategory, MatchRound
from app.services.fixture_types import SchedulePlayer
from app.services.standings import Standing, calculate_standings, group_ids_in_order, standing_sort_key


@dataclass
class QualifierSelection:
    category: MatchCategory
    group_winners: List[SchedulePlayer] = field(default_factory=list)
    ranked_runners_up: List[SchedulePlayer] = field(default_factory=list)
    roster_fallback: List[SchedulePlayer] = field(default_factory=list)
    qualifiers: List[SchedulePlayer] = field(default_factory=list)


def _roster_sort_key(player: Any) -> tuple:
    return (not bool(player.seeded), player.name)


def _to_schedule_player(row: Standing) -> SchedulePlayer:
    return SchedulePlayer(id=row.player_id, name=row.name)


def select_qualifier_tiers(
    roster: Iterable[Any],
    matches: Iterable[Any],
    category: MatchCategory,
    knockout_size: int,
) -> QualifierSelection:
    """Run the layered policy and keep each tier for reporting."""
    category = MatchCategory(category)
    category_matches = [m for m in matches if m.category == category and m.round == MatchRound.group]

    selection = QualifierSelection(category=category)
    pooled: List[Standing] = []

    for group_id in group_ids_in_order(category_matches):
        standings = calculate_standings(category_matches, group_id)
        if not standings:
            continue
        selection.group_winners.append(_to_schedule_player(standings[0]))
        pooled.extend(standings[1:])

    selection.ranked_runners_up = [_to_schedule_player(row) for row in sorted(pooled, key=standing_sort_key)]

    already = {p.id for p in selection.group_winners} | {p.id for p in selection.ranked_runners_up}
    category_roster = [p for p in roster if category in (p.categories or []) and p.id not in already]
    selection.roster_fallback = [
        SchedulePlayer(id=p.id, name=p.name) for p in sorted(category_roster, key=_roster_sort_key)
    ]

    selection.qualifiers = dedupe_and_truncate(
        selection.group_winners + selection.ranked_runners_up + selection.roster_fallback,
        knockout_size,
    )
    return selection


def select_qualifiers(
    roster: Iterable[Any],
    matches: Iterable[Any],
    category: MatchCategory,
    knockout_size: int,
) -> List[SchedulePlayer]:
    """Ordered knockout entrants (best first), at most knockout_size long."""
    return select_qualifier_tiers(roster, matches, category, knockout_size).qualifiers


def dedupe_and_truncate(players: Sequence[SchedulePlayer], limit: int) -> List[SchedulePlayer]:
    seen = set()
    result: List[SchedulePlayer] = []
    for player in players:
        if player.id in seen:
            continue
        seen.add(player.id)
        result.append(player)
    return result[: max(0, limit)]
