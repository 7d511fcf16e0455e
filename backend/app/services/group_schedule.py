"""
Group stage draw: contiguous pools, full round robin inside each pool.

Grouping follows input order (no serpentine, no randomization), so callers control
seeding by sorting the roster before calling.
"""

import math
from typing import List, Sequence, TypeVar

from app.models.match import MatchCategory, MatchRound
from app.services.draw_rules import DEFAULT_GROUP_SIZE, MIN_GROUP_SIZE
from app.services.fixture_types import CreateMatch, SchedulePlayer

T = TypeVar("T")


def chunk_into_groups(items: Sequence[T], group_size: int) -> List[List[T]]:
    """
    Split items into consecutive groups of group_size.

    The last group may be smaller. A non-positive group_size keeps everyone in one group.
    """
    if group_size <= 0:
        return [list(items)]
    return [list(items[start : start + group_size]) for start in range(0, len(items), group_size)]


def group_label(index: int) -> str:
    """0 -> "A" ... 25 -> "Z", then "G27", "G28", ..."""
    if index < 26:
        return chr(ord("A") + index)
    return f"G{index + 1}"


def group_id_for(category: MatchCategory, index: int) -> str:
    return f"{MatchCategory(category).value}-{group_label(index)}"


def round_robin_pairs(size: int) -> List[tuple]:
    """Every unordered pair (i, j), i < j: n*(n-1)/2 pairs."""
    return [(i, j) for i in range(size) for j in range(i + 1, size)]


def group_size_for_count(player_count: int, group_count: int) -> int:
    """Pool size that spreads player_count over group_count groups (never below 2)."""
    return max(MIN_GROUP_SIZE, math.ceil(player_count / max(1, group_count)))


def playable_group_size(player_count: int, group_size: int) -> int:
    """
    Smallest size >= group_size whose chunking leaves no group of one player.

    A lone player in the last group would play no matches, so the size grows until the
    remainder is 0 or at least MIN_GROUP_SIZE. Non-positive sizes (one group) pass through.
    """
    if group_size <= 0:
        return group_size
    size = max(MIN_GROUP_SIZE, group_size)
    while size < player_count and player_count % size == 1:
        size += 1
    return size


def generate_group_matches(
    players: Sequence[SchedulePlayer],
    category: MatchCategory,
    group_size: int = DEFAULT_GROUP_SIZE,
) -> List[CreateMatch]:
    """Round-robin fixtures for one category, one CreateMatch per pair per group."""
    matches: List[CreateMatch] = []

    for group_index, group in enumerate(chunk_into_groups(players, group_size)):
        group_id = group_id_for(category, group_index)
        for position, (i, j) in enumerate(round_robin_pairs(len(group))):
            matches.append(
                CreateMatch.between(
                    category=category,
                    round=MatchRound.group,
                    p1=group[i],
                    p2=group[j],
                    group_id=group_id,
                    bracket_position=position,
                )
            )

    return matches
