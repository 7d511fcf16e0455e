"""
Group standings from completed group matches.

Points: win = 2, loss = 1 (participation scheme; unplayed matches earn nothing).
Order: points desc, wins desc, losses asc, name asc.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from app.models.match import MatchStatus
from app.services.draw_rules import POINTS_FOR_LOSS, POINTS_FOR_WIN


@dataclass
class Standing:
    player_id: int
    name: str
    played: int = 0
    wins: int = 0
    losses: int = 0
    points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def standing_sort_key(row: Standing) -> tuple:
    """Sort key for standings rows. Lower = better."""
    return (-row.points, -row.wins, row.losses, row.name)


def calculate_standings(matches: Iterable[Any], group_id: str) -> List[Standing]:
    """
    Rank the players of one group.

    Accepts any match snapshots exposing group_id, status, player1/2 id+name and
    winner_id. Only completed matches of the target group count.
    """
    table: Dict[int, Standing] = {}

    for match in matches:
        if match.group_id != group_id or match.status != MatchStatus.completed:
            continue

        p1 = table.setdefault(match.player1_id, Standing(player_id=match.player1_id, name=match.player1_name))
        p2 = table.setdefault(match.player2_id, Standing(player_id=match.player2_id, name=match.player2_name))
        p1.played += 1
        p2.played += 1

        if match.winner_id == match.player1_id:
            _record(winner=p1, loser=p2)
        elif match.winner_id == match.player2_id:
            _record(winner=p2, loser=p1)

    return sorted(table.values(), key=standing_sort_key)


def _record(winner: Standing, loser: Standing) -> None:
    winner.wins += 1
    winner.points += POINTS_FOR_WIN
    loser.losses += 1
    loser.points += POINTS_FOR_LOSS


def group_ids_in_order(matches: Iterable[Any], category: Optional[str] = None) -> List[str]:
    """Distinct group ids of group-round matches, in order of first appearance."""
    seen: List[str] = []
    for match in matches:
        if match.group_id is None:
            continue
        if category is not None and match.category != category:
            continue
        if match.group_id not in seen:
            seen.append(match.group_id)
    return seen
