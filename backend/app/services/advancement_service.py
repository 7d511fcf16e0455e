"""
Knockout advancement: when a match is completed, move its winner into the linked
next-round match (next_match_id).

Slot rule: slot 1 if it is open or already holds the winner, else slot 2 under the
same rule. If both slots hold other players the write is refused with SlotConflict
instead of being skipped silently.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlmodel import Session, select

from app.models.match import KNOCKOUT_ROUNDS, TERMINAL_STATUSES, Match
from app.services.draw_rules import TBD
from app.utils.tournament_locks import tournament_lock

logger = logging.getLogger(__name__)


class SlotConflict(Exception):
    """Both slots of the next match are held by players other than the winner"""

    def __init__(self, next_match_id: int, winner_id: int, player1_id: Optional[int], player2_id: Optional[int]):
        self.next_match_id = next_match_id
        self.winner_id = winner_id
        self.player1_id = player1_id
        self.player2_id = player2_id
        super().__init__(
            f"SLOT_CONFLICT: match {next_match_id} already has players {player1_id} and {player2_id}; "
            f"cannot advance winner {winner_id}"
        )


@dataclass(frozen=True)
class SlotWrite:
    next_match_id: int
    slot: int  # 1 | 2
    player_id: int
    player_name: str
    changed: bool  # False when the slot already held the winner


def slot_is_open(player_id: Optional[int]) -> bool:
    # An open slot carries no player id; its display name is TBD
    return player_id is None


def choose_slot(player1_id: Optional[int], player2_id: Optional[int], winner_id: int, next_match_id: int = 0) -> int:
    """Return 1 or 2 for the slot the winner goes into; raise SlotConflict if neither fits."""
    if slot_is_open(player1_id) or player1_id == winner_id:
        return 1
    if slot_is_open(player2_id) or player2_id == winner_id:
        return 2
    raise SlotConflict(next_match_id, winner_id, player1_id, player2_id)


def winner_name_for(match: Match, winner_id: int) -> str:
    if match.player1_id == winner_id:
        return match.player1_name
    if match.player2_id == winner_id:
        return match.player2_name
    return TBD


def plan_advancement(completed: Match, winner_id: int, next_match: Match) -> SlotWrite:
    """Decide the slot write for next_match without touching it."""
    slot = choose_slot(next_match.player1_id, next_match.player2_id, winner_id, next_match.id)
    current = next_match.player1_id if slot == 1 else next_match.player2_id
    return SlotWrite(
        next_match_id=next_match.id,
        slot=slot,
        player_id=winner_id,
        player_name=winner_name_for(completed, winner_id),
        changed=current != winner_id,
    )


def apply_slot_write(next_match: Match, write: SlotWrite) -> bool:
    """Apply a planned slot write to the model. Returns True if anything changed."""
    if not write.changed:
        return False
    if write.slot == 1:
        next_match.player1_id = write.player_id
        next_match.player1_name = write.player_name
    else:
        next_match.player2_id = write.player_id
        next_match.player2_name = write.player_name
    return True


def apply_advancement_for_completed_match(session: Session, match_id: int) -> int:
    """
    Given a completed (or walkover) match, advance its winner into next_match_id.
    Returns 1 if the next match's slot was written, else 0.
    Idempotent: re-running finds the winner already in place and writes nothing.
    Raises SlotConflict if both next-match slots hold other players.
    """
    match = session.get(Match, match_id)
    if not match or match.winner_id is None or match.next_match_id is None:
        return 0
    if match.status not in TERMINAL_STATUSES:
        return 0

    with tournament_lock(match.tournament_id):
        next_match = session.get(Match, match.next_match_id)
        if not next_match:
            logger.warning("Match %d links to missing next match %d", match.id, match.next_match_id)
            return 0

        write = plan_advancement(match, match.winner_id, next_match)
        if not apply_slot_write(next_match, write):
            return 0

        session.add(next_match)
        session.commit()
    logger.info(
        "Advanced player %d from match %d into slot %d of match %d", write.player_id, match.id, write.slot, next_match.id
    )
    return 1


def resolve_all_advancement(session: Session, tournament_id: int) -> Dict:
    """
    Replay advancement for every finished knockout match of a tournament.

    Returns:
        Dict with:
        - matches_processed: finished knockout matches with a next match
        - players_advanced: next-match slots written
        - conflicts: list of {"match_id", "next_match_id", "detail"} for SlotConflict cases
        - open_slots_before / open_slots_after: knockout slots still TBD

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (processes by match id)
    """
    with tournament_lock(tournament_id):
        return _resolve_all(session, tournament_id)


def _resolve_all(session: Session, tournament_id: int) -> Dict:
    open_before = _count_open_knockout_slots(session, tournament_id)

    finished = session.exec(
        select(Match)
        .where(
            Match.tournament_id == tournament_id,
            Match.round.in_([r.value for r in KNOCKOUT_ROUNDS]),
            Match.status.in_([s.value for s in TERMINAL_STATUSES]),
            Match.winner_id.is_not(None),
            Match.next_match_id.is_not(None),
        )
        .order_by(Match.id)
    ).all()

    processed = 0
    advanced = 0
    conflicts = []
    for match in finished:
        processed += 1
        try:
            advanced += apply_advancement_for_completed_match(session, match.id)
        except SlotConflict as exc:
            logger.error("Advancement conflict for match %d: %s", match.id, exc)
            conflicts.append({"match_id": match.id, "next_match_id": exc.next_match_id, "detail": str(exc)})

    session.expire_all()
    return {
        "matches_processed": processed,
        "players_advanced": advanced,
        "conflicts": conflicts,
        "open_slots_before": open_before,
        "open_slots_after": _count_open_knockout_slots(session, tournament_id),
    }


def _count_open_knockout_slots(session: Session, tournament_id: int) -> int:
    matches = session.exec(
        select(Match).where(
            Match.tournament_id == tournament_id,
            Match.round.in_([r.value for r in KNOCKOUT_ROUNDS]),
        )
    ).all()
    return sum(int(m.player1_id is None) + int(m.player2_id is None) for m in matches)
