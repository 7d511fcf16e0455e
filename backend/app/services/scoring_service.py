"""
Live scoring against the store.

Runs the ScoreRuleEngine (app.services.score_rules) on a persisted match and writes
the result back:
  - point / undo update scores + bounded history in one commit
  - a clinched match keeps status "live" with pending_winner_id set until confirmed
  - completion (or walkover) and the winner's advancement commit together; a slot
    conflict in the next match rejects the completion before anything is written
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from app.models.match import TERMINAL_STATUSES, Match, MatchStatus
from app.models.tournament import Tournament
from app.services.advancement_service import SlotWrite, apply_slot_write, plan_advancement
from app.services.score_rules import (
    P1,
    PointOutcome,
    ScoreRuleError,
    ScoringRules,
    UndoOutcome,
    apply_point,
    games_from_json,
    games_to_json,
    history_from_json,
    history_to_json,
    undo_last,
)
from app.utils.tournament_locks import tournament_lock

logger = logging.getLogger(__name__)


class MatchStateError(Exception):
    """Raised when a match is not in a state that allows the requested change"""

    pass


@dataclass
class CompletionResult:
    match: Match
    advanced_count: int = 0
    next_match_id: Optional[int] = None


def rules_for(session: Session, match: Match) -> ScoringRules:
    tournament = session.get(Tournament, match.tournament_id)
    return ScoringRules.from_tournament(tournament)


def _ensure_not_terminal(match: Match) -> None:
    if match.status in TERMINAL_STATUSES:
        raise MatchStateError(f"Match {match.id} is {match.status}; scores can no longer change")


def record_point(session: Session, match: Match, player: str, delta: int) -> PointOutcome:
    """
    Add (+1) or remove (-1) a point for one side of a match.

    Raises MatchStateError for finished, pending or not-yet-drawn matches and
    ScoreRuleError for invalid changes; nothing is written in either case.
    """
    with tournament_lock(match.tournament_id):
        session.refresh(match)
        _ensure_not_terminal(match)
        if match.pending_winner_id is not None:
            raise MatchStateError(f"Match {match.id} is awaiting confirmation of its winner")
        if match.player1_id is None or match.player2_id is None:
            raise MatchStateError(f"Match {match.id} does not have both players yet")

        outcome = apply_point(
            games_from_json(match.scores),
            history_from_json(match.score_history),
            player,
            delta,
            rules_for(session, match),
        )

        match.scores = games_to_json(outcome.games)
        match.score_history = history_to_json(outcome.history)
        if match.status == MatchStatus.scheduled:
            match.status = MatchStatus.live.value
            match.started_at = datetime.utcnow()
        if outcome.match_winner is not None:
            match.pending_winner_id = match.player1_id if outcome.match_winner == P1 else match.player2_id
            logger.info("Match %d clinched by player %d, awaiting confirmation", match.id, match.pending_winner_id)

        session.add(match)
        session.commit()
        session.refresh(match)
    return outcome


def undo_point(session: Session, match: Match) -> Optional[UndoOutcome]:
    """Revert the last recorded point. Returns None (and writes nothing) when history is empty."""
    with tournament_lock(match.tournament_id):
        session.refresh(match)
        _ensure_not_terminal(match)

        outcome = undo_last(games_from_json(match.scores), history_from_json(match.score_history))
        if outcome is None:
            return None

        match.scores = games_to_json(outcome.games)
        match.score_history = history_to_json(outcome.history)
        session.add(match)
        session.commit()
        session.refresh(match)
    return outcome


def complete_match(session: Session, match: Match, winner_id: int, walkover: bool = False) -> CompletionResult:
    """
    Confirm the winner of a match and advance them into the next knockout match.

    The winner must hold one of the two slots and, when the match was clinched on
    the scoreboard, must be the pending winner. A walkover may be given against an
    empty slot. The completion and the next-match slot write share one commit.

    Raises:
        MatchStateError: match already finished or missing players
        ScoreRuleError: winner not in the match / not the pending winner
        SlotConflict: next match already holds two other players
    """
    with tournament_lock(match.tournament_id):
        # Another session may have finished this match since it was loaded
        session.refresh(match)
        _ensure_not_terminal(match)

        if winner_id is None or winner_id not in (match.player1_id, match.player2_id):
            raise ScoreRuleError(f"Player {winner_id} is not playing in match {match.id}")
        if not walkover:
            if match.player1_id is None or match.player2_id is None:
                raise MatchStateError(f"Match {match.id} does not have both players yet")
            if match.pending_winner_id is not None and match.pending_winner_id != winner_id:
                raise ScoreRuleError(
                    f"Winner {winner_id} does not match the scoreboard winner {match.pending_winner_id}"
                )

        next_match = None
        write: Optional[SlotWrite] = None
        if match.next_match_id is not None:
            next_match = session.get(Match, match.next_match_id)
            if next_match is not None:
                # Raises SlotConflict before anything is written
                write = plan_advancement(match, winner_id, next_match)

        now = datetime.utcnow()
        match.status = (MatchStatus.walkover if walkover else MatchStatus.completed).value
        match.winner_id = winner_id
        match.pending_winner_id = None
        match.completed_at = now
        if match.started_at is None and not walkover:
            match.started_at = now
        session.add(match)

        advanced = 0
        if next_match is not None and write is not None and apply_slot_write(next_match, write):
            session.add(next_match)
            advanced = 1

        session.commit()
        session.refresh(match)

    logger.info(
        "Match %d %s, winner %d%s",
        match.id,
        match.status,
        winner_id,
        f", advanced into match {match.next_match_id}" if advanced else "",
    )
    return CompletionResult(match=match, advanced_count=advanced, next_match_id=match.next_match_id)
