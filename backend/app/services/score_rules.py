"""
Live scoring rules for a single match.

Pure state machine over the match's ordered game list:
  - the active game is the first unsealed game (or the last game when all are sealed)
  - +1 / -1 point deltas, never below zero
  - game win with optional deuce (clear-by margin, hard cap at max_points)
  - match win at ceil(best_of / 2) games, held as a pending winner until confirmed
  - bounded undo history (LIFO)

Nothing here touches the database; callers persist the returned games/history.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.models.match import MatchStatus
from app.services.draw_rules import (
    ALLOWED_BEST_OF,
    ALLOWED_POINTS_PER_GAME,
    DEFAULT_CLEAR_BY,
    UNDO_HISTORY_LIMIT,
    default_max_points,
)

P1 = "p1"
P2 = "p2"
SIDES = (P1, P2)


class ScoreRuleError(Exception):
    """Raised when a score change is not allowed (no write must happen)"""

    pass


class MatchPhase(str, Enum):
    scheduled = "scheduled"
    live = "live"
    pending_completion = "pending_completion"
    completed = "completed"
    walkover = "walkover"


def match_phase(status: str, pending_winner_id: Optional[int]) -> MatchPhase:
    """Derive the scoring phase; a clinched-but-unconfirmed match is pending_completion."""
    if status == MatchStatus.completed:
        return MatchPhase.completed
    if status == MatchStatus.walkover:
        return MatchPhase.walkover
    if pending_winner_id is not None:
        return MatchPhase.pending_completion
    if status == MatchStatus.live:
        return MatchPhase.live
    return MatchPhase.scheduled


@dataclass(frozen=True)
class ScoringRules:
    best_of: int
    points_per_game: int
    deuce_enabled: bool
    clear_by: int
    max_points: int

    @property
    def deuce_at(self) -> int:
        return self.points_per_game - 1

    @property
    def games_to_win(self) -> int:
        return games_to_win(self.best_of)

    @classmethod
    def preset(
        cls,
        best_of: int = 3,
        points_per_game: int = 21,
        deuce_enabled: bool = True,
        clear_by: Optional[int] = None,
        max_points: Optional[int] = None,
    ) -> "ScoringRules":
        """Build rules, filling clear_by / max_points with the standard defaults."""
        return cls(
            best_of=best_of,
            points_per_game=points_per_game,
            deuce_enabled=deuce_enabled,
            clear_by=DEFAULT_CLEAR_BY if clear_by is None else clear_by,
            max_points=default_max_points(points_per_game) if max_points is None else max_points,
        )

    @classmethod
    def from_tournament(cls, tournament: Any) -> "ScoringRules":
        return cls(
            best_of=tournament.best_of,
            points_per_game=tournament.points_per_game,
            deuce_enabled=tournament.deuce_enabled,
            clear_by=tournament.clear_by,
            max_points=tournament.max_points,
        )

    def validate(self) -> None:
        if self.best_of not in ALLOWED_BEST_OF:
            raise ValueError(f"best_of must be one of {sorted(ALLOWED_BEST_OF)}, got {self.best_of}")
        if self.points_per_game not in ALLOWED_POINTS_PER_GAME:
            raise ValueError(
                f"points_per_game must be one of {sorted(ALLOWED_POINTS_PER_GAME)}, got {self.points_per_game}"
            )
        if self.clear_by < 1:
            raise ValueError(f"clear_by must be >= 1, got {self.clear_by}")
        if self.max_points < self.points_per_game:
            raise ValueError(f"max_points must be >= points_per_game ({self.points_per_game}), got {self.max_points}")


@dataclass
class ScoreGame:
    game_number: int
    p1_score: int = 0
    p2_score: int = 0
    winner: Optional[str] = None  # "p1" | "p2" | None
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_number": self.game_number,
            "p1_score": self.p1_score,
            "p2_score": self.p2_score,
            "winner": self.winner,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreGame":
        return cls(
            game_number=int(data.get("game_number", 1)),
            p1_score=int(data.get("p1_score", 0)),
            p2_score=int(data.get("p2_score", 0)),
            winner=data.get("winner"),
            started_at=data.get("started_at"),
            ended_at=data.get("ended_at"),
        )


@dataclass(frozen=True)
class ScoreAction:
    game_index: int
    player: str
    delta: int

    def to_dict(self) -> Dict[str, Any]:
        return {"game_index": self.game_index, "player": self.player, "delta": self.delta}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreAction":
        return cls(game_index=int(data["game_index"]), player=data["player"], delta=int(data["delta"]))


@dataclass
class PointOutcome:
    games: List[ScoreGame]
    history: List[ScoreAction]
    game_index: int
    game_winner: Optional[str] = None
    match_winner: Optional[str] = None
    new_game_started: bool = False


@dataclass
class UndoOutcome:
    games: List[ScoreGame]
    history: List[ScoreAction] = field(default_factory=list)
    undone: Optional[ScoreAction] = None


def blank_game(game_number: int = 1) -> ScoreGame:
    return ScoreGame(game_number=game_number)


def games_to_win(best_of: int) -> int:
    return math.ceil(best_of / 2)


def get_game_winner(p1_score: int, p2_score: int, rules: ScoringRules) -> Optional[str]:
    """
    Decide a single game.

    Without deuce the first side to points_per_game wins outright.
    With deuce: reaching max_points wins regardless of margin; otherwise the leader
    needs points_per_game and a lead of at least clear_by.
    """
    high = max(p1_score, p2_score)
    low = min(p1_score, p2_score)
    diff = high - low

    if not rules.deuce_enabled:
        if p1_score >= rules.points_per_game:
            return P1
        if p2_score >= rules.points_per_game:
            return P2
        return None

    if high >= rules.max_points:
        return P1 if p1_score > p2_score else P2
    if high >= rules.points_per_game and diff >= rules.clear_by:
        return P1 if p1_score > p2_score else P2
    return None


def count_wins(games: Sequence[ScoreGame]) -> Tuple[int, int]:
    p1 = sum(1 for g in games if g.winner == P1)
    p2 = sum(1 for g in games if g.winner == P2)
    return p1, p2


def get_match_winner(games: Sequence[ScoreGame], rules: ScoringRules) -> Optional[str]:
    p1_wins, p2_wins = count_wins(games)
    needed = games_to_win(rules.best_of)
    if p1_wins >= needed:
        return P1
    if p2_wins >= needed:
        return P2
    return None


def active_game_index(games: Sequence[ScoreGame]) -> int:
    for index, game in enumerate(games):
        if game.winner is None:
            return index
    return max(len(games) - 1, 0)


def games_from_json(raw: Optional[List[Dict[str, Any]]]) -> List[ScoreGame]:
    return [ScoreGame.from_dict(item) for item in (raw or [])]


def games_to_json(games: Sequence[ScoreGame]) -> List[Dict[str, Any]]:
    return [game.to_dict() for game in games]


def history_from_json(raw: Optional[List[Dict[str, Any]]]) -> List[ScoreAction]:
    return [ScoreAction.from_dict(item) for item in (raw or [])]


def history_to_json(history: Sequence[ScoreAction]) -> List[Dict[str, Any]]:
    return [action.to_dict() for action in history]


def _copy_games(games: Sequence[ScoreGame]) -> List[ScoreGame]:
    return [ScoreGame(**game.to_dict()) for game in games]


def _timestamp(now: Optional[datetime]) -> str:
    return (now or datetime.utcnow()).isoformat()


def apply_point(
    games: Sequence[ScoreGame],
    history: Sequence[ScoreAction],
    player: str,
    delta: int,
    rules: ScoringRules,
    now: Optional[datetime] = None,
) -> PointOutcome:
    """
    Apply a +1/-1 point to the active game and evaluate game/match win.

    Raises ScoreRuleError if the change would push a score below zero or the active
    game is already sealed. Inputs are not mutated.
    """
    if player not in SIDES:
        raise ScoreRuleError(f"player must be one of {SIDES}, got {player!r}")
    if delta not in (1, -1):
        raise ScoreRuleError(f"delta must be +1 or -1, got {delta}")

    updated = _copy_games(games) or [blank_game(1)]
    index = active_game_index(updated)
    game = updated[index]

    if game.winner is not None:
        raise ScoreRuleError(f"Game {game.game_number} is already decided")

    next_p1 = game.p1_score + delta if player == P1 else game.p1_score
    next_p2 = game.p2_score + delta if player == P2 else game.p2_score
    if next_p1 < 0 or next_p2 < 0:
        raise ScoreRuleError("Score cannot go below zero")

    game.p1_score = next_p1
    game.p2_score = next_p2
    if game.started_at is None and delta == 1:
        game.started_at = _timestamp(now)

    new_history = (list(history) + [ScoreAction(game_index=index, player=player, delta=delta)])[-UNDO_HISTORY_LIMIT:]
    outcome = PointOutcome(games=updated, history=new_history, game_index=index)

    # Corrections never decide a game
    if delta == -1:
        return outcome

    winner = get_game_winner(next_p1, next_p2, rules)
    if winner is None:
        return outcome

    game.winner = winner
    game.ended_at = _timestamp(now)
    outcome.game_winner = winner

    outcome.match_winner = get_match_winner(updated, rules)
    if outcome.match_winner is not None:
        return outcome

    if index + 1 >= len(updated):
        updated.append(blank_game(len(updated) + 1))
        outcome.new_game_started = True
    return outcome


def undo_last(games: Sequence[ScoreGame], history: Sequence[ScoreAction]) -> Optional[UndoOutcome]:
    """
    Revert the most recent point action. Returns None when there is nothing to undo.

    The inverse delta goes to the exact recorded game and side (floored at zero).
    Sealed games stay sealed and a pending match winner is not cleared.
    """
    if not history:
        return None

    last = history[-1]
    updated = _copy_games(games)
    if last.game_index >= len(updated):
        raise ScoreRuleError(f"Undo target game {last.game_index + 1} no longer exists")

    target = updated[last.game_index]
    if last.player == P1:
        target.p1_score = max(0, target.p1_score - last.delta)
    else:
        target.p2_score = max(0, target.p2_score - last.delta)

    return UndoOutcome(games=updated, history=list(history[:-1]), undone=last)
