"""
Live runtime: point-by-point scoring, undo, winner confirmation and knockout advancement.
A confirmed winner is advanced into the linked next-round match in the same commit.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from app.database import get_session
from app.models.match import TERMINAL_STATUSES, Match
from app.routes.fixtures import MatchResponse, match_to_response
from app.routes.tournaments import get_tournament_or_404
from app.services.advancement_service import (
    SlotConflict,
    apply_advancement_for_completed_match,
    resolve_all_advancement,
)
from app.services.score_rules import SIDES, ScoreRuleError
from app.services.scoring_service import MatchStateError, complete_match, record_point, undo_point

logger = logging.getLogger(__name__)

router = APIRouter()


class PointRequest(BaseModel):
    player: str  # "p1" | "p2"
    delta: int = 1

    @field_validator("player")
    @classmethod
    def validate_player(cls, v):
        if v not in SIDES:
            raise ValueError(f"player must be one of {list(SIDES)}")
        return v

    @field_validator("delta")
    @classmethod
    def validate_delta(cls, v):
        if v not in (1, -1):
            raise ValueError("delta must be +1 or -1")
        return v


class CompleteRequest(BaseModel):
    winner_id: int
    walkover: bool = False


class PointResponse(BaseModel):
    match: MatchResponse
    game_winner: Optional[str] = None
    match_winner: Optional[str] = None
    new_game_started: bool = False


class UndoResponse(BaseModel):
    match: MatchResponse
    undone: Optional[Dict[str, Any]] = None


class CompleteResponse(BaseModel):
    match: MatchResponse
    advanced_count: int = 0


class ResolveAdvancementResponse(BaseModel):
    matches_processed: int
    players_advanced: int
    conflicts: List[Dict[str, Any]]
    open_slots_before: int
    open_slots_after: int


def _get_match_or_404(session: Session, tournament_id: int, match_id: int) -> Match:
    get_tournament_or_404(session, tournament_id)
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.post("/tournaments/{tournament_id}/runtime/matches/{match_id}/points", response_model=PointResponse)
def add_point(
    tournament_id: int,
    match_id: int,
    payload: PointRequest,
    session: Session = Depends(get_session),
) -> PointResponse:
    """Add or remove one point. The first point moves the match to live."""
    match = _get_match_or_404(session, tournament_id, match_id)
    try:
        outcome = record_point(session, match, payload.player, payload.delta)
    except MatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScoreRuleError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return PointResponse(
        match=match_to_response(match),
        game_winner=outcome.game_winner,
        match_winner=outcome.match_winner,
        new_game_started=outcome.new_game_started,
    )


@router.post("/tournaments/{tournament_id}/runtime/matches/{match_id}/undo", response_model=UndoResponse)
def undo_last_point(tournament_id: int, match_id: int, session: Session = Depends(get_session)) -> UndoResponse:
    """Revert the most recent point (no-op when nothing is left to undo)."""
    match = _get_match_or_404(session, tournament_id, match_id)
    try:
        outcome = undo_point(session, match)
    except MatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScoreRuleError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return UndoResponse(
        match=match_to_response(match),
        undone=outcome.undone.to_dict() if outcome and outcome.undone else None,
    )


@router.post("/tournaments/{tournament_id}/runtime/matches/{match_id}/complete", response_model=CompleteResponse)
def confirm_winner(
    tournament_id: int,
    match_id: int,
    payload: CompleteRequest,
    session: Session = Depends(get_session),
) -> CompleteResponse:
    """Confirm the winner (or award a walkover) and advance them into the next match."""
    match = _get_match_or_404(session, tournament_id, match_id)
    try:
        result = complete_match(session, match, payload.winner_id, walkover=payload.walkover)
    except SlotConflict as e:
        session.rollback()
        logger.error("Completion of match %d rejected: %s", match_id, e)
        raise HTTPException(status_code=409, detail=str(e))
    except MatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScoreRuleError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return CompleteResponse(match=match_to_response(result.match), advanced_count=result.advanced_count)


@router.post(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}/advance",
    response_model=Dict[str, int],
)
def advance_match(
    tournament_id: int,
    match_id: int,
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    """Manually re-run advancement for a finished match (repair). Idempotent."""
    match = _get_match_or_404(session, tournament_id, match_id)

    if match.status not in TERMINAL_STATUSES:
        raise HTTPException(status_code=422, detail="Match must be completed to run advancement")
    if match.winner_id is None:
        raise HTTPException(status_code=422, detail="Match must have winner_id to run advancement")

    try:
        advanced_count = apply_advancement_for_completed_match(session, match_id)
    except SlotConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"advanced_count": advanced_count}


@router.post(
    "/tournaments/{tournament_id}/runtime/resolve-advancement",
    response_model=ResolveAdvancementResponse,
)
def resolve_advancement(tournament_id: int, session: Session = Depends(get_session)):
    """Replay advancement for every finished knockout match, in id order."""
    get_tournament_or_404(session, tournament_id)
    return resolve_all_advancement(session, tournament_id)
