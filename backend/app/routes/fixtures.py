"""
Fixture generation, match listing/wiping, group standings and qualifier preview.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from app.database import get_session
from app.models.match import Match, MatchCategory, MatchRound, MatchStatus
from app.routes.tournaments import get_tournament_or_404
from app.services.fixture_service import (
    FixtureGenerationError,
    delete_all_matches,
    delete_knockout_matches,
    generate_group_fixtures,
    generate_knockout_fixtures,
    load_matches,
    load_roster,
)
from app.services.knockout_seeding import bracket_size_for
from app.services.qualifier_selector import select_qualifier_tiers
from app.services.score_rules import match_phase
from app.services.standings import calculate_standings, group_ids_in_order

logger = logging.getLogger(__name__)

router = APIRouter()


class GroupFixturesRequest(BaseModel):
    group_size: Optional[int] = None
    categories: Optional[List[MatchCategory]] = None
    wipe_existing: bool = False


class KnockoutFixturesRequest(BaseModel):
    categories: Optional[List[MatchCategory]] = None
    wipe_existing: bool = True


class FixtureGenerationResponse(BaseModel):
    stage: str
    created: Dict[str, int]
    skipped: Dict[str, str]
    failed: Dict[str, str]
    total_matches_created: int
    tournament_status: str


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    category: MatchCategory
    round: MatchRound
    group_id: Optional[str] = None
    bracket_position: int
    court_number: Optional[int] = None
    scheduled_time: Optional[datetime] = None
    status: MatchStatus
    phase: str
    player1_id: Optional[int] = None
    player1_name: str
    player2_id: Optional[int] = None
    player2_name: str
    scores: List[Dict[str, Any]]
    winner_id: Optional[int] = None
    pending_winner_id: Optional[int] = None
    next_match_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("scores", mode="before")
    @classmethod
    def normalize_scores(cls, v):
        return v or []


def match_to_response(m: Match) -> MatchResponse:
    return MatchResponse(
        id=m.id,
        tournament_id=m.tournament_id,
        category=m.category,
        round=m.round,
        group_id=m.group_id,
        bracket_position=m.bracket_position,
        court_number=m.court_number,
        scheduled_time=m.scheduled_time,
        status=m.status,
        phase=match_phase(m.status, m.pending_winner_id).value,
        player1_id=m.player1_id,
        player1_name=m.player1_name,
        player2_id=m.player2_id,
        player2_name=m.player2_name,
        scores=m.scores,
        winner_id=m.winner_id,
        pending_winner_id=m.pending_winner_id,
        next_match_id=m.next_match_id,
        started_at=m.started_at,
        completed_at=m.completed_at,
    )


class StandingRow(BaseModel):
    player_id: int
    name: str
    played: int
    wins: int
    losses: int
    points: int


class QualifierEntry(BaseModel):
    id: int
    name: str


class QualifierPreviewResponse(BaseModel):
    category: MatchCategory
    knockout_size: int
    bracket_size: int
    group_winners: List[QualifierEntry]
    ranked_runners_up: List[QualifierEntry]
    roster_fallback: List[QualifierEntry]
    qualifiers: List[QualifierEntry]


def build_standings(matches: List[Match], category: Optional[MatchCategory] = None) -> Dict[str, Dict[str, List[Dict]]]:
    """category -> group_id -> ranked rows, groups in first-appearance order"""
    result: Dict[str, Dict[str, List[Dict]]] = {}
    group_matches = [m for m in matches if m.round == MatchRound.group]
    for group_id in group_ids_in_order(group_matches, category):
        first = next(m for m in group_matches if m.group_id == group_id)
        rows = calculate_standings(group_matches, group_id)
        result.setdefault(MatchCategory(first.category).value, {})[group_id] = [row.to_dict() for row in rows]
    return result


@router.post("/tournaments/{tournament_id}/fixtures/group", response_model=FixtureGenerationResponse)
def create_group_fixtures(
    tournament_id: int,
    request: Optional[GroupFixturesRequest] = None,
    session: Session = Depends(get_session),
):
    """
    Generate round-robin group fixtures for every (or the requested) category.

    Categories with fewer than 2 players are skipped and listed under "skipped".
    Returns 400 only when no match at all could be created.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    request = request or GroupFixturesRequest()
    try:
        result = generate_group_fixtures(
            session,
            tournament,
            group_size=request.group_size,
            categories=request.categories,
            wipe_existing=request.wipe_existing,
        )
    except FixtureGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


@router.post("/tournaments/{tournament_id}/fixtures/knockout", response_model=FixtureGenerationResponse)
def create_knockout_fixtures(
    tournament_id: int,
    request: Optional[KnockoutFixturesRequest] = None,
    session: Session = Depends(get_session),
):
    """
    Select qualifiers and build the knockout bracket for every (or the requested) category.

    With wipe_existing (default) an existing bracket is deleted and rebuilt.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    request = request or KnockoutFixturesRequest()
    try:
        result = generate_knockout_fixtures(
            session,
            tournament,
            categories=request.categories,
            wipe_existing=request.wipe_existing,
        )
    except FixtureGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    category: Optional[MatchCategory] = Query(None),
    round: Optional[MatchRound] = Query(None),
    group_id: Optional[str] = Query(None),
    status: Optional[MatchStatus] = Query(None),
    session: Session = Depends(get_session),
):
    """List matches (stable order: id). Optional filters: category, round, group_id, status."""
    get_tournament_or_404(session, tournament_id)
    matches = load_matches(
        session,
        tournament_id,
        category=category,
        round=round,
        group_id=group_id,
        status=status.value if status else None,
    )
    return [match_to_response(m) for m in matches]


@router.delete("/tournaments/{tournament_id}/matches")
def wipe_matches(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    """Delete every match of the tournament (batched). Tournament status is left as is."""
    get_tournament_or_404(session, tournament_id)
    return {"deleted": delete_all_matches(session, tournament_id)}


@router.delete("/tournaments/{tournament_id}/matches/knockout")
def wipe_knockout_matches(
    tournament_id: int,
    category: Optional[MatchCategory] = Query(None),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    """Delete knockout matches (R16, QF, SF, F, 3rd), optionally for one category."""
    get_tournament_or_404(session, tournament_id)
    return {"deleted": delete_knockout_matches(session, tournament_id, category)}


@router.get("/tournaments/{tournament_id}/standings")
def get_standings(
    tournament_id: int,
    category: Optional[MatchCategory] = Query(None),
    session: Session = Depends(get_session),
) -> Dict[str, Dict[str, List[StandingRow]]]:
    """Group standings: category -> group_id -> rows ranked by points, wins, losses, name"""
    get_tournament_or_404(session, tournament_id)
    return build_standings(load_matches(session, tournament_id, round=MatchRound.group), category)


@router.get("/tournaments/{tournament_id}/qualifiers/{category}", response_model=QualifierPreviewResponse)
def preview_qualifiers(tournament_id: int, category: MatchCategory, session: Session = Depends(get_session)):
    """Who would enter the knockout for a category right now, tier by tier"""
    tournament = get_tournament_or_404(session, tournament_id)
    selection = select_qualifier_tiers(
        load_roster(session, tournament_id, category),
        load_matches(session, tournament_id, category=category, round=MatchRound.group),
        category,
        tournament.knockout_size,
    )

    def entries(players) -> List[QualifierEntry]:
        return [QualifierEntry(id=p.id, name=p.name) for p in players]

    return QualifierPreviewResponse(
        category=category,
        knockout_size=tournament.knockout_size,
        bracket_size=bracket_size_for(len(selection.qualifiers), tournament.knockout_size),
        group_winners=entries(selection.group_winners),
        ranked_runners_up=entries(selection.ranked_runners_up),
        roster_fallback=entries(selection.roster_fallback),
        qualifiers=entries(selection.qualifiers),
    )
