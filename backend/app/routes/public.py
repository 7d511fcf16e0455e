"""
Public read-only API endpoints.

No auth required. Only tournaments with public_view_enabled are visible; anything
else answers 404 so private slugs cannot be probed.
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from app.database import get_session
from app.models.match import MatchRound, MatchStatus, TERMINAL_STATUSES
from app.models.tournament import Tournament
from app.routes.fixtures import MatchResponse, StandingRow, build_standings, match_to_response
from app.services.fixture_service import load_matches

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_RESULTS_LIMIT = 10


# ── Response models ──────────────────────────────────────────────────────


class PublicTournament(BaseModel):
    name: str
    slug: str
    status: str
    categories: List[str]
    best_of: int
    points_per_game: int


class PublicTournamentResponse(BaseModel):
    tournament: PublicTournament
    standings: Dict[str, Dict[str, List[StandingRow]]]
    knockout: List[MatchResponse]
    live: List[MatchResponse]
    recent_results: List[MatchResponse]


@router.get("/public/tournaments/{slug}", response_model=PublicTournamentResponse)
def get_public_tournament(slug: str, session: Session = Depends(get_session)):
    """Scoreboard view: standings, knockout bracket, live matches and latest results"""
    tournament = session.exec(
        select(Tournament).where(Tournament.slug == slug, Tournament.public_view_enabled == True)  # noqa: E712
    ).first()
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    matches = load_matches(session, tournament.id)
    knockout = [m for m in matches if m.round != MatchRound.group]
    live = [m for m in matches if m.status == MatchStatus.live]
    finished = sorted(
        (m for m in matches if m.status in TERMINAL_STATUSES and m.completed_at is not None),
        key=lambda m: m.completed_at,
        reverse=True,
    )

    return PublicTournamentResponse(
        tournament=PublicTournament(
            name=tournament.name,
            slug=tournament.slug,
            status=tournament.status,
            categories=list(tournament.categories or []),
            best_of=tournament.best_of,
            points_per_game=tournament.points_per_game,
        ),
        standings=build_standings(matches),
        knockout=[match_to_response(m) for m in knockout],
        live=[match_to_response(m) for m in live],
        recent_results=[match_to_response(m) for m in finished[:RECENT_RESULTS_LIMIT]],
    )
