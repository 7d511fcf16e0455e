from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.match import MatchCategory
from app.models.tournament import Tournament, TournamentStatus
from app.services.draw_rules import ALLOWED_KNOCKOUT_SIZES
from app.services.score_rules import ScoringRules
from app.services.tournament_service import (
    TournamentStatusError,
    delete_tournament_cascade,
    random_venue_pin,
    set_tournament_status,
    unique_slug,
)

router = APIRouter()


def _validate_categories(v):
    if v is None:
        return v
    if not v:
        raise ValueError("at least one category is required")
    deduped: List[MatchCategory] = []
    for category in v:
        if category not in deduped:
            deduped.append(category)
    return deduped


class TournamentCreate(BaseModel):
    name: str
    categories: List[MatchCategory]
    best_of: int = 3
    points_per_game: int = 21
    deuce_enabled: bool = True
    clear_by: Optional[int] = None
    max_points: Optional[int] = None
    group_count: int = 1
    knockout_size: int = 8
    public_view_enabled: bool = False
    venue_pin: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v):
        return _validate_categories(v)

    @field_validator("group_count")
    @classmethod
    def validate_group_count(cls, v):
        if v < 1:
            raise ValueError("group_count must be >= 1")
        return v

    @field_validator("knockout_size")
    @classmethod
    def validate_knockout_size(cls, v):
        if v not in ALLOWED_KNOCKOUT_SIZES:
            raise ValueError(f"knockout_size must be one of {list(ALLOWED_KNOCKOUT_SIZES)}")
        return v

    @field_validator("venue_pin")
    @classmethod
    def validate_venue_pin(cls, v):
        if v is not None and (len(v) != 4 or not v.isdigit()):
            raise ValueError("venue_pin must be 4 digits")
        return v

    @model_validator(mode="after")
    def validate_scoring_rules(self):
        self.scoring_rules().validate()
        return self

    def scoring_rules(self) -> ScoringRules:
        return ScoringRules.preset(
            best_of=self.best_of,
            points_per_game=self.points_per_game,
            deuce_enabled=self.deuce_enabled,
            clear_by=self.clear_by,
            max_points=self.max_points,
        )


class TournamentUpdate(BaseModel):
    """Scoring rules are fixed at creation and cannot be patched."""

    name: Optional[str] = None
    categories: Optional[List[MatchCategory]] = None
    public_view_enabled: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("name cannot be blank")
        return v.strip() if v else v

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v):
        return _validate_categories(v)


class TournamentStatusUpdate(BaseModel):
    status: TournamentStatus


class TournamentResponse(BaseModel):
    id: int
    name: str
    slug: str
    status: TournamentStatus
    categories: List[MatchCategory]
    best_of: int
    points_per_game: int
    deuce_enabled: bool
    deuce_at: int
    clear_by: int
    max_points: int
    group_count: int
    knockout_size: int
    public_view_enabled: bool
    venue_pin: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments, newest first"""
    return session.exec(select(Tournament).order_by(Tournament.created_at.desc(), Tournament.id.desc())).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament in draft status with a unique slug"""
    rules = tournament_data.scoring_rules()
    tournament = Tournament(
        name=tournament_data.name,
        slug=unique_slug(session, tournament_data.name),
        status=TournamentStatus.draft.value,
        categories=[c.value for c in tournament_data.categories],
        best_of=rules.best_of,
        points_per_game=rules.points_per_game,
        deuce_enabled=rules.deuce_enabled,
        deuce_at=rules.deuce_at,
        clear_by=rules.clear_by,
        max_points=rules.max_points,
        group_count=tournament_data.group_count,
        knockout_size=tournament_data.knockout_size,
        public_view_enabled=tournament_data.public_view_enabled,
        venue_pin=tournament_data.venue_pin or random_venue_pin(),
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return get_tournament_or_404(session, tournament_id)


@router.patch("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update name, categories or public visibility. A new name re-derives the slug."""
    tournament = get_tournament_or_404(session, tournament_id)

    update_data = tournament_data.model_dump(exclude_unset=True)
    if update_data.get("name") and update_data["name"] != tournament.name:
        tournament.slug = unique_slug(session, update_data["name"], exclude_id=tournament.id)
    if update_data.get("categories") is not None:
        update_data["categories"] = [MatchCategory(c).value for c in update_data["categories"]]
    for field, value in update_data.items():
        if value is not None:
            setattr(tournament, field, value)

    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.post("/tournaments/{tournament_id}/status", response_model=TournamentResponse)
def update_tournament_status(
    tournament_id: int, payload: TournamentStatusUpdate, session: Session = Depends(get_session)
):
    """Move the tournament status forward (e.g. mark it completed). Never backwards."""
    tournament = get_tournament_or_404(session, tournament_id)
    try:
        return set_tournament_status(session, tournament, payload.status)
    except TournamentStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its players and matches"""
    tournament = get_tournament_or_404(session, tournament_id)
    delete_tournament_cascade(session, tournament)
    return None
