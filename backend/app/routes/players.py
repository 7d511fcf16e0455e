from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.database import get_session
from app.models.match import MatchCategory
from app.models.player import Player, PlayerGender
from app.routes.tournaments import get_tournament_or_404
from app.services.player_service import (
    DuplicatePlayerNameError,
    PlayerValidationError,
    create_player,
    delete_player,
    update_player,
)

router = APIRouter()


class PlayerCreate(BaseModel):
    name: str
    gender: PlayerGender
    categories: List[MatchCategory]
    department: Optional[str] = None
    seeded: bool = False
    partner_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v


class PlayerUpdate(BaseModel):
    name: Optional[str] = None
    gender: Optional[PlayerGender] = None
    categories: Optional[List[MatchCategory]] = None
    department: Optional[str] = None
    seeded: Optional[bool] = None
    group_id: Optional[str] = None
    partner_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("name cannot be blank")
        return v


class PlayerResponse(BaseModel):
    id: int
    tournament_id: int
    name: str
    gender: PlayerGender
    department: Optional[str] = None
    categories: List[MatchCategory]
    partner_id: Optional[int] = None
    group_id: Optional[str] = None
    seeded: bool
    added_at: datetime

    class Config:
        from_attributes = True


def _get_player_or_404(session: Session, tournament_id: int, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if not player or player.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@router.get("/tournaments/{tournament_id}/players", response_model=List[PlayerResponse])
def list_players(tournament_id: int, session: Session = Depends(get_session)):
    """List players in registration order"""
    get_tournament_or_404(session, tournament_id)
    return session.exec(
        select(Player).where(Player.tournament_id == tournament_id).order_by(Player.added_at, Player.id)
    ).all()


@router.post("/tournaments/{tournament_id}/players", response_model=PlayerResponse, status_code=201)
def add_player(tournament_id: int, player_data: PlayerCreate, session: Session = Depends(get_session)):
    """Register a player (optionally linking a doubles partner)"""
    get_tournament_or_404(session, tournament_id)
    try:
        return create_player(
            session,
            tournament_id,
            name=player_data.name,
            gender=player_data.gender,
            categories=player_data.categories,
            department=player_data.department,
            seeded=player_data.seeded,
            partner_id=player_data.partner_id,
        )
    except DuplicatePlayerNameError as e:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except PlayerValidationError as e:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"A player named '{player_data.name}' is already registered")


@router.put("/tournaments/{tournament_id}/players/{player_id}", response_model=PlayerResponse)
def edit_player(
    tournament_id: int, player_id: int, player_data: PlayerUpdate, session: Session = Depends(get_session)
):
    """Update a player. Sending partner_id (including null) re-links the doubles pair."""
    player = _get_player_or_404(session, tournament_id, player_id)
    try:
        return update_player(session, player, player_data.model_dump(exclude_unset=True))
    except DuplicatePlayerNameError as e:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except PlayerValidationError as e:
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/tournaments/{tournament_id}/players/{player_id}", status_code=204)
def remove_player(tournament_id: int, player_id: int, session: Session = Depends(get_session)):
    """Delete a player and clear their partner's link"""
    player = _get_player_or_404(session, tournament_id, player_id)
    delete_player(session, player)
    return None
