"""
Tournament lifecycle helpers: slug and venue PIN generation, forward-only status
updates and full removal of a tournament's data.
"""
import logging
import random
import re
from typing import Optional

from sqlmodel import Session, select

from app.models.player import Player
from app.models.tournament import TOURNAMENT_STATUS_ORDER, Tournament, TournamentStatus
from app.services.fixture_service import delete_all_matches
from app.utils.tournament_locks import forget, tournament_lock

logger = logging.getLogger(__name__)


class TournamentStatusError(Exception):
    """Raised on an attempt to move a tournament's status backwards"""

    pass


def slugify(name: str) -> str:
    """lowercase, drop anything but [a-z0-9 space -], spaces to '-', collapse dashes"""
    slug = name.strip().lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-") or "tournament"


def unique_slug(session: Session, name: str, exclude_id: Optional[int] = None) -> str:
    """slugify(name), suffixed -2, -3, ... until no other tournament uses it."""
    base = slugify(name)
    candidate = base
    suffix = 2
    while True:
        existing = session.exec(select(Tournament).where(Tournament.slug == candidate)).first()
        if existing is None or existing.id == exclude_id:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def random_venue_pin() -> str:
    return f"{random.randint(0, 9999):04d}"


def set_tournament_status(session: Session, tournament: Tournament, target: TournamentStatus) -> Tournament:
    """Explicit status update. Same status is a no-op; moving backwards is refused."""
    target = TournamentStatus(target)
    current = TournamentStatus(tournament.status)
    if TOURNAMENT_STATUS_ORDER.index(target) < TOURNAMENT_STATUS_ORDER.index(current):
        raise TournamentStatusError(f"Cannot move tournament from {current.value} back to {target.value}")
    if target != current:
        tournament.status = target.value
        session.add(tournament)
        session.commit()
        session.refresh(tournament)
        logger.info("Tournament %d status %s -> %s", tournament.id, current.value, target.value)
    return tournament


def delete_tournament_cascade(session: Session, tournament: Tournament) -> None:
    """Delete matches (batched), then players (partner links first), then the tournament."""
    tournament_id = tournament.id
    with tournament_lock(tournament_id):
        delete_all_matches(session, tournament_id)

        players = session.exec(select(Player).where(Player.tournament_id == tournament_id)).all()
        for player in players:
            player.partner_id = None
            session.add(player)
        session.flush()
        for player in players:
            session.delete(player)
        session.flush()

        session.delete(tournament)
        session.commit()
    forget(tournament_id)
    logger.info("Deleted tournament %d", tournament_id)
