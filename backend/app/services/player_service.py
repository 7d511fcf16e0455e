"""
Player registration rules.

- names are unique per tournament after trimming, lower-casing and collapsing spaces
- each category must be open to the player's gender (XD is open to both)
- doubles partners are linked on both sides; re-pointing or deleting a player
  clears the back-link of the previous partner
"""
import logging
import re
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from app.models.match import MatchCategory
from app.models.player import Player, PlayerGender
from app.services.draw_rules import compatible_doubles_categories, is_category_allowed_for_gender

logger = logging.getLogger(__name__)


class PlayerValidationError(Exception):
    """Raised when a player change breaks a registration rule"""

    pass


class DuplicatePlayerNameError(PlayerValidationError):
    pass


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip()).lower()


def validate_categories(gender: PlayerGender, categories: Sequence[MatchCategory]) -> List[str]:
    """Return the categories as plain values (deduped, order kept) or raise."""
    values: List[str] = []
    for category in categories:
        category = MatchCategory(category)
        if not is_category_allowed_for_gender(category, PlayerGender(gender)):
            raise PlayerValidationError(f"Category {category.value} is not open to gender {PlayerGender(gender).value}")
        if category.value not in values:
            values.append(category.value)
    return values


def ensure_unique_name(session: Session, tournament_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    target = normalize_name(name)
    players = session.exec(select(Player).where(Player.tournament_id == tournament_id)).all()
    for player in players:
        if player.id != exclude_id and normalize_name(player.name) == target:
            raise DuplicatePlayerNameError(f"A player named '{player.name}' is already registered")


def validate_partner(session: Session, player: Player, partner_id: int) -> Player:
    """Check a prospective partner link and return the partner."""
    if player.id is not None and partner_id == player.id:
        raise PlayerValidationError("A player cannot partner themselves")

    partner = session.get(Player, partner_id)
    if partner is None or partner.tournament_id != player.tournament_id:
        raise PlayerValidationError(f"Partner {partner_id} not found in this tournament")
    if partner.partner_id is not None and partner.partner_id != player.id:
        raise PlayerValidationError(f"{partner.name} is already partnered with someone else")

    shared = compatible_doubles_categories(
        PlayerGender(player.gender),
        PlayerGender(partner.gender),
        [MatchCategory(c) for c in player.categories or []],
        [MatchCategory(c) for c in partner.categories or []],
    )
    if not shared:
        raise PlayerValidationError(f"{player.name} and {partner.name} share no doubles category they can play together")
    return partner


def set_partner(session: Session, player: Player, partner_id: Optional[int]) -> None:
    """Link (or unlink with None) a player's partner on both sides. Caller commits."""
    partner = validate_partner(session, player, partner_id) if partner_id is not None else None

    if player.partner_id is not None and player.partner_id != partner_id:
        previous = session.get(Player, player.partner_id)
        if previous is not None and previous.partner_id == player.id:
            previous.partner_id = None
            session.add(previous)

    player.partner_id = partner_id
    session.add(player)
    if partner is not None:
        partner.partner_id = player.id
        session.add(partner)


def create_player(
    session: Session,
    tournament_id: int,
    name: str,
    gender: PlayerGender,
    categories: Sequence[MatchCategory],
    department: Optional[str] = None,
    seeded: bool = False,
    partner_id: Optional[int] = None,
) -> Player:
    ensure_unique_name(session, tournament_id, name)
    player = Player(
        tournament_id=tournament_id,
        name=name.strip(),
        gender=PlayerGender(gender).value,
        department=department,
        categories=validate_categories(gender, categories),
        seeded=seeded,
    )
    session.add(player)
    session.flush()

    if partner_id is not None:
        set_partner(session, player, partner_id)

    session.commit()
    session.refresh(player)
    logger.info("Registered player %d (%s) in tournament %d", player.id, player.name, tournament_id)
    return player


def update_player(session: Session, player: Player, changes: dict) -> Player:
    """Apply a partial update. partner_id in changes (even None) re-links the pair."""
    if "name" in changes and changes["name"] is not None:
        ensure_unique_name(session, player.tournament_id, changes["name"], exclude_id=player.id)
        player.name = changes["name"].strip()

    gender = PlayerGender(changes.get("gender") or player.gender)
    categories = changes.get("categories")
    if categories is None:
        categories = player.categories or []
    player.categories = validate_categories(gender, categories)
    player.gender = gender.value

    for field in ("department", "seeded", "group_id"):
        if field in changes:
            setattr(player, field, changes[field])

    if "partner_id" in changes:
        set_partner(session, player, changes["partner_id"])
    elif player.partner_id is not None:
        # Gender/category edits must keep the existing pair valid
        validate_partner(session, player, player.partner_id)

    session.add(player)
    session.commit()
    session.refresh(player)
    return player


def delete_player(session: Session, player: Player) -> None:
    player_id, tournament_id = player.id, player.tournament_id
    if player.partner_id is not None:
        partner = session.get(Player, player.partner_id)
        if partner is not None and partner.partner_id == player.id:
            partner.partner_id = None
            session.add(partner)
        player.partner_id = None
        session.add(player)
        session.flush()

    session.delete(player)
    session.commit()
    logger.info("Deleted player %d from tournament %d", player_id, tournament_id)
