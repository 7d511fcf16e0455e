"""
Fixture generation against the store.

Applies the pure generators (group_schedule, qualifier_selector, knockout_seeding,
bracket_generator) to a tournament's roster and matches:
  - each category is written in its own transaction; a failing category is rolled
    back, logged and reported under "failed" while the others still land
  - a category without enough entrants is skipped with a named reason
  - the whole operation fails only if no matches were created tournament-wide
  - tournament status moves forward as a side effect of a successful run
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.match import KNOCKOUT_ROUNDS, Match, MatchCategory, MatchRound
from app.models.player import Player
from app.models.tournament import TOURNAMENT_STATUS_ORDER, Tournament, TournamentStatus
from app.services.bracket_generator import BracketPlan, generate_knockout_bracket
from app.services.draw_rules import BATCH_LIMIT, MIN_GROUP_SIZE, MIN_QUALIFIERS
from app.services.fixture_types import CreateMatch, SchedulePlayer
from app.services.group_schedule import (
    chunk_into_groups,
    generate_group_matches,
    group_id_for,
    group_size_for_count,
    playable_group_size,
)
from app.services.knockout_seeding import seed_knockout
from app.services.qualifier_selector import select_qualifier_tiers
from app.utils.tournament_locks import tournament_lock

logger = logging.getLogger(__name__)


class FixtureGenerationError(Exception):
    """Raised when a generation run produced no matches at all"""

    def __init__(self, message: str, skipped: Optional[Dict[str, str]] = None, failed: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.skipped = skipped or {}
        self.failed = failed or {}


@dataclass
class FixtureGenerationResult:
    stage: str  # "group" | "knockout"
    created: Dict[str, int] = field(default_factory=dict)  # category -> matches created
    skipped: Dict[str, str] = field(default_factory=dict)  # category -> reason
    failed: Dict[str, str] = field(default_factory=dict)  # category -> error
    tournament_status: str = TournamentStatus.draft.value

    @property
    def total_matches_created(self) -> int:
        return sum(self.created.values())

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["total_matches_created"] = self.total_matches_created
        return data


# ============================================================================
# Store reads
# ============================================================================


def load_roster(session: Session, tournament_id: int, category: Optional[MatchCategory] = None) -> List[Player]:
    """Players of a tournament in registration order, optionally limited to one category."""
    players = session.exec(
        select(Player).where(Player.tournament_id == tournament_id).order_by(Player.added_at, Player.id)
    ).all()
    if category is None:
        return list(players)
    return [p for p in players if category in (p.categories or [])]


def load_matches(
    session: Session,
    tournament_id: int,
    category: Optional[MatchCategory] = None,
    round: Optional[MatchRound] = None,
    group_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Match]:
    query = select(Match).where(Match.tournament_id == tournament_id)
    if category is not None:
        query = query.where(Match.category == MatchCategory(category).value)
    if round is not None:
        query = query.where(Match.round == MatchRound(round).value)
    if group_id is not None:
        query = query.where(Match.group_id == group_id)
    if status is not None:
        query = query.where(Match.status == status)
    return list(session.exec(query.order_by(Match.id)).all())


# ============================================================================
# Store writes
# ============================================================================


def batch_delete_matches(session: Session, matches: Sequence[Match]) -> int:
    """
    Delete matches in chunks of at most BATCH_LIMIT rows, one commit per chunk.

    Forward links are cleared and flushed first so no chunk trips the
    next_match_id foreign key (child→parent order does not exist inside a bracket).
    """
    rows = list(matches)
    if not rows:
        return 0

    for row in rows:
        if row.next_match_id is not None:
            row.next_match_id = None
            session.add(row)
    session.flush()

    for start in range(0, len(rows), BATCH_LIMIT):
        for row in rows[start : start + BATCH_LIMIT]:
            session.delete(row)
        session.commit()

    return len(rows)


def delete_all_matches(session: Session, tournament_id: int) -> int:
    rows = session.exec(select(Match).where(Match.tournament_id == tournament_id)).all()
    deleted = batch_delete_matches(session, rows)
    logger.info("Deleted %d matches for tournament %d", deleted, tournament_id)
    return deleted


def delete_knockout_matches(session: Session, tournament_id: int, category: Optional[MatchCategory] = None) -> int:
    query = select(Match).where(
        Match.tournament_id == tournament_id,
        Match.round.in_([r.value for r in KNOCKOUT_ROUNDS]),
    )
    if category is not None:
        query = query.where(Match.category == MatchCategory(category).value)
    deleted = batch_delete_matches(session, session.exec(query).all())
    logger.info("Deleted %d knockout matches for tournament %d", deleted, tournament_id)
    return deleted


def to_match(tournament_id: int, create: CreateMatch) -> Match:
    return Match(
        tournament_id=tournament_id,
        category=MatchCategory(create.category).value,
        round=MatchRound(create.round).value,
        group_id=create.group_id,
        bracket_position=create.bracket_position,
        status=create.status.value if hasattr(create.status, "value") else create.status,
        player1_id=create.player1_id,
        player1_name=create.player1_name,
        player2_id=create.player2_id,
        player2_name=create.player2_name,
        scores=list(create.scores),
        score_history=[],
    )


def persist_matches(session: Session, tournament_id: int, creates: Iterable[CreateMatch]) -> List[Match]:
    """Add matches and flush so ids are assigned. Caller commits."""
    rows = [to_match(tournament_id, create) for create in creates]
    for row in rows:
        session.add(row)
    session.flush()
    return rows


def persist_bracket(session: Session, tournament_id: int, plan: BracketPlan) -> List[List[Match]]:
    """
    Persist a bracket plan round by round (earliest first), then write next_match_id
    links once every round has ids. Caller commits.
    """
    rounds: List[List[Match]] = []
    for round_creates in plan.matches:
        rounds.append(persist_matches(session, tournament_id, round_creates))

    for (round_index, match_index), (next_round_index, next_index) in plan.links():
        row = rounds[round_index][match_index]
        row.next_match_id = rounds[next_round_index][next_index].id
        session.add(row)
    session.flush()
    return rounds


def advance_tournament_status(tournament: Tournament, target: TournamentStatus) -> bool:
    """Move status forward to target. Never moves backwards. Returns True if changed."""
    current = TournamentStatus(tournament.status)
    if TOURNAMENT_STATUS_ORDER.index(target) <= TOURNAMENT_STATUS_ORDER.index(current):
        return False
    tournament.status = target.value
    return True


def _categories_for(tournament: Tournament, categories: Optional[Sequence[MatchCategory]]) -> List[MatchCategory]:
    chosen = categories if categories else tournament.categories
    return [MatchCategory(c) for c in chosen]


# ============================================================================
# Group stage
# ============================================================================


def generate_group_fixtures(
    session: Session,
    tournament: Tournament,
    group_size: Optional[int] = None,
    categories: Optional[Sequence[MatchCategory]] = None,
    wipe_existing: bool = False,
) -> FixtureGenerationResult:
    """
    Generate round-robin group fixtures for each category.

    Group size defaults to spreading each category's roster over tournament.group_count
    groups. A category that already has matches is skipped unless wipe_existing, which
    deletes all of that category's matches first (knockout included, it depends on the groups).
    """
    result = FixtureGenerationResult(stage="group")

    with tournament_lock(tournament.id):
        for category in _categories_for(tournament, categories):
            existing = load_matches(session, tournament.id, category=category)
            if existing:
                if not wipe_existing:
                    result.skipped[category.value] = "fixtures already generated"
                    continue
                batch_delete_matches(session, existing)
                logger.info("Wiped %d %s matches before regenerating groups", len(existing), category.value)

            roster = load_roster(session, tournament.id, category)
            if len(roster) < MIN_GROUP_SIZE:
                reason = f"needs at least {MIN_GROUP_SIZE} players, has {len(roster)}"
                logger.warning("Skipping group fixtures for %s: %s", category.value, reason)
                result.skipped[category.value] = reason
                continue

            requested = group_size if group_size is not None else group_size_for_count(len(roster), tournament.group_count)
            size = playable_group_size(len(roster), requested)
            if size != requested:
                logger.warning(
                    "Group size %d would leave one %s player without opponents, using %d",
                    requested,
                    category.value,
                    size,
                )
            schedule_players = [SchedulePlayer(id=p.id, name=p.name) for p in roster]
            creates = generate_group_matches(schedule_players, category, size)

            try:
                persist_matches(session, tournament.id, creates)
                _assign_player_groups(session, roster, category, size)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Failed writing group fixtures for %s: %s", category.value, exc)
                result.failed[category.value] = str(exc)
                continue

            result.created[category.value] = len(creates)

        _finish(session, tournament, result, TournamentStatus.group_stage)

    logger.info(
        "Group fixtures for tournament %d: created=%s skipped=%s failed=%s",
        tournament.id,
        result.created,
        result.skipped,
        result.failed,
    )
    return result


def _assign_player_groups(session: Session, roster: Sequence[Player], category: MatchCategory, size: int) -> None:
    for group_index, group in enumerate(chunk_into_groups(roster, size)):
        for player in group:
            player.group_id = group_id_for(category, group_index)
            session.add(player)


# ============================================================================
# Knockout stage
# ============================================================================


def generate_knockout_fixtures(
    session: Session,
    tournament: Tournament,
    categories: Optional[Sequence[MatchCategory]] = None,
    wipe_existing: bool = True,
) -> FixtureGenerationResult:
    """
    Select qualifiers, seed and build the knockout bracket for each category.

    With wipe_existing the category's previous knockout matches are deleted first
    (delete-all-and-retry is the regeneration strategy); without it a category that
    already has a bracket is skipped.
    """
    result = FixtureGenerationResult(stage="knockout")

    with tournament_lock(tournament.id):
        for category in _categories_for(tournament, categories):
            matches = load_matches(session, tournament.id, category=category)
            if any(m.round != MatchRound.group for m in matches):
                if not wipe_existing:
                    result.skipped[category.value] = "knockout bracket already generated"
                    continue
                delete_knockout_matches(session, tournament.id, category)
                matches = load_matches(session, tournament.id, category=category, round=MatchRound.group)

            roster = load_roster(session, tournament.id, category)
            selection = select_qualifier_tiers(roster, matches, category, tournament.knockout_size)
            if len(selection.qualifiers) < MIN_QUALIFIERS:
                reason = f"needs at least {MIN_QUALIFIERS} qualifiers, has {len(selection.qualifiers)}"
                logger.warning("Skipping knockout for %s: %s", category.value, reason)
                result.skipped[category.value] = reason
                continue

            plan = generate_knockout_bracket(seed_knockout(selection.qualifiers, tournament.knockout_size), category)

            try:
                persist_bracket(session, tournament.id, plan)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Failed writing knockout bracket for %s: %s", category.value, exc)
                result.failed[category.value] = str(exc)
                continue

            result.created[category.value] = plan.match_count

        _finish(session, tournament, result, TournamentStatus.knockout)

    logger.info(
        "Knockout fixtures for tournament %d: created=%s skipped=%s failed=%s",
        tournament.id,
        result.created,
        result.skipped,
        result.failed,
    )
    return result


def _finish(
    session: Session, tournament: Tournament, result: FixtureGenerationResult, target: TournamentStatus
) -> None:
    if result.total_matches_created == 0:
        details = "; ".join(f"{c}: {r}" for c, r in {**result.skipped, **result.failed}.items())
        raise FixtureGenerationError(
            f"No {result.stage} matches were created" + (f" ({details})" if details else ""),
            skipped=result.skipped,
            failed=result.failed,
        )

    if advance_tournament_status(tournament, target):
        session.add(tournament)
        session.commit()
        session.refresh(tournament)
    result.tournament_status = TournamentStatus(tournament.status).value
