"""
Draw Rules - Single Source of Truth

Constants shared by fixture generation, seeding, bracket wiring and live scoring.
All other modules must import from here. Do NOT duplicate these rules elsewhere.
"""

from typing import Dict, FrozenSet, List, Tuple

from app.models.match import MatchCategory, MatchRound
from app.models.player import PlayerGender

# =============================================================================
# Slots
# =============================================================================

# Display name (and legacy id) of an open player slot
TBD = "TBD"

# =============================================================================
# Group Stage
# =============================================================================

DEFAULT_GROUP_SIZE = 4
MIN_GROUP_SIZE = 2

# Participation scheme: a played match is worth something even when lost
POINTS_FOR_WIN = 2
POINTS_FOR_LOSS = 1

# =============================================================================
# Knockout
# =============================================================================

ALLOWED_KNOCKOUT_SIZES: Tuple[int, ...] = (4, 8, 16)

MIN_QUALIFIERS = 2

# Canonical single-elimination seed order (1-based seeds, bracket slot order).
# Seeds 1 and 2 sit in opposite halves so they can only meet in the final.
SEED_ORDER: Dict[int, List[int]] = {
    4: [1, 4, 2, 3],
    8: [1, 8, 4, 5, 3, 6, 2, 7],
    16: [1, 16, 8, 9, 5, 12, 4, 13, 3, 14, 6, 11, 7, 10, 2, 15],
}

# Rounds played for each bracket size, earliest first
BRACKET_ROUNDS: Dict[int, List[MatchRound]] = {
    16: [MatchRound.R16, MatchRound.QF, MatchRound.SF, MatchRound.F],
    8: [MatchRound.QF, MatchRound.SF, MatchRound.F],
    4: [MatchRound.SF, MatchRound.F],
}

# =============================================================================
# Scoring
# =============================================================================

ALLOWED_BEST_OF: FrozenSet[int] = frozenset({1, 3})
ALLOWED_POINTS_PER_GAME: FrozenSet[int] = frozenset({11, 15, 21})

DEFAULT_CLEAR_BY = 2

# Most recent point actions kept for undo
UNDO_HISTORY_LIMIT = 5

# =============================================================================
# Store
# =============================================================================

# Max records per batched delete
BATCH_LIMIT = 500

# =============================================================================
# Categories
# =============================================================================

DOUBLES_CATEGORIES: FrozenSet[MatchCategory] = frozenset({MatchCategory.MD, MatchCategory.WD, MatchCategory.XD})


def default_max_points(points_per_game: int) -> int:
    """Hard cap for a deuce game: 30 for 21-point games, otherwise points_per_game + 9."""
    if points_per_game == 21:
        return 30
    return points_per_game + 9


def is_doubles_category(category: MatchCategory) -> bool:
    return MatchCategory(category) in DOUBLES_CATEGORIES


def is_category_allowed_for_gender(category: MatchCategory, gender: PlayerGender) -> bool:
    """XD is open to everyone; MS/MD are men's categories, WS/WD women's."""
    if category == MatchCategory.XD:
        return True
    if gender == PlayerGender.M:
        return category in (MatchCategory.MS, MatchCategory.MD)
    return category in (MatchCategory.WS, MatchCategory.WD)


def compatible_doubles_categories(
    gender: PlayerGender,
    partner_gender: PlayerGender,
    categories: List[MatchCategory],
    partner_categories: List[MatchCategory],
) -> List[MatchCategory]:
    """
    Doubles categories both players entered in which they may pair up.

    Rules:
    - MD: both players M
    - WD: both players F
    - XD: one M and one F
    """
    compatible: List[MatchCategory] = []
    for category in categories:
        if not is_doubles_category(category) or category not in partner_categories:
            continue
        if category == MatchCategory.MD and gender == PlayerGender.M and partner_gender == PlayerGender.M:
            compatible.append(category)
        elif category == MatchCategory.WD and gender == PlayerGender.F and partner_gender == PlayerGender.F:
            compatible.append(category)
        elif category == MatchCategory.XD and gender != partner_gender:
            compatible.append(category)
    return compatible
