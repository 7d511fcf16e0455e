"""
Knockout seeding.

Places an ordered qualifier list (best first) into bracket slots using the canonical
single-elimination seed order, so the top two seeds can only meet in the final.
"""

from typing import List, Optional, Sequence, TypeVar

from app.services.draw_rules import ALLOWED_KNOCKOUT_SIZES, SEED_ORDER

T = TypeVar("T")


def bracket_size_for(qualifier_count: int, knockout_size: int = 16) -> int:
    """
    Smallest allowed bracket (4, 8, 16) that holds qualifier_count entrants,
    capped at the tournament's configured knockout_size.
    """
    cap = knockout_size if knockout_size in ALLOWED_KNOCKOUT_SIZES else max(ALLOWED_KNOCKOUT_SIZES)
    for size in ALLOWED_KNOCKOUT_SIZES:
        if size > cap:
            break
        if qualifier_count <= size:
            return size
    return cap


def bracket_seed_order(size: int) -> List[int]:
    if size not in SEED_ORDER:
        raise ValueError(f"Unsupported bracket size: {size}")
    return list(SEED_ORDER[size])


def seed_knockout(qualifiers: Sequence[T], knockout_size: int = 16) -> List[Optional[T]]:
    """
    Arrange qualifiers into bracket slot order.

    Slot k holds seed SEED_ORDER[size][k]; seeds beyond the qualifier count are None
    (byes / TBD opponents). Qualifiers beyond the bracket size are dropped.
    """
    size = bracket_size_for(len(qualifiers), knockout_size)
    return [qualifiers[seed - 1] if seed <= len(qualifiers) else None for seed in bracket_seed_order(size)]
