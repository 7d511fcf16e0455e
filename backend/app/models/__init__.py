from app.models.match import Match, MatchCategory, MatchRound, MatchStatus
from app.models.player import Player, PlayerGender
from app.models.tournament import Tournament, TournamentStatus

__all__ = [
    "Tournament",
    "TournamentStatus",
    "Player",
    "PlayerGender",
    "Match",
    "MatchCategory",
    "MatchRound",
    "MatchStatus",
]
