"""ORM models."""

from models.base import Base
from models.core import Club, Game, User
from models.leagues import League, MatchGame, Rating
from models.multiplayer import MultiplayerGame, MultiplayerGameLog, MultiplayerGamePlayer
from models.official_ratings import OfficialRating, OfficialRatingPlayer, OfficialRatingTournament
from models.tournaments import (
    Tournament,
    TournamentBracket,
    TournamentGroup,
    TournamentMatch,
    TournamentPlayer,
)

__all__ = [
    "Base",
    "Club",
    "Game",
    "League",
    "MatchGame",
    "MultiplayerGame",
    "MultiplayerGameLog",
    "MultiplayerGamePlayer",
    "OfficialRating",
    "OfficialRatingPlayer",
    "OfficialRatingTournament",
    "Rating",
    "Tournament",
    "TournamentBracket",
    "TournamentGroup",
    "TournamentMatch",
    "TournamentPlayer",
    "User",
]
