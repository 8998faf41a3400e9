"""League rating rules, standings and presets."""

from domain.leagues.rating_rules import (
    EloRatingStrategy,
    KillerPoolRatingStrategy,
    RatedPlayer,
    RatingRule,
    RatingType,
    strategy_for,
)
from domain.leagues.standings import CompletedMatch, LeagueStandingEntry, rank_entries

__all__ = [
    "CompletedMatch",
    "EloRatingStrategy",
    "KillerPoolRatingStrategy",
    "LeagueStandingEntry",
    "RatedPlayer",
    "RatingRule",
    "RatingType",
    "rank_entries",
    "strategy_for",
]
