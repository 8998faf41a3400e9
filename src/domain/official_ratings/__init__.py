"""Official rating records and divisions."""

from domain.official_ratings.records import (
    Division,
    TournamentResult,
    add_tournament,
    division_for_position,
    recalculate_from_records,
    remove_tournament,
    win_rate,
)

__all__ = [
    "Division",
    "TournamentResult",
    "add_tournament",
    "division_for_position",
    "recalculate_from_records",
    "remove_tournament",
    "win_rate",
]
