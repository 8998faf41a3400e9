"""Tournament formats, bracket planning, positions and standings."""

from domain.tournaments.brackets import (
    BracketPlan,
    PlannedBracket,
    PlannedMatch,
    RacesTo,
    SeededPlayer,
    plan_double_elimination,
    plan_olympic_double_elimination,
    plan_round_robin,
    plan_single_elimination,
)
from domain.tournaments.enums import (
    BracketType,
    EliminationRound,
    MatchStage,
    MatchStatus,
    PlayerStatus,
    SeedingMethod,
    TournamentStage,
    TournamentStatus,
    TournamentType,
)

__all__ = [
    "BracketPlan",
    "BracketType",
    "EliminationRound",
    "MatchStage",
    "MatchStatus",
    "PlannedBracket",
    "PlannedMatch",
    "PlayerStatus",
    "RacesTo",
    "SeededPlayer",
    "SeedingMethod",
    "TournamentStage",
    "TournamentStatus",
    "TournamentType",
    "plan_double_elimination",
    "plan_olympic_double_elimination",
    "plan_round_robin",
    "plan_single_elimination",
]
