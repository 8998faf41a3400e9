"""String enums for tournament, match and bracket state."""

from __future__ import annotations

from enum import Enum


class TournamentType(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    DOUBLE_ELIMINATION = "double_elimination"
    DOUBLE_ELIMINATION_FULL = "double_elimination_full"
    OLYMPIC_DOUBLE_ELIMINATION = "olympic_double_elimination"
    ROUND_ROBIN = "round_robin"
    GROUPS = "groups"
    GROUPS_PLAYOFF = "groups_playoff"
    TEAM_GROUPS_PLAYOFF = "team_groups_playoff"

    @property
    def is_double_elimination(self) -> bool:
        return self in (TournamentType.DOUBLE_ELIMINATION, TournamentType.DOUBLE_ELIMINATION_FULL)

    @property
    def is_olympic(self) -> bool:
        return self is TournamentType.OLYMPIC_DOUBLE_ELIMINATION

    @property
    def has_group_stage(self) -> bool:
        return self in GROUP_TYPES

    @property
    def has_playoff(self) -> bool:
        return self in (TournamentType.GROUPS_PLAYOFF, TournamentType.TEAM_GROUPS_PLAYOFF)


GROUP_TYPES = frozenset(
    {
        TournamentType.GROUPS,
        TournamentType.GROUPS_PLAYOFF,
        TournamentType.TEAM_GROUPS_PLAYOFF,
    }
)
GROUP_CAPABLE_TYPES = GROUP_TYPES | {TournamentType.ROUND_ROBIN}


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TournamentStage(str, Enum):
    REGISTRATION = "registration"
    SEEDING = "seeding"
    GROUP = "group"
    BRACKET = "bracket"
    COMPLETED = "completed"


class PlayerStatus(str, Enum):
    REGISTERED = "registered"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class MatchStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    VERIFICATION = "verification"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchStage(str, Enum):
    BRACKET = "bracket"
    LOWER_BRACKET = "lower_bracket"
    GROUP = "group"
    PLAYOFF = "playoff"
    THIRD_PLACE = "third_place"


class EliminationRound(str, Enum):
    GROUPS = "groups"
    ROUND_128 = "round_128"
    ROUND_64 = "round_64"
    ROUND_32 = "round_32"
    ROUND_16 = "round_16"
    QUARTERFINALS = "quarterfinals"
    SEMIFINALS = "semifinals"
    FINALS = "finals"
    GRAND_FINALS = "grand_finals"
    THIRD_PLACE = "third_place"


class SeedingMethod(str, Enum):
    RANDOM = "random"
    RATING_BASED = "rating_based"
    MANUAL = "manual"


class BracketType(str, Enum):
    SINGLE = "single"
    DOUBLE_UPPER = "double_upper"
    DOUBLE_LOWER = "double_lower"


class BracketSide(str, Enum):
    UPPER = "upper"
    LOWER = "lower"


__all__ = [
    "BracketSide",
    "BracketType",
    "EliminationRound",
    "GROUP_CAPABLE_TYPES",
    "GROUP_TYPES",
    "MatchStage",
    "MatchStatus",
    "PlayerStatus",
    "SeedingMethod",
    "TournamentStage",
    "TournamentStatus",
    "TournamentType",
]
