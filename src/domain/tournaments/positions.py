"""Final-position awards produced when a bracket match completes."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from domain.tournaments.brackets import (
    DEFAULT_OLYMPIC_PHASE_SIZE,
    next_power_of_two,
    olympic_lower_target_round,
    lower_bracket_structure,
)
from domain.tournaments.enums import EliminationRound, MatchStage, TournamentType

SINGLE_ELIMINATION_LOSER_POSITIONS: dict[EliminationRound, int] = {
    EliminationRound.FINALS: 2,
    EliminationRound.SEMIFINALS: 3,
    EliminationRound.QUARTERFINALS: 5,
    EliminationRound.ROUND_16: 9,
    EliminationRound.ROUND_32: 17,
    EliminationRound.ROUND_64: 33,
    EliminationRound.ROUND_128: 65,
}

LOWER_BRACKET_LOSER_POSITIONS: dict[int, dict[int, int]] = {
    4: {1: 4, 2: 3},
    8: {1: 7, 2: 6, 3: 5, 4: 3},
    16: {1: 13, 2: 11, 3: 9, 4: 7, 5: 5, 6: 3},
    32: {1: 25, 2: 21, 3: 17, 4: 13, 5: 9, 6: 7, 7: 5, 8: 3},
    64: {1: 49, 2: 41, 3: 33, 4: 25, 5: 17, 6: 13, 7: 9, 8: 7, 9: 5, 10: 3},
    128: {1: 97, 2: 81, 3: 65, 4: 49, 5: 33, 6: 25, 7: 17, 8: 13, 9: 9, 10: 7, 11: 5, 12: 3},
}

_LOWER_ROUND = re.compile(r"LB_R(\d+)M")
_FIRST_STAGE_LOWER_ROUND = re.compile(r"FS_LB_R(\d+)M")
_OLYMPIC_ROUND = re.compile(r"OS_R(\d+)M")


@dataclass(frozen=True)
class MatchOutcome:
    code: str
    stage: MatchStage
    round: EliminationRound | None
    side: str | None
    winner_id: int
    loser_id: int | None
    metadata: Mapping[str, Any] | None = None

    @property
    def is_tiebreaker(self) -> bool:
        return bool((self.metadata or {}).get("is_tiebreaker", False))

    @property
    def olympic_stage(self) -> str | None:
        return (self.metadata or {}).get("olympic_stage")


@dataclass(frozen=True)
class PositionContext:
    tournament_type: TournamentType
    confirmed_players: int
    olympic_phase_size: int | None = None
    olympic_has_third_place: bool = False

    @property
    def phase_size(self) -> int:
        return self.olympic_phase_size or DEFAULT_OLYMPIC_PHASE_SIZE


@dataclass(frozen=True)
class PositionAward:
    user_id: int
    position: int
    elimination_round: EliminationRound | None = None


def positions_for_match(outcome: MatchOutcome, context: PositionContext) -> list[PositionAward]:
    """Positions decided by a completed match; tiebreakers never decide positions."""
    if outcome.is_tiebreaker:
        return []
    if context.tournament_type.is_olympic and outcome.olympic_stage is None:
        # phase size equal to the bracket size collapses to single elimination
        context = replace(context, tournament_type=TournamentType.SINGLE_ELIMINATION)

    special = _special_positions(outcome, context)
    if special is not None:
        return special

    if context.tournament_type.is_olympic:
        return _olympic_positions(outcome, context)

    position = _loser_position(outcome, context)
    if position is None or outcome.loser_id is None:
        return []
    return [PositionAward(outcome.loser_id, position, outcome.round)]


def _pair(outcome: MatchOutcome, winner_position: int, loser_position: int) -> list[PositionAward]:
    awards = [PositionAward(outcome.winner_id, winner_position)]
    if outcome.loser_id is not None:
        awards.append(PositionAward(outcome.loser_id, loser_position))
    return awards


def _special_positions(outcome: MatchOutcome, context: PositionContext) -> list[PositionAward] | None:
    if outcome.code in ("GF", "GF_RESET") or outcome.round is EliminationRound.GRAND_FINALS:
        return _pair(outcome, 1, 2)
    is_third_place = outcome.round is EliminationRound.THIRD_PLACE or outcome.stage is MatchStage.THIRD_PLACE
    if is_third_place and not outcome.code.startswith("OS_"):
        return _pair(outcome, 3, 4)
    if (
        outcome.round is EliminationRound.FINALS
        and outcome.stage is MatchStage.BRACKET
        and not context.tournament_type.is_olympic
        and not context.tournament_type.is_double_elimination
    ):
        return _pair(outcome, 1, 2)
    return None


def _loser_position(outcome: MatchOutcome, context: PositionContext) -> int | None:
    if context.tournament_type.is_double_elimination:
        if outcome.stage is not MatchStage.LOWER_BRACKET and outcome.side != "lower":
            return None
        return lower_bracket_position(outcome.code, outcome.round, context.confirmed_players)
    if context.tournament_type in (
        TournamentType.SINGLE_ELIMINATION,
        TournamentType.GROUPS_PLAYOFF,
        TournamentType.TEAM_GROUPS_PLAYOFF,
    ):
        if outcome.round is None:
            return None
        return SINGLE_ELIMINATION_LOSER_POSITIONS.get(outcome.round)
    return None


def lower_bracket_position(code: str, round_name: EliminationRound | None, confirmed_players: int) -> int | None:
    found = _LOWER_ROUND.search(code)
    if found is None:
        return 3 if round_name is EliminationRound.FINALS else None
    bracket_size = next_power_of_two(confirmed_players)
    return LOWER_BRACKET_LOSER_POSITIONS.get(bracket_size, {}).get(int(found.group(1)))


def _olympic_positions(outcome: MatchOutcome, context: PositionContext) -> list[PositionAward]:
    if outcome.olympic_stage == "second":
        if outcome.round is EliminationRound.FINALS:
            return _pair(outcome, 1, 2)
        if outcome.code == "OS_3RD" or outcome.stage is MatchStage.THIRD_PLACE:
            return _pair(outcome, 3, 4)
        position = olympic_stage_position(outcome.code, context.phase_size, context.olympic_has_third_place)
    else:
        if outcome.side != "lower":
            return []
        position = olympic_first_stage_position(outcome.code, context.phase_size, context.confirmed_players)

    if position is None or outcome.loser_id is None:
        return []
    return [PositionAward(outcome.loser_id, position, outcome.round)]


def olympic_stage_position(code: str, phase_size: int, has_third_place: bool) -> int | None:
    found = _OLYMPIC_ROUND.search(code)
    round_number = int(found.group(1)) if found else 0
    rounds_from_end = int(math.log2(phase_size)) - round_number
    if rounds_from_end == 1 and not (has_third_place and phase_size > 4):
        return 3
    return {2: 5, 3: 9}.get(rounds_from_end)


def olympic_first_stage_position(code: str, phase_size: int, confirmed_players: int) -> int:
    """Spread first-stage lower losers over positions phase+1..players; later rounds rank higher."""
    base = phase_size + 1
    found = _FIRST_STAGE_LOWER_ROUND.search(code)
    if found is None:
        return base
    round_number = int(found.group(1))
    bracket_size = next_power_of_two(confirmed_players)
    lower_rounds = olympic_lower_target_round(lower_bracket_structure(bracket_size), phase_size)
    increment = (confirmed_players - phase_size) // lower_rounds
    position = base + (lower_rounds - round_number) * increment
    return max(base, min(position, confirmed_players))


__all__ = [
    "LOWER_BRACKET_LOSER_POSITIONS",
    "MatchOutcome",
    "PositionAward",
    "PositionContext",
    "SINGLE_ELIMINATION_LOSER_POSITIONS",
    "lower_bracket_position",
    "olympic_first_stage_position",
    "olympic_stage_position",
    "positions_for_match",
]
