"""Pure bracket planning.

Every generator returns a BracketPlan: bracket summary rows plus an ordered
list of PlannedMatch objects linked to each other by match code. Services
materialize a plan into tournament_brackets / tournament_matches rows.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from domain.tournaments.enums import (
    BracketSide,
    BracketType,
    EliminationRound,
    MatchStage,
    MatchStatus,
)

DEFAULT_RACES_TO = 7
DEFAULT_OLYMPIC_PHASE_SIZE = 8
SEED_WALKOVER_NOTE = "Walkover - No opponent"


@dataclass(frozen=True)
class SeededPlayer:
    user_id: int
    seed_number: int


@dataclass(frozen=True)
class RacesTo:
    """Resolves races_to per round key (UB_R1, LB_R2, GF, 3RD, O_R1, O_3RD)."""

    round_races_to: Mapping[str, int] = field(default_factory=dict)
    default: int | None = DEFAULT_RACES_TO

    def for_key(self, key: str) -> int:
        if key in self.round_races_to:
            return int(self.round_races_to[key])
        return int(self.default if self.default is not None else DEFAULT_RACES_TO)

    @property
    def base(self) -> int:
        return int(self.default if self.default is not None else DEFAULT_RACES_TO)


@dataclass
class PlannedMatch:
    code: str
    stage: MatchStage
    round: EliminationRound
    races_to: int
    side: BracketSide | None = None
    position: int | None = None
    player1_id: int | None = None
    player2_id: int | None = None
    winner_id: int | None = None
    player1_score: int = 0
    player2_score: int = 0
    status: MatchStatus = MatchStatus.PENDING
    metadata: dict[str, Any] | None = None
    notes: str | None = None
    next_code: str | None = None
    previous1_code: str | None = None
    previous2_code: str | None = None
    loser_next_code: str | None = None
    loser_next_position: int | None = None

    @property
    def is_walkover(self) -> bool:
        return self.status is MatchStatus.COMPLETED and (self.player1_id is None or self.player2_id is None)

    def refresh_ready(self) -> None:
        if self.player1_id is not None and self.player2_id is not None and self.status is MatchStatus.PENDING:
            self.status = MatchStatus.READY


@dataclass(frozen=True)
class PlannedBracket:
    bracket_type: BracketType
    total_rounds: int
    players_count: int
    metadata: dict[str, Any] | None = None


@dataclass
class BracketPlan:
    brackets: list[PlannedBracket] = field(default_factory=list)
    matches: list[PlannedMatch] = field(default_factory=list)

    def add(self, match: PlannedMatch) -> PlannedMatch:
        if any(existing.code == match.code for existing in self.matches):
            raise ValueError(f"Duplicate match code in plan: {match.code}")
        self.matches.append(match)
        return match

    def by_code(self) -> dict[str, PlannedMatch]:
        return {match.code: match for match in self.matches}


class LowerRoundKind(str, Enum):
    INITIAL = "initial"
    DROP = "drop"
    REGULAR = "regular"
    FINAL_DROP = "final_drop"


@dataclass(frozen=True)
class LowerRound:
    number: int
    matches: int
    kind: LowerRoundKind
    upper_round: int | None = None


SUPPORTED_DOUBLE_SIZES = (4, 8, 16, 32, 64, 128)


def next_power_of_two(n: int) -> int:
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def bracket_indices(size: int) -> list[int]:
    """Order in which seed matchups are placed so top seeds meet as late as possible."""
    fixed = {
        1: [0],
        2: [0, 1],
        4: [0, 3, 1, 2],
        8: [0, 7, 3, 4, 1, 6, 2, 5],
        16: [0, 15, 7, 8, 3, 12, 4, 11, 1, 14, 6, 9, 2, 13, 5, 10],
        32: [
            0, 31, 15, 16, 7, 24, 8, 23, 3, 28, 12, 19, 4, 27, 11, 20,
            1, 30, 14, 17, 6, 25, 9, 22, 2, 29, 13, 18, 5, 26, 10, 21,
        ],
    }
    if size in fixed:
        return list(fixed[size])
    half = size // 2
    first_half = bracket_indices(half)
    result: list[int] = []
    for index in first_half:
        result.append(index)
        result.append(index + half)
    return result


def seed_matchups(bracket_size: int) -> list[tuple[int, int]]:
    """Round-one seed pairs: top half against the reversed bottom half, then arranged."""
    seeds = list(range(1, bracket_size + 1))
    top = seeds[: bracket_size // 2]
    bottom = list(reversed(seeds[bracket_size // 2 :]))
    matchups = list(zip(top, bottom))
    return [matchups[index] for index in bracket_indices(len(matchups))]


def single_round_name(matches_in_round: int) -> EliminationRound:
    return {
        1: EliminationRound.FINALS,
        2: EliminationRound.SEMIFINALS,
        4: EliminationRound.QUARTERFINALS,
        8: EliminationRound.ROUND_16,
        16: EliminationRound.ROUND_32,
        32: EliminationRound.ROUND_64,
    }.get(matches_in_round, EliminationRound.ROUND_128)


def double_round_name(round_number: int, total_rounds: int) -> EliminationRound:
    remaining = total_rounds - round_number + 1
    return {
        1: EliminationRound.FINALS,
        2: EliminationRound.SEMIFINALS,
        3: EliminationRound.QUARTERFINALS,
        4: EliminationRound.ROUND_16,
        5: EliminationRound.ROUND_32,
        6: EliminationRound.ROUND_64,
    }.get(remaining, EliminationRound.ROUND_128)


def lower_round_name(round_number: int, total_rounds: int) -> EliminationRound:
    remaining = total_rounds - round_number + 1
    for limit, name in (
        (2, EliminationRound.FINALS),
        (4, EliminationRound.SEMIFINALS),
        (6, EliminationRound.QUARTERFINALS),
        (8, EliminationRound.ROUND_16),
        (10, EliminationRound.ROUND_32),
    ):
        if remaining <= limit:
            return name
    return EliminationRound.ROUND_64


def lower_bracket_structure(bracket_size: int) -> list[LowerRound]:
    """Lower-bracket rounds for a double-elimination bracket of 4 to 128 players."""
    if bracket_size not in SUPPORTED_DOUBLE_SIZES:
        raise ValueError(f"Unsupported bracket size: {bracket_size}")
    upper_rounds = int(math.log2(bracket_size))
    rounds = [LowerRound(1, bracket_size // 4, LowerRoundKind.INITIAL)]
    for upper_round in range(2, upper_rounds):
        rounds.append(
            LowerRound(len(rounds) + 1, bracket_size // 2**upper_round, LowerRoundKind.DROP, upper_round)
        )
        rounds.append(LowerRound(len(rounds) + 1, bracket_size // 2 ** (upper_round + 1), LowerRoundKind.REGULAR))
    rounds.append(LowerRound(len(rounds) + 1, 1, LowerRoundKind.FINAL_DROP, upper_rounds))
    return rounds


def olympic_lower_target_round(structure: Sequence[LowerRound], phase_size: int) -> int:
    """Last first-stage lower round: where phase_size / 2 survivors remain."""
    advancing = phase_size // 2
    survivors = 0
    for index, lower_round in enumerate(structure):
        if lower_round.kind is LowerRoundKind.INITIAL:
            survivors = lower_round.matches * 2
        else:
            survivors = math.ceil(survivors / 2)
        if survivors != advancing:
            continue

        target = index
        while target < len(structure) - 1 and structure[target].matches > advancing:
            target += 1
        if (
            target + 1 < len(structure)
            and structure[target + 1].kind in (LowerRoundKind.DROP, LowerRoundKind.FINAL_DROP)
            and structure[target].kind is not LowerRoundKind.DROP
        ):
            target += 1
        return structure[target].number
    raise ValueError(f"Cannot calculate lower-bracket rounds for Olympic phase size: {phase_size}")


def _link_next(previous: PlannedMatch, match: PlannedMatch, slot: int) -> None:
    previous.next_code = match.code
    if slot == 1:
        match.previous1_code = previous.code
    else:
        match.previous2_code = previous.code


def _link_loser(source: PlannedMatch, target: PlannedMatch, position: int | None) -> None:
    source.loser_next_code = target.code
    source.loser_next_position = position


def _link_from_previous_round(match_index: int, previous_round: Sequence[PlannedMatch], match: PlannedMatch) -> None:
    for slot, previous_index in ((1, match_index * 2), (2, match_index * 2 + 1)):
        if previous_index < len(previous_round):
            _link_next(previous_round[previous_index], match, slot)


def _seat_round_one(match: PlannedMatch, match_index: int, bracket_size: int, seeded: Mapping[int, int]) -> None:
    first_seed, second_seed = seed_matchups(bracket_size)[match_index]
    match.player1_id = seeded.get(first_seed)
    match.player2_id = seeded.get(second_seed)
    if match.player1_id is not None and match.player2_id is None:
        _complete_walkover(match, match.player1_id, first_slot=True)
    elif match.player1_id is None and match.player2_id is not None:
        _complete_walkover(match, match.player2_id, first_slot=False)
    elif match.player1_id is not None and match.player2_id is not None:
        match.status = MatchStatus.READY


def _complete_walkover(match: PlannedMatch, winner_id: int, *, first_slot: bool) -> None:
    match.winner_id = winner_id
    match.status = MatchStatus.COMPLETED
    match.player1_score = match.races_to if first_slot else 0
    match.player2_score = 0 if first_slot else match.races_to
    match.notes = SEED_WALKOVER_NOTE


def _seeded_map(players: Sequence[SeededPlayer]) -> dict[int, int]:
    return {player.seed_number: player.user_id for player in players}


def _add_elimination_rounds(
    plan: BracketPlan,
    *,
    bracket_size: int,
    rounds: int,
    seeded: Mapping[int, int] | None,
    code: Callable[[int, int], str],
    races_to: Callable[[int], int],
    round_name: Callable[[int, int], EliminationRound],
    metadata: dict[str, Any] | None = None,
) -> dict[int, list[PlannedMatch]]:
    """Add upper-side rounds; round one is seated from seeds when given."""
    by_round: dict[int, list[PlannedMatch]] = {}
    previous_round: list[PlannedMatch] = []
    for round_number in range(1, rounds + 1):
        matches_in_round = bracket_size // 2**round_number
        current_round: list[PlannedMatch] = []
        for match_index in range(matches_in_round):
            match = plan.add(
                PlannedMatch(
                    code=code(round_number, match_index + 1),
                    stage=MatchStage.BRACKET,
                    round=round_name(round_number, matches_in_round),
                    races_to=races_to(round_number),
                    side=BracketSide.UPPER,
                    position=match_index,
                    metadata=dict(metadata) if metadata else None,
                )
            )
            if round_number == 1 and seeded is not None:
                _seat_round_one(match, match_index, bracket_size, seeded)
            elif round_number > 1:
                _link_from_previous_round(match_index, previous_round, match)
            current_round.append(match)
        by_round[round_number] = current_round
        previous_round = current_round
    return by_round


def _add_lower_rounds(
    plan: BracketPlan,
    *,
    structure: Sequence[LowerRound],
    upper: Mapping[int, Sequence[PlannedMatch]],
    last_round: int,
    code_prefix: str,
    races: RacesTo,
    metadata: dict[str, Any] | None = None,
) -> dict[int, list[PlannedMatch]]:
    lower: dict[int, list[PlannedMatch]] = {}
    for lower_round in structure:
        if lower_round.number > last_round:
            break
        previous = lower.get(lower_round.number - 1, [])
        current: list[PlannedMatch] = []
        for match_index in range(lower_round.matches):
            match = plan.add(
                PlannedMatch(
                    code=f"{code_prefix}LB_R{lower_round.number}M{match_index + 1}",
                    stage=MatchStage.LOWER_BRACKET,
                    round=lower_round_name(lower_round.number, last_round),
                    races_to=races.for_key(f"LB_R{lower_round.number}"),
                    side=BracketSide.LOWER,
                    position=match_index,
                    metadata=dict(metadata) if metadata else None,
                )
            )
            if lower_round.kind is LowerRoundKind.INITIAL:
                first_round = upper.get(1, [])
                for position, upper_index in ((1, match_index * 2), (2, match_index * 2 + 1)):
                    if upper_index < len(first_round):
                        _link_loser(first_round[upper_index], match, position)
            elif lower_round.kind is LowerRoundKind.DROP:
                if match_index < len(previous):
                    _link_next(previous[match_index], match, 1)
                dropping = upper.get(lower_round.upper_round or 0, [])
                if match_index < len(dropping):
                    _link_loser(dropping[match_index], match, 2)
            elif lower_round.kind is LowerRoundKind.FINAL_DROP:
                if previous:
                    _link_next(previous[0], match, 1)
                dropping = upper.get(lower_round.upper_round or 0, [])
                if dropping:
                    _link_loser(dropping[0], match, 2)
            else:
                _link_from_previous_round(match_index, previous, match)
            current.append(match)
        lower[lower_round.number] = current
    return lower


def _add_third_place(
    plan: BracketPlan,
    *,
    code: str,
    races_to: int,
    semifinals: Sequence[PlannedMatch],
    metadata: dict[str, Any] | None = None,
) -> PlannedMatch:
    third_place = plan.add(
        PlannedMatch(
            code=code,
            stage=MatchStage.THIRD_PLACE,
            round=EliminationRound.THIRD_PLACE,
            races_to=races_to,
            metadata=dict(metadata) if metadata else None,
        )
    )
    for semifinal in semifinals:
        _link_loser(semifinal, third_place, None)
    return third_place


def _place(target: PlannedMatch, user_id: int, position: int | None) -> None:
    if position == 1:
        target.player1_id = user_id
    elif position == 2:
        target.player2_id = user_id
    elif target.player1_id is None:
        target.player1_id = user_id
    else:
        target.player2_id = user_id
    target.refresh_ready()


def _advance_walkovers(plan: BracketPlan) -> None:
    """Move round-one walkover winners forward inside the plan."""
    by_code = plan.by_code()
    for match in plan.matches:
        if not match.is_walkover or match.winner_id is None:
            continue
        metadata = match.metadata or {}
        if metadata.get("advances_to_olympic"):
            target = by_code.get(f"OS_R1M{int(metadata['olympic_position']) // 2 + 1}")
            if target is not None:
                _place(target, match.winner_id, None)
            continue
        if match.next_code is None:
            continue
        target = by_code[match.next_code]
        _place(target, match.winner_id, 1 if target.previous1_code == match.code else 2)


def plan_single_elimination(
    players: Sequence[SeededPlayer],
    races: RacesTo,
    *,
    third_place: bool = False,
) -> BracketPlan:
    bracket_size = next_power_of_two(len(players))
    rounds = int(math.log2(bracket_size))
    plan = BracketPlan(brackets=[PlannedBracket(BracketType.SINGLE, rounds, bracket_size)])

    by_round = _add_elimination_rounds(
        plan,
        bracket_size=bracket_size,
        rounds=rounds,
        seeded=_seeded_map(players),
        code=lambda r, m: f"R{r}M{m}",
        races_to=lambda r: races.for_key(f"UB_R{r}"),
        round_name=lambda r, matches: single_round_name(matches),
    )
    if third_place and rounds >= 2:
        _add_third_place(plan, code="3RD", races_to=races.for_key("3RD"), semifinals=by_round[rounds - 1])

    _advance_walkovers(plan)
    return plan


def plan_double_elimination(players: Sequence[SeededPlayer], races: RacesTo) -> BracketPlan:
    bracket_size = next_power_of_two(len(players))
    structure = lower_bracket_structure(bracket_size)
    upper_rounds = int(math.log2(bracket_size))
    plan = BracketPlan(
        brackets=[
            PlannedBracket(BracketType.DOUBLE_UPPER, upper_rounds, bracket_size),
            PlannedBracket(BracketType.DOUBLE_LOWER, (upper_rounds - 1) * 2, bracket_size - 1),
        ]
    )

    upper = _add_elimination_rounds(
        plan,
        bracket_size=bracket_size,
        rounds=upper_rounds,
        seeded=_seeded_map(players),
        code=lambda r, m: f"UB_R{r}M{m}",
        races_to=lambda r: races.for_key(f"UB_R{r}"),
        round_name=lambda r, matches: double_round_name(r, upper_rounds),
    )
    lower = _add_lower_rounds(
        plan,
        structure=structure,
        upper=upper,
        last_round=len(structure),
        code_prefix="",
        races=races,
    )

    grand_final = plan.add(
        PlannedMatch(
            code="GF",
            stage=MatchStage.BRACKET,
            round=EliminationRound.GRAND_FINALS,
            races_to=races.for_key("GF"),
            position=0,
        )
    )
    _link_next(upper[upper_rounds][0], grand_final, 1)
    _link_next(lower[len(structure)][0], grand_final, 2)

    _advance_walkovers(plan)
    return plan


def plan_olympic_double_elimination(
    players: Sequence[SeededPlayer],
    races: RacesTo,
    *,
    phase_size: int | None = None,
    olympic_third_place: bool = False,
    third_place: bool = False,
) -> BracketPlan:
    """Double-elimination first stage feeding a single-elimination olympic stage."""
    bracket_size = next_power_of_two(len(players))
    phase = phase_size or DEFAULT_OLYMPIC_PHASE_SIZE
    phase = min(phase, bracket_size)
    if phase == bracket_size:
        return plan_single_elimination(players, races, third_place=third_place)
    if phase < 4 or phase & (phase - 1):
        raise ValueError(f"Olympic phase size must be a power of two >= 4 (got {phase})")

    upper_rounds = int(math.log2(bracket_size))
    olympic_round = upper_rounds - int(math.log2(phase // 2)) + 1
    first_stage_rounds = olympic_round - 1
    first_stage_meta = {"stage": "first_stage", "olympic_phase_size": phase}
    plan = BracketPlan(
        brackets=[
            PlannedBracket(BracketType.DOUBLE_UPPER, first_stage_rounds, bracket_size, dict(first_stage_meta)),
            PlannedBracket(
                BracketType.DOUBLE_LOWER, first_stage_rounds * 2 - 1, bracket_size - 1, dict(first_stage_meta)
            ),
            PlannedBracket(BracketType.SINGLE, int(math.log2(phase)), phase, {"stage": "olympic_stage"}),
        ]
    )

    first_stage = {"olympic_stage": "first"}
    upper = _add_elimination_rounds(
        plan,
        bracket_size=bracket_size,
        rounds=first_stage_rounds,
        seeded=_seeded_map(players),
        code=lambda r, m: f"FS_UB_R{r}M{m}",
        races_to=lambda r: races.for_key(f"UB_R{r}"),
        round_name=lambda r, matches: double_round_name(r, first_stage_rounds),
        metadata=first_stage,
    )
    structure = lower_bracket_structure(bracket_size)
    target_round = olympic_lower_target_round(structure, phase)
    lower = _add_lower_rounds(
        plan,
        structure=structure,
        upper=upper,
        last_round=target_round,
        code_prefix="FS_",
        races=races,
        metadata=first_stage,
    )
    _mark_olympic_advancing(upper[first_stage_rounds], lower[target_round], phase // 2)

    second_rounds = int(math.log2(phase))
    olympic = _add_elimination_rounds(
        plan,
        bracket_size=phase,
        rounds=second_rounds,
        seeded=None,
        code=lambda r, m: f"OS_R{r}M{m}",
        races_to=lambda r: races.for_key(f"O_R{r}"),
        round_name=lambda r, matches: single_round_name(matches),
        metadata={"olympic_stage": "second"},
    )
    if phase > 4 and olympic_third_place:
        _add_third_place(
            plan,
            code="OS_3RD",
            races_to=races.for_key("O_3RD"),
            semifinals=olympic[second_rounds - 1],
            metadata={"olympic_stage": "second"},
        )

    _advance_walkovers(plan)
    return plan


def _mark_olympic_advancing(
    upper_last: Sequence[PlannedMatch],
    lower_last: Sequence[PlannedMatch],
    advancing: int,
) -> None:
    if len(upper_last) != advancing or len(lower_last) != advancing:
        raise ValueError("Advancing match count mismatch between upper and lower brackets")
    for index in range(advancing):
        for match, olympic_position in ((upper_last[index], index * 2), (lower_last[index], index * 2 + 1)):
            match.metadata = {
                **(match.metadata or {}),
                "advances_to_olympic": True,
                "olympic_position": olympic_position,
            }


def plan_round_robin(players: Sequence[SeededPlayer], races: RacesTo) -> BracketPlan:
    ordered = sorted(players, key=lambda player: player.seed_number)
    plan = BracketPlan(brackets=[PlannedBracket(BracketType.SINGLE, 1, len(ordered))])
    for index, first in enumerate(ordered):
        for second in ordered[index + 1 :]:
            plan.add(
                PlannedMatch(
                    code=f"RR_{first.seed_number}v{second.seed_number}",
                    stage=MatchStage.BRACKET,
                    round=EliminationRound.ROUND_128,
                    races_to=races.base,
                    player1_id=first.user_id,
                    player2_id=second.user_id,
                    status=MatchStatus.READY,
                )
            )
    return plan


def playoff_seeds(group_rankings: Mapping[str, Sequence[int]], advance_count: int) -> list[SeededPlayer]:
    """Interleave group qualifiers by rank so every group winner is seeded before any runner-up."""
    seeds: list[SeededPlayer] = []
    for rank in range(advance_count):
        for group_code in sorted(group_rankings):
            ranking = group_rankings[group_code]
            if rank < len(ranking):
                seeds.append(SeededPlayer(user_id=ranking[rank], seed_number=len(seeds) + 1))
    return seeds


__all__ = [
    "BracketPlan",
    "DEFAULT_OLYMPIC_PHASE_SIZE",
    "DEFAULT_RACES_TO",
    "LowerRound",
    "LowerRoundKind",
    "PlannedBracket",
    "PlannedMatch",
    "RacesTo",
    "SEED_WALKOVER_NOTE",
    "SeededPlayer",
    "bracket_indices",
    "double_round_name",
    "lower_bracket_structure",
    "lower_round_name",
    "next_power_of_two",
    "olympic_lower_target_round",
    "plan_double_elimination",
    "plan_olympic_double_elimination",
    "plan_round_robin",
    "plan_single_elimination",
    "playoff_seeds",
    "seed_matchups",
    "single_round_name",
]
