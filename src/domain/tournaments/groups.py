"""Group-stage sizing, snake-draft assignment and match planning."""

from __future__ import annotations

import math
import string
from collections.abc import Sequence
from dataclasses import dataclass, field

from domain.tournaments.brackets import PlannedMatch, SeededPlayer
from domain.tournaments.enums import EliminationRound, MatchStage, MatchStatus

DEFAULT_GROUP_SIZE_MIN = 4
DEFAULT_GROUP_SIZE_MAX = 5
DEFAULT_ADVANCE_COUNT = 2
MIN_GROUP_STAGE_PLAYERS = 4


@dataclass
class PlannedGroup:
    code: str
    size: int
    advance_count: int
    players: list[SeededPlayer] = field(default_factory=list)


@dataclass
class GroupsPlan:
    groups: list[PlannedGroup] = field(default_factory=list)
    matches: list[PlannedMatch] = field(default_factory=list)


def group_sizes(player_count: int, min_size: int, max_size: int) -> list[int]:
    """Equal groups when some size in [max..min] divides the field, else balanced groups."""
    if min_size <= 0 or max_size < min_size:
        raise ValueError(f"Invalid group size range: min={min_size} max={max_size}")
    for size in range(max_size, min_size - 1, -1):
        if player_count % size == 0:
            return [size] * (player_count // size)

    group_count = math.ceil(player_count / max_size)
    base_size, remainder = divmod(player_count, group_count)
    return [base_size + 1 if index < remainder else base_size for index in range(group_count)]


def snake_draft(sizes: Sequence[int]) -> list[list[int]]:
    """Seed-order indices drawn into each group.

    Direction flips every draft round and full groups are skipped, so every
    index below sum(sizes) lands in exactly one group.
    """
    groups: list[list[int]] = [[] for _ in sizes]
    total = sum(sizes)
    drawn = 0
    draft_round = 0
    while drawn < total:
        order = range(len(sizes)) if draft_round % 2 == 0 else range(len(sizes) - 1, -1, -1)
        for group_index in order:
            if drawn == total:
                break
            if len(groups[group_index]) < sizes[group_index]:
                groups[group_index].append(drawn)
                drawn += 1
        draft_round += 1
    return groups


def group_code(index: int) -> str:
    return string.ascii_uppercase[index]


def plan_groups(
    players: Sequence[SeededPlayer],
    *,
    races_to: int,
    min_size: int | None = None,
    max_size: int | None = None,
    advance_count: int | None = None,
) -> GroupsPlan:
    if len(players) < MIN_GROUP_STAGE_PLAYERS:
        raise ValueError("At least 4 confirmed players are required for group stage")

    ordered = sorted(players, key=lambda player: player.seed_number)
    sizes = group_sizes(
        len(ordered),
        min_size or DEFAULT_GROUP_SIZE_MIN,
        max_size or DEFAULT_GROUP_SIZE_MAX,
    )
    drafted = snake_draft(sizes)
    plan = GroupsPlan()
    for index, size in enumerate(sizes):
        group = PlannedGroup(
            code=group_code(index),
            size=size,
            advance_count=advance_count or DEFAULT_ADVANCE_COUNT,
            players=[ordered[i] for i in drafted[index]],
        )
        plan.groups.append(group)
        for position, first in enumerate(group.players):
            for second in group.players[position + 1 :]:
                plan.matches.append(
                    PlannedMatch(
                        code=f"{group.code}_{first.seed_number}v{second.seed_number}",
                        stage=MatchStage.GROUP,
                        round=EliminationRound.GROUPS,
                        races_to=races_to,
                        player1_id=first.user_id,
                        player2_id=second.user_id,
                        status=MatchStatus.READY,
                    )
                )
    return plan


__all__ = [
    "DEFAULT_ADVANCE_COUNT",
    "GroupsPlan",
    "MIN_GROUP_STAGE_PLAYERS",
    "PlannedGroup",
    "group_code",
    "group_sizes",
    "plan_groups",
    "snake_draft",
]
