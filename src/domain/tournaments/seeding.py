"""Seed ordering helpers that do not touch the database."""

from __future__ import annotations

import random
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import TypeVar

T = TypeVar("T")

CLUB_SHUFFLE_CHUNK = 4
NO_PREVIOUS_POSITION = 999


def separate_clubs(
    items: Sequence[T],
    club_of: Callable[[T], Hashable],
    rng: random.Random,
    *,
    chunk_size: int = CLUB_SHUFFLE_CHUNK,
) -> list[T]:
    """Random order that spreads players of one club across the field.

    The field is shuffled, dealt one player per club per round, then each
    chunk of chunk_size is shuffled again so neighbours still vary.
    """
    shuffled = list(items)
    rng.shuffle(shuffled)

    by_club: dict[Hashable, list[T]] = {}
    for item in shuffled:
        by_club.setdefault(club_of(item), []).append(item)

    dealt: list[T] = []
    rounds = max((len(members) for members in by_club.values()), default=0)
    for draft_round in range(rounds):
        for members in by_club.values():
            if draft_round < len(members):
                dealt.append(members[draft_round])

    ordered: list[T] = []
    for start in range(0, len(dealt), chunk_size):
        chunk = dealt[start : start + chunk_size]
        rng.shuffle(chunk)
        ordered.extend(chunk)
    return ordered


def order_by_previous_results(
    items: Sequence[T],
    key_of: Callable[[T], int],
    previous_positions: Mapping[int, int],
    tiebreak_points: Mapping[int, int],
) -> list[T]:
    """Best previous finish first; players without one go last.

    Equal finishes fall back to tiebreak_points, highest first.
    """
    return sorted(
        items,
        key=lambda item: (
            previous_positions.get(key_of(item), NO_PREVIOUS_POSITION),
            -tiebreak_points.get(key_of(item), 0),
            key_of(item),
        ),
    )


__all__ = ["CLUB_SHUFFLE_CHUNK", "NO_PREVIOUS_POSITION", "order_by_previous_results", "separate_clubs"]
