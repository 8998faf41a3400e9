"""Pure killer-pool rules: lives, cards, turn rotation, prizes and penalties."""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from domain.official_ratings.records import Division


class CardType(str, Enum):
    SKIP_TURN = "skip_turn"
    PASS_TURN = "pass_turn"
    HAND_SHOT = "hand_shot"
    HANDICAP = "handicap"


class HandicapAction(str, Enum):
    SKIP_TURN = "skip_turn"
    TAKE_LIFE = "take_life"


class GameAction(str, Enum):
    INCREMENT_LIVES = "increment_lives"
    DECREMENT_LIVES = "decrement_lives"
    USE_CARD = "use_card"
    RECORD_TURN = "record_turn"
    SET_TURN = "set_turn"


STAT_KEYS = (
    "shots_taken",
    "balls_potted",
    "lives_gained",
    "lives_lost",
    "cards_used",
    "turns_played",
)

MIN_LIVES_FOR_TAKE_LIFE = 3


def initial_lives(player_count: int) -> int:
    """Lives handed to each player at game start."""
    if player_count <= 5:
        return 6
    if player_count <= 10:
        return 5
    return 4


def deal_cards(division: Division | str | None = None) -> dict[str, bool]:
    """Fresh card hand; weaker divisions also receive the handicap card."""
    cards = {
        CardType.SKIP_TURN.value: True,
        CardType.PASS_TURN.value: True,
        CardType.HAND_SHOT.value: True,
    }
    if division is not None and Division(division) in (Division.B, Division.C):
        cards[CardType.HANDICAP.value] = True
    return cards


def empty_stats() -> dict[str, int]:
    return {key: 0 for key in STAT_KEYS}


def bump_stats(stats: Mapping[str, int] | None, **increments: int) -> dict[str, int]:
    """Return a new stats dict with the given counters incremented."""
    updated = {**empty_stats(), **(stats or {})}
    for key, amount in increments.items():
        updated[key] = updated.get(key, 0) + amount
    return updated


def order_after(active_orders: Sequence[int], order: int) -> int | None:
    """Cyclic successor of order among the sorted active orders."""
    orders = sorted(active_orders)
    if not orders:
        return None
    for candidate in orders:
        if candidate > order:
            return candidate
    return orders[0]


def next_turn(active_orders: Sequence[int], next_turn_order: int | None) -> tuple[int, int] | None:
    """Resolve (current_order, new_next_turn_order) for a turn change.

    The player holding next_turn_order plays next when still active, otherwise
    the lowest active order does.
    """
    orders = sorted(active_orders)
    if not orders:
        return None
    current = next_turn_order if next_turn_order in orders else orders[0]
    following = order_after(orders, current)
    if following is None:
        return None
    return current, following


def random_turn_insertion(
    other_orders: Sequence[int],
    rng: random.Random | None = None,
) -> tuple[int, dict[int, int]]:
    """Pick a slot for a joining player and return (order, {old_order: new_order}) shifts."""
    if not other_orders:
        return 1, {}
    generator = rng or random.Random()
    new_order = generator.randint(min(other_orders), max(other_orders) + 1)
    shifts = {order: order + 1 for order in other_orders if order >= new_order}
    return new_order, shifts


@dataclass(frozen=True)
class PrizeSplit:
    total: int
    first_place: int
    second_place: int
    grand_final_fund: int
    players_count: int

    def as_json(self) -> dict[str, int]:
        return {
            "total": self.total,
            "first_place": self.first_place,
            "second_place": self.second_place,
            "grand_final_fund": self.grand_final_fund,
            "players_count": self.players_count,
        }


def split_prize_pool(
    total: int,
    *,
    first_place_percent: int,
    second_place_percent: int,
    players_count: int,
) -> PrizeSplit | None:
    """Split the pot; the remainder after both prizes goes to the grand-final fund."""
    if players_count < 2:
        return None
    first_place = int(total * first_place_percent / 100)
    second_place = int(total * second_place_percent / 100)
    return PrizeSplit(
        total=total,
        first_place=first_place,
        second_place=second_place,
        grand_final_fund=total - first_place - second_place,
        players_count=players_count,
    )


def rating_points(finish_position: int | None, max_position: int) -> int:
    if finish_position is None:
        return 0
    return max_position - finish_position + 1


@dataclass(frozen=True)
class EliminationRecord:
    user_id: int
    eliminated_at: datetime | None


def finish_order(records: Iterable[EliminationRecord]) -> list[int]:
    """User ids in finishing order: last eliminated first, never-eliminated after."""
    records = list(records)
    eliminated = sorted(
        (record for record in records if record.eliminated_at is not None),
        key=lambda record: record.eliminated_at,
        reverse=True,
    )
    remaining = [record for record in records if record.eliminated_at is None]
    return [record.user_id for record in eliminated + remaining]


def pays_penalty(
    *,
    rounds_played: int,
    rebuy_count: int,
    enable_penalties: bool,
    penalty_rounds_threshold: int | None,
    rebuy_rounds: int | None,
) -> bool:
    """Short-stay players who did not use their rebuys pay the time penalty."""
    if not enable_penalties or not penalty_rounds_threshold:
        return False
    minimum_rounds = math.ceil(penalty_rounds_threshold / 2)
    return rounds_played < minimum_rounds and rebuy_count < (rebuy_rounds or 0)


def current_round(rebuy_history: Sequence[Mapping[str, Any]] | None) -> int:
    rounds = {entry.get("round") for entry in rebuy_history or []}
    return max(1, len(rounds))


def history_entry(
    *,
    user_id: int,
    user_name: str,
    amount: int,
    timestamp: datetime,
    round_number: int,
    entry_type: str,
) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "user_name": user_name,
        "amount": amount,
        "timestamp": timestamp.isoformat(),
        "round": round_number,
        "type": entry_type,
    }


__all__ = [
    "CardType",
    "EliminationRecord",
    "GameAction",
    "HandicapAction",
    "MIN_LIVES_FOR_TAKE_LIFE",
    "PrizeSplit",
    "STAT_KEYS",
    "bump_stats",
    "current_round",
    "deal_cards",
    "empty_stats",
    "finish_order",
    "history_entry",
    "initial_lives",
    "next_turn",
    "order_after",
    "pays_penalty",
    "random_turn_insertion",
    "rating_points",
    "split_prize_pool",
]
