"""Tests for killer-pool lives, cards, turn order, prizes and penalties."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

import pytest

from domain.killer_pool.rules import (
    CardType,
    EliminationRecord,
    bump_stats,
    current_round,
    deal_cards,
    finish_order,
    initial_lives,
    next_turn,
    order_after,
    pays_penalty,
    random_turn_insertion,
    rating_points,
    split_prize_pool,
)
from domain.official_ratings.records import Division


@pytest.mark.parametrize(("players", "lives"), [(2, 6), (5, 6), (6, 5), (10, 5), (11, 4), (30, 4)])
def test_initial_lives_by_field_size(players: int, lives: int) -> None:
    assert initial_lives(players) == lives


def test_deal_cards_adds_handicap_for_lower_divisions_only() -> None:
    base = {CardType.SKIP_TURN.value, CardType.PASS_TURN.value, CardType.HAND_SHOT.value}
    assert set(deal_cards()) == base
    assert set(deal_cards(Division.ELITE)) == base
    assert set(deal_cards(Division.A)) == base
    assert set(deal_cards("B")) == base | {CardType.HANDICAP.value}
    assert deal_cards(Division.C)[CardType.HANDICAP.value] is True


def test_bump_stats_returns_new_dict() -> None:
    original = {"shots_taken": 2}
    updated = bump_stats(original, shots_taken=1, lives_lost=1)

    assert original == {"shots_taken": 2}
    assert updated["shots_taken"] == 3
    assert updated["lives_lost"] == 1
    assert updated["cards_used"] == 0


def test_order_after_wraps_around() -> None:
    assert order_after([1, 3, 4], 3) == 4
    assert order_after([1, 3, 4], 4) == 1
    assert order_after([], 1) is None


def test_next_turn_skips_eliminated_holder() -> None:
    assert next_turn([1, 2, 3], 2) == (2, 3)
    assert next_turn([1, 3], 2) == (1, 3)
    assert next_turn([1, 2, 3], 3) == (3, 1)
    assert next_turn([], 1) is None


def test_random_turn_insertion_shifts_later_orders() -> None:
    rng = random.Random(7)
    new_order, shifts = random_turn_insertion([1, 2, 3, 4], rng)

    assert 1 <= new_order <= 5
    assert shifts == {order: order + 1 for order in (1, 2, 3, 4) if order >= new_order}
    assert random_turn_insertion([]) == (1, {})


def test_split_prize_pool_sends_rounding_to_grand_final() -> None:
    split = split_prize_pool(1001, first_place_percent=60, second_place_percent=20, players_count=3)

    assert split is not None
    assert split.first_place == 600
    assert split.second_place == 200
    assert split.grand_final_fund == 201
    assert split.as_json()["players_count"] == 3
    assert split_prize_pool(300, first_place_percent=60, second_place_percent=20, players_count=1) is None


def test_rating_points_rewards_later_finishers() -> None:
    assert rating_points(1, 6) == 6
    assert rating_points(6, 6) == 1
    assert rating_points(None, 6) == 0


def test_finish_order_puts_last_eliminated_first() -> None:
    start = datetime(2024, 1, 1, 20, 0)
    records = [
        EliminationRecord(1, start),
        EliminationRecord(2, None),
        EliminationRecord(3, start + timedelta(minutes=5)),
    ]
    assert finish_order(records) == [3, 1, 2]


def test_pays_penalty_only_for_short_stays_without_rebuys() -> None:
    kwargs = {"enable_penalties": True, "penalty_rounds_threshold": 4, "rebuy_rounds": 2}

    assert pays_penalty(rounds_played=1, rebuy_count=0, **kwargs) is True
    assert pays_penalty(rounds_played=2, rebuy_count=0, **kwargs) is False
    assert pays_penalty(rounds_played=1, rebuy_count=2, **kwargs) is False
    assert pays_penalty(rounds_played=1, rebuy_count=0, **{**kwargs, "enable_penalties": False}) is False


def test_pays_penalty_treats_unset_rebuy_rounds_as_zero() -> None:
    assert (
        pays_penalty(
            rounds_played=0,
            rebuy_count=0,
            enable_penalties=True,
            penalty_rounds_threshold=4,
            rebuy_rounds=None,
        )
        is False
    )


def test_current_round_counts_distinct_rounds() -> None:
    assert current_round(None) == 1
    assert current_round([{"round": 1}, {"round": 1}, {"round": 2}]) == 2
