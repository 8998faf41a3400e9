"""Tests for league rating strategies and table ordering."""

from __future__ import annotations

import pytest

from domain.leagues.rating_rules import (
    EloRatingStrategy,
    KillerPoolRatingStrategy,
    RatedPlayer,
    RatingType,
    find_rule,
    parse_rules,
    strategy_for,
)
from domain.leagues.standings import CompletedMatch, LeagueStandingEntry, accumulate_match_stats, rank_entries

WINNERS = parse_rules(
    [
        {"range": [0, 50], "strong": 25, "weak": 25},
        {"range": [51, 100], "strong": 20, "weak": 30},
        {"range": [101, 1000000], "strong": 10, "weak": 40},
    ]
)
LOSERS = parse_rules(
    [
        {"range": [0, 50], "strong": -25, "weak": -25},
        {"range": [51, 100], "strong": -20, "weak": -30},
        {"range": [101, 1000000], "strong": -10, "weak": -40},
    ]
)


def test_parse_rules_rejects_malformed_ranges() -> None:
    with pytest.raises(ValueError, match="must define range"):
        parse_rules([{"range": [1], "strong": 1, "weak": 1}])
    with pytest.raises(ValueError, match="min must be <= max"):
        parse_rules([{"range": [10, 5], "strong": 1, "weak": 1}])


def test_find_rule_uses_inclusive_bounds() -> None:
    assert find_rule(WINNERS, 50).strong == 25
    assert find_rule(WINNERS, 51).weak == 30
    assert find_rule(WINNERS[:1], 500) is None


def test_elo_favourite_win_uses_strong_values() -> None:
    first = RatedPlayer(rating_id=1, user_id=10, rating=1100)
    second = RatedPlayer(rating_id=2, user_id=20, rating=1020)

    result = EloRatingStrategy().calculate(first, second, 10, WINNERS, LOSERS)

    assert result == {1: 1120, 2: 1000}


def test_elo_underdog_win_uses_weak_values() -> None:
    first = RatedPlayer(rating_id=1, user_id=10, rating=1100)
    second = RatedPlayer(rating_id=2, user_id=20, rating=1020)

    result = EloRatingStrategy().calculate(first, second, 20, WINNERS, LOSERS)

    assert result == {2: 1050, 1: 1070}


def test_elo_without_matching_rule_raises() -> None:
    first = RatedPlayer(rating_id=1, user_id=10, rating=1000)
    second = RatedPlayer(rating_id=2, user_id=20, rating=1000)
    with pytest.raises(ValueError, match="No rule matched"):
        EloRatingStrategy().calculate(first, second, 10, [], LOSERS)


def test_killer_pool_strategy_adds_points() -> None:
    ratings = [RatedPlayer(1, 10, 5), RatedPlayer(2, 20, 0)]
    assert KillerPoolRatingStrategy().calculate(ratings, {10: 3}) == {1: 8, 2: 0}


def test_strategy_for_resolves_by_value() -> None:
    assert strategy_for("killer_pool").rating_type is RatingType.KILLER_POOL
    assert isinstance(strategy_for(RatingType.ELO), EloRatingStrategy)


def test_rank_entries_breaks_rating_ties_by_wins_then_frames() -> None:
    entries = [
        LeagueStandingEntry(rating_id=1, rating=1000, firstname="Ann", lastname="Bell"),
        LeagueStandingEntry(rating_id=2, rating=1000, firstname="Bob", lastname="Adams"),
        LeagueStandingEntry(rating_id=3, rating=1200, firstname="Cid", lastname="Cole"),
    ]
    matches = [
        CompletedMatch(1, 2, 7, 5, winner_rating_id=1),
        CompletedMatch(2, 3, 7, 6, winner_rating_id=2),
        CompletedMatch(1, 3, 3, 7, winner_rating_id=3),
    ]

    ranked = rank_entries(accumulate_match_stats(entries, matches).values())

    assert [entry.rating_id for entry in ranked] == [3, 2, 1]
    assert [entry.position for entry in ranked] == [1, 2, 3]
    assert ranked[1].frames_won == 12
    assert ranked[1].frames_lost == 13
    assert ranked[2].wins == 1
    assert ranked[2].losses == 1


def test_rank_entries_falls_back_to_names() -> None:
    entries = [
        LeagueStandingEntry(rating_id=1, rating=1000, firstname="Zed", lastname="Young"),
        LeagueStandingEntry(rating_id=2, rating=1000, firstname="Amy", lastname="Young"),
        LeagueStandingEntry(rating_id=3, rating=1000, firstname="Max", lastname="Brown"),
    ]

    ranked = rank_entries(entries)

    assert [entry.rating_id for entry in ranked] == [3, 2, 1]
