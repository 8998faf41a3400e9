"""Tests for group tables, tie detection and head-to-head ranking."""

from __future__ import annotations

from domain.tournaments.enums import MatchStage
from domain.tournaments.standings import (
    MatchResult,
    StandingPlayer,
    final_tie_key,
    group_table,
    head_to_head,
    plan_tiebreaker_matches,
    rank_players,
    tie_blocks,
    tiebreaker_tie_key,
)


def _result(match_id: int, first: int, second: int, score: tuple[int, int], *, tiebreaker: bool = False) -> MatchResult:
    winner = first if score[0] > score[1] else second
    return MatchResult(match_id, first, second, score[0], score[1], winner, True, tiebreaker)


def test_group_table_orders_by_points_then_games() -> None:
    players = [StandingPlayer(user_id, seed) for seed, user_id in enumerate((1, 2, 3), start=1)]
    matches = [
        _result(1, 1, 2, (3, 1)),
        _result(2, 2, 3, (3, 2)),
        _result(3, 3, 1, (3, 0)),
        MatchResult(4, 1, 3, 0, 0, None, False),
    ]

    rows = group_table(players, matches, advance_count=2)

    assert [row.user_id for row in rows] == [3, 2, 1]
    assert [row.points for row in rows] == [3, 3, 3]
    assert rows[0].games_diff == 2
    assert rows[0].advances is True
    assert rows[2].advances is False
    assert rows[1].as_json()["played"] == 2


def test_tie_blocks_need_three_players() -> None:
    players = [
        StandingPlayer(1, 1, group_wins=2),
        StandingPlayer(2, 2, group_wins=2),
        StandingPlayer(3, 3, group_wins=2),
        StandingPlayer(4, 4, group_wins=1),
        StandingPlayer(5, 5, group_wins=1),
    ]
    blocks = tie_blocks(players, final_tie_key)
    assert list(blocks) == ["2_0_0_0"]
    assert [player.user_id for player in blocks["2_0_0_0"]] == [1, 2, 3]
    assert tie_blocks(players[:2], tiebreaker_tie_key) == {}


def test_plan_tiebreaker_matches_tags_round_and_block() -> None:
    block = [StandingPlayer(1, 1), StandingPlayer(2, 2), StandingPlayer(3, 3)]
    planned = plan_tiebreaker_matches({"2_-1_0_0": block}, round_number=2, races_to=3)

    assert [match.code for match in planned] == ["TB_R2_2--1-0-0_M1", "TB_R2_2--1-0-0_M2", "TB_R2_2--1-0-0_M3"]
    assert all(match.stage is MatchStage.PLAYOFF for match in planned)
    assert planned[0].metadata == {"is_tiebreaker": True, "tiebreaker_round": 2, "tied_group": "2_-1_0_0"}


def test_rank_players_uses_tiebreakers_before_group_diff() -> None:
    players = [
        StandingPlayer(1, 1, group_wins=2, group_games_diff=5),
        StandingPlayer(2, 2, group_wins=2, group_games_diff=1, tiebreaker_wins=1),
        StandingPlayer(3, 3, group_wins=3),
    ]
    ranked = rank_players(players, head_to_head([]))
    assert [player.user_id for player in ranked] == [3, 2, 1]


def test_head_to_head_prefers_latest_tiebreaker() -> None:
    first = StandingPlayer(1, 1, group_wins=1)
    second = StandingPlayer(2, 2, group_wins=1)
    matches = [
        _result(1, 1, 2, (3, 0)),
        _result(5, 1, 2, (1, 3), tiebreaker=True),
    ]

    assert [player.user_id for player in rank_players([first, second], head_to_head(matches))] == [2, 1]
    assert [player.user_id for player in rank_players([second, first], head_to_head(matches[:1]))] == [1, 2]
    assert [player.user_id for player in rank_players([second, first], head_to_head([]))] == [1, 2]
