"""Tests for bracket planning: seeding order, walkovers and advancement links."""

from __future__ import annotations

import pytest

from domain.tournaments.brackets import (
    SEED_WALKOVER_NOTE,
    RacesTo,
    SeededPlayer,
    lower_bracket_structure,
    next_power_of_two,
    plan_double_elimination,
    plan_olympic_double_elimination,
    plan_round_robin,
    plan_single_elimination,
    playoff_seeds,
    seed_matchups,
)
from domain.tournaments.enums import BracketType, EliminationRound, MatchStage, MatchStatus


def _players(count: int) -> list[SeededPlayer]:
    return [SeededPlayer(user_id=100 + seed, seed_number=seed) for seed in range(1, count + 1)]


def test_next_power_of_two() -> None:
    assert [next_power_of_two(n) for n in (1, 2, 3, 5, 8, 9)] == [1, 2, 4, 8, 8, 16]


def test_seed_matchups_keep_top_seeds_apart() -> None:
    assert seed_matchups(8) == [(1, 8), (4, 5), (2, 7), (3, 6)]


def test_races_to_prefers_round_override() -> None:
    races = RacesTo(round_races_to={"UB_R2": 9}, default=5)
    assert races.for_key("UB_R2") == 9
    assert races.for_key("UB_R1") == 5
    assert RacesTo(default=None).base == 7


def test_single_elimination_with_byes_advances_walkovers() -> None:
    plan = plan_single_elimination(_players(6), RacesTo(default=5))
    matches = plan.by_code()

    assert plan.brackets[0].bracket_type is BracketType.SINGLE
    assert plan.brackets[0].total_rounds == 3
    assert len(plan.matches) == 7

    top_seed_match = matches["R1M1"]
    assert top_seed_match.player1_id == 101
    assert top_seed_match.player2_id is None
    assert top_seed_match.status is MatchStatus.COMPLETED
    assert top_seed_match.winner_id == 101
    assert top_seed_match.player1_score == 5
    assert top_seed_match.notes == SEED_WALKOVER_NOTE

    second_round = matches[top_seed_match.next_code]
    assert second_round.previous1_code == "R1M1"
    assert second_round.player1_id == 101
    assert matches["R3M1"].round is EliminationRound.FINALS


def test_single_elimination_third_place_takes_semifinal_losers() -> None:
    plan = plan_single_elimination(_players(8), RacesTo(round_races_to={"3RD": 4}), third_place=True)
    matches = plan.by_code()

    third = matches["3RD"]
    assert third.stage is MatchStage.THIRD_PLACE
    assert third.races_to == 4
    assert matches["R2M1"].loser_next_code == "3RD"
    assert matches["R2M2"].loser_next_code == "3RD"


def test_third_place_needs_two_rounds() -> None:
    plan = plan_single_elimination(_players(2), RacesTo(), third_place=True)
    assert "3RD" not in plan.by_code()


def test_lower_bracket_structure_for_eight() -> None:
    structure = lower_bracket_structure(8)
    assert [(item.number, item.matches) for item in structure] == [(1, 2), (2, 2), (3, 1), (4, 1)]
    with pytest.raises(ValueError, match="Unsupported bracket size"):
        lower_bracket_structure(2)


def test_double_elimination_links_losers_into_lower_bracket() -> None:
    plan = plan_double_elimination(_players(8), RacesTo(default=4))
    matches = plan.by_code()

    assert matches["UB_R1M1"].loser_next_code == "LB_R1M1"
    assert matches["UB_R1M1"].loser_next_position == 1
    assert matches["UB_R1M2"].loser_next_code == "LB_R1M1"
    assert matches["UB_R1M2"].loser_next_position == 2
    assert matches["UB_R2M1"].loser_next_code == "LB_R2M1"
    assert matches["UB_R3M1"].loser_next_code == "LB_R4M1"
    assert matches["LB_R4M1"].next_code == "GF"
    assert matches["UB_R3M1"].next_code == "GF"
    assert matches["GF"].round is EliminationRound.GRAND_FINALS
    assert len(plan.matches) == 7 + 6 + 1


def test_olympic_plan_marks_advancing_matches() -> None:
    plan = plan_olympic_double_elimination(_players(16), RacesTo(), phase_size=8, olympic_third_place=True)
    matches = plan.by_code()

    advancing = [match for match in plan.matches if (match.metadata or {}).get("advances_to_olympic")]
    assert len(advancing) == 8
    assert sorted(match.metadata["olympic_position"] for match in advancing) == list(range(8))
    assert "OS_R1M1" in matches
    assert "OS_3RD" in matches
    assert matches["OS_R3M1"].round is EliminationRound.FINALS
    assert [bracket.bracket_type for bracket in plan.brackets] == [
        BracketType.DOUBLE_UPPER,
        BracketType.DOUBLE_LOWER,
        BracketType.SINGLE,
    ]


def test_olympic_phase_equal_to_field_is_single_elimination() -> None:
    plan = plan_olympic_double_elimination(_players(8), RacesTo(), phase_size=8)
    assert "R1M1" in plan.by_code()


def test_round_robin_pairs_everyone_once() -> None:
    plan = plan_round_robin(_players(4), RacesTo(default=3))

    assert len(plan.matches) == 6
    assert all(match.status is MatchStatus.READY and match.races_to == 3 for match in plan.matches)
    assert plan.matches[0].code == "RR_1v2"


def test_playoff_seeds_interleave_group_ranks() -> None:
    seeds = playoff_seeds({"B": [21, 22, 23], "A": [11, 12, 13]}, 2)
    assert [(seed.user_id, seed.seed_number) for seed in seeds] == [(11, 1), (21, 2), (12, 3), (22, 4)]
