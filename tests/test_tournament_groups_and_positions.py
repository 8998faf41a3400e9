"""Tests for group planning and the positions awarded by completed matches."""

from __future__ import annotations

import pytest

from domain.tournaments.brackets import SeededPlayer
from domain.tournaments.enums import EliminationRound, MatchStage, TournamentType
from domain.tournaments.groups import group_sizes, plan_groups, snake_draft
from domain.tournaments.positions import (
    MatchOutcome,
    PositionContext,
    olympic_first_stage_position,
    positions_for_match,
)


def test_group_sizes_prefers_equal_groups() -> None:
    assert group_sizes(10, 4, 5) == [5, 5]
    assert group_sizes(12, 4, 5) == [4, 4, 4]
    assert group_sizes(11, 4, 5) == [4, 4, 3]
    with pytest.raises(ValueError, match="Invalid group size range"):
        group_sizes(8, 5, 4)


def test_snake_draft_reverses_every_other_round() -> None:
    assert snake_draft([4, 4]) == [[0, 3, 4, 7], [1, 2, 5, 6]]


def test_snake_draft_skips_full_groups() -> None:
    assert snake_draft([4, 3]) == [[0, 3, 4, 6], [1, 2, 5]]
    assert snake_draft([4, 4, 3]) == [[0, 5, 6, 10], [1, 4, 7, 9], [2, 3, 8]]


@pytest.mark.parametrize("player_count", [7, 11, 13])
def test_plan_groups_places_every_seed_once(player_count: int) -> None:
    players = [SeededPlayer(user_id=seed * 10, seed_number=seed) for seed in range(1, player_count + 1)]
    plan = plan_groups(players, races_to=3)

    drafted = [player.seed_number for group in plan.groups for player in group.players]
    assert sorted(drafted) == list(range(1, player_count + 1))
    assert [len(group.players) for group in plan.groups] == [group.size for group in plan.groups]


def test_plan_groups_creates_round_robin_inside_each_group() -> None:
    players = [SeededPlayer(user_id=seed * 10, seed_number=seed) for seed in range(1, 9)]
    plan = plan_groups(players, races_to=3, min_size=4, max_size=4, advance_count=2)

    assert [group.code for group in plan.groups] == ["A", "B"]
    assert [player.seed_number for player in plan.groups[0].players] == [1, 4, 5, 8]
    assert len(plan.matches) == 12
    assert all(match.stage is MatchStage.GROUP for match in plan.matches)
    assert plan.matches[0].code == "A_1v4"


def test_plan_groups_requires_four_players() -> None:
    players = [SeededPlayer(user_id=seed, seed_number=seed) for seed in range(1, 4)]
    with pytest.raises(ValueError, match="At least 4 confirmed players"):
        plan_groups(players, races_to=3)


def _outcome(code: str, stage: MatchStage, round_name: EliminationRound | None, **kwargs) -> MatchOutcome:
    return MatchOutcome(code=code, stage=stage, round=round_name, winner_id=1, loser_id=2, **kwargs)


def test_single_elimination_final_awards_first_and_second() -> None:
    context = PositionContext(TournamentType.SINGLE_ELIMINATION, confirmed_players=8)
    awards = positions_for_match(_outcome("R3M1", MatchStage.BRACKET, EliminationRound.FINALS, side="upper"), context)
    assert [(award.user_id, award.position) for award in awards] == [(1, 1), (2, 2)]


def test_single_elimination_quarterfinal_loser_gets_fifth() -> None:
    context = PositionContext(TournamentType.SINGLE_ELIMINATION, confirmed_players=8)
    outcome = _outcome("R1M1", MatchStage.BRACKET, EliminationRound.QUARTERFINALS, side="upper")
    awards = positions_for_match(outcome, context)
    assert [(award.user_id, award.position) for award in awards] == [(2, 5)]


def test_third_place_match_awards_third_and_fourth() -> None:
    context = PositionContext(TournamentType.SINGLE_ELIMINATION, confirmed_players=8)
    outcome = _outcome("3RD", MatchStage.THIRD_PLACE, EliminationRound.THIRD_PLACE, side=None)
    assert [(award.user_id, award.position) for award in positions_for_match(outcome, context)] == [(1, 3), (2, 4)]


def test_double_elimination_upper_loss_awards_nothing() -> None:
    context = PositionContext(TournamentType.DOUBLE_ELIMINATION, confirmed_players=8)
    outcome = _outcome("UB_R1M1", MatchStage.BRACKET, EliminationRound.QUARTERFINALS, side="upper")
    assert positions_for_match(outcome, context) == []


def test_double_elimination_lower_losses_follow_table() -> None:
    context = PositionContext(TournamentType.DOUBLE_ELIMINATION, confirmed_players=8)
    first = _outcome("LB_R1M1", MatchStage.LOWER_BRACKET, EliminationRound.SEMIFINALS, side="lower")
    last = _outcome("LB_R4M1", MatchStage.LOWER_BRACKET, EliminationRound.FINALS, side="lower")
    assert positions_for_match(first, context)[0].position == 7
    assert positions_for_match(last, context)[0].position == 3

    grand_final = _outcome("GF", MatchStage.BRACKET, EliminationRound.GRAND_FINALS, side=None)
    assert [award.position for award in positions_for_match(grand_final, context)] == [1, 2]


def test_tiebreakers_never_award_positions() -> None:
    context = PositionContext(TournamentType.ROUND_ROBIN, confirmed_players=4)
    outcome = _outcome(
        "TB_R1_2-0-0-0_M1", MatchStage.PLAYOFF, EliminationRound.GROUPS, side=None, metadata={"is_tiebreaker": True}
    )
    assert positions_for_match(outcome, context) == []


def test_olympic_second_stage_positions() -> None:
    context = PositionContext(
        TournamentType.OLYMPIC_DOUBLE_ELIMINATION,
        confirmed_players=16,
        olympic_phase_size=8,
        olympic_has_third_place=False,
    )
    metadata = {"olympic_stage": "second"}
    quarter = _outcome("OS_R1M1", MatchStage.BRACKET, EliminationRound.QUARTERFINALS, side="upper", metadata=metadata)
    semi = _outcome("OS_R2M1", MatchStage.BRACKET, EliminationRound.SEMIFINALS, side="upper", metadata=metadata)
    final = _outcome("OS_R3M1", MatchStage.BRACKET, EliminationRound.FINALS, side="upper", metadata=metadata)

    assert positions_for_match(quarter, context)[0].position == 5
    assert positions_for_match(semi, context)[0].position == 3
    assert [award.position for award in positions_for_match(final, context)] == [1, 2]


def test_olympic_first_stage_later_lower_rounds_rank_higher() -> None:
    early = olympic_first_stage_position("FS_LB_R1M1", 8, 16)
    late = olympic_first_stage_position("FS_LB_R2M1", 8, 16)
    assert 9 <= late < early <= 16
