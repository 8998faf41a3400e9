"""Tests for bracket generation and match progression against the database."""

from __future__ import annotations

import pytest

from domain.errors import DomainError
from domain.tournaments.enums import MatchStatus, TournamentStage, TournamentStatus
from repositories import tournaments as tournament_repo
from services.tournament_brackets import BracketService
from services.tournament_matches import (
    EMPTY_MATCH_NOTE,
    NO_SHOW_NOTE,
    TournamentMatchService,
    validate_frame_scores,
)


def _match(session, tournament, code):
    match = tournament_repo.get_match_by_code(session, tournament.id, code)
    assert match is not None, code
    return match


def _play(service, match, player1_score, player2_score, now, **kwargs):
    service.start_match(match, now=now)
    return service.finish_match(match, player1_score, player2_score, now=now, **kwargs)


def _position(session, tournament, user_id):
    return tournament_repo.get_player(session, tournament.id, user_id).position


def test_generate_bracket_needs_two_players(session, make_tournament) -> None:
    tournament = make_tournament("single_elimination", 1)
    with pytest.raises(DomainError, match="At least 2 confirmed players"):
        BracketService(session).generate_bracket(tournament)


def test_groups_type_cannot_generate_bracket(session, make_tournament) -> None:
    tournament = make_tournament("groups", 4)
    with pytest.raises(DomainError, match="not supported for tournament type: groups"):
        BracketService(session).generate_bracket(tournament)


def test_single_elimination_with_bye_runs_to_final(session, make_tournament, now) -> None:
    tournament = make_tournament("single_elimination", 3)
    seed1, seed2, seed3 = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    rows = BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)

    assert len(rows) == 3
    assert tournament.status == TournamentStatus.ACTIVE.value
    assert tournament.stage == TournamentStage.BRACKET.value
    assert len(tournament_repo.list_brackets(session, tournament.id)) == 1

    final = _match(session, tournament, "R2M1")
    assert final.player1_id == seed1
    assert final.status == MatchStatus.PENDING.value
    with pytest.raises(DomainError, match="Both players must be assigned"):
        service.start_match(final, now=now)

    semifinal = _match(session, tournament, "R1M2")
    progress = _play(service, semifinal, 7, 4, now)
    assert progress.affected_match_ids == (final.id,)
    assert final.player2_id == seed2
    assert final.status == MatchStatus.READY.value
    assert _position(session, tournament, seed3) == 3

    _play(service, final, 3, 7, now)
    assert _position(session, tournament, seed2) == 1
    assert _position(session, tournament, seed1) == 2


def test_finish_rejects_short_races_and_ties(session, make_tournament, now) -> None:
    tournament = make_tournament("single_elimination", 2, races_to=5)
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)
    final = _match(session, tournament, "R1M1")

    with pytest.raises(DomainError, match="must be in progress"):
        service.finish_match(final, 5, 2, now=now)
    service.start_match(final, now=now)
    with pytest.raises(DomainError, match="reach 5 races"):
        service.finish_match(final, 4, 2, now=now)
    with pytest.raises(DomainError, match="tie"):
        service.finish_match(final, 5, 5, now=now)


def test_editing_a_result_reverts_downstream_progress(session, make_tournament, now) -> None:
    tournament = make_tournament("single_elimination", 3)
    seed1, seed2, seed3 = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)
    semifinal = _match(session, tournament, "R1M2")
    final = _match(session, tournament, "R2M1")
    _play(service, semifinal, 7, 4, now)
    _play(service, final, 7, 1, now)

    progress = service.update_match(semifinal, {"player1_score": 5, "player2_score": 7}, now=now)

    assert semifinal.winner_id == seed3
    assert final.id in progress.affected_match_ids
    assert (final.player1_id, final.player2_id) == (seed1, seed3)
    assert final.status == MatchStatus.READY.value
    assert final.winner_id is None
    assert _position(session, tournament, seed1) is None
    assert _position(session, tournament, seed2) == 3
    assert _position(session, tournament, seed3) is None

    with pytest.raises(ValueError, match="Unknown match fields"):
        service.update_match(semifinal, {"winner": seed1})


def test_double_elimination_settles_lower_walkover(session, make_tournament, now) -> None:
    tournament = make_tournament("double_elimination", 3)
    seed1, seed2, seed3 = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)

    lower_first = _match(session, tournament, "LB_R1M1")
    lower_final = _match(session, tournament, "LB_R2M1")
    assert lower_first.status == MatchStatus.PENDING.value

    progress = _play(service, _match(session, tournament, "UB_R1M2"), 7, 2, now)

    assert lower_first.status == MatchStatus.COMPLETED.value
    assert lower_first.admin_notes == NO_SHOW_NOTE
    assert lower_first.winner_id == seed3
    assert lower_first.player2_score == 7
    assert lower_final.player1_id == seed3
    assert {lower_first.id, lower_final.id} <= set(progress.affected_match_ids)

    _play(service, _match(session, tournament, "UB_R2M1"), 7, 3, now)
    assert lower_final.player2_id == seed2
    _play(service, lower_final, 6, 7, now)
    assert _position(session, tournament, seed3) == 3

    grand_final = _match(session, tournament, "GF")
    assert (grand_final.player1_id, grand_final.player2_id) == (seed1, seed2)
    _play(service, grand_final, 7, 5, now)
    assert _position(session, tournament, seed1) == 1
    assert _position(session, tournament, seed2) == 2


def test_lower_match_without_players_is_cancelled(session, make_tournament, now) -> None:
    tournament = make_tournament("double_elimination", 5)
    BracketService(session).generate_bracket(tournament, now=now)

    empty = _match(session, tournament, "LB_R1M2")
    assert empty.status == MatchStatus.CANCELLED.value
    assert empty.admin_notes == EMPTY_MATCH_NOTE
    assert _match(session, tournament, "LB_R2M2").status == MatchStatus.PENDING.value


def test_double_elimination_edit_unwinds_lower_bracket(session, make_tournament, now) -> None:
    tournament = make_tournament("double_elimination", 4)
    seed1, seed2, seed3, seed4 = (
        player.user_id for player in tournament_repo.confirmed_players(session, tournament.id)
    )
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)
    opener = _match(session, tournament, "UB_R1M1")
    upper_final = _match(session, tournament, "UB_R2M1")
    lower_first = _match(session, tournament, "LB_R1M1")
    lower_final = _match(session, tournament, "LB_R2M1")

    _play(service, opener, 7, 2, now)
    _play(service, _match(session, tournament, "UB_R1M2"), 7, 2, now)
    _play(service, lower_first, 7, 3, now)
    assert lower_final.player1_id == seed4
    assert _position(session, tournament, seed3) == 4

    progress = service.update_match(opener, {"player1_score": 2, "player2_score": 7}, now=now)

    assert opener.winner_id == seed4
    assert {upper_final.id, lower_first.id} <= set(progress.affected_match_ids)
    assert (upper_final.player1_id, upper_final.player2_id) == (seed4, seed2)
    assert (lower_first.player1_id, lower_first.player2_id) == (seed1, seed3)
    assert lower_first.winner_id is None
    assert lower_first.status == MatchStatus.READY.value
    assert (lower_first.player1_score, lower_first.player2_score) == (0, 0)
    assert lower_final.player1_id is None
    assert _position(session, tournament, seed3) is None


def test_olympic_first_stage_winner_moves_into_second_stage(session, make_tournament, now) -> None:
    tournament = make_tournament("olympic_double_elimination", 8, olympic_phase_size=4)
    seed1, _, _, seed4, *_ = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)
    upper_final = _match(session, tournament, "FS_UB_R2M1")
    first_olympic = _match(session, tournament, "OS_R1M1")
    second_olympic = _match(session, tournament, "OS_R1M2")
    lower_drop = _match(session, tournament, "FS_LB_R2M1")

    _play(service, _match(session, tournament, "FS_UB_R1M1"), 7, 0, now)
    _play(service, _match(session, tournament, "FS_UB_R1M2"), 7, 0, now)
    assert (upper_final.player1_id, upper_final.player2_id) == (seed1, seed4)

    progress = _play(service, upper_final, 7, 1, now)

    assert upper_final.match_metadata["olympic_position"] == 0
    assert first_olympic.id in progress.affected_match_ids
    assert first_olympic.player1_id == seed1
    assert first_olympic.status == MatchStatus.PENDING.value
    assert seed1 not in (second_olympic.player1_id, second_olympic.player2_id)
    assert lower_drop.player2_id == seed4

    service.update_match(upper_final, {"player1_score": 1, "player2_score": 7}, now=now)

    assert first_olympic.player1_id == seed4
    assert lower_drop.player2_id == seed1


def test_round_robin_three_way_tie_goes_to_tiebreakers(session, make_tournament, now) -> None:
    tournament = make_tournament("round_robin", 3)
    seed1, seed2, seed3 = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)

    _play(service, _match(session, tournament, "RR_1v2"), 7, 5, now)
    _play(service, _match(session, tournament, "RR_2v3"), 7, 5, now)
    assert not tournament_repo.tiebreaker_matches(session, tournament.id)
    _play(service, _match(session, tournament, "RR_1v3"), 5, 7, now)

    tiebreakers = tournament_repo.tiebreaker_matches(session, tournament.id)
    assert len(tiebreakers) == 3
    assert all(match.match_code.startswith("TB_R1_1-0-0-0_M") for match in tiebreakers)
    assert _position(session, tournament, seed1) is None

    strength = {seed1: 3, seed2: 2, seed3: 1}
    for match in tiebreakers:
        first_wins = strength[match.player1_id] > strength[match.player2_id]
        _play(service, match, 7 if first_wins else 3, 3 if first_wins else 7, now)

    assert [_position(session, tournament, user_id) for user_id in (seed1, seed2, seed3)] == [1, 2, 3]
    assert tournament_repo.get_player(session, tournament.id, seed1).tiebreaker_wins == 2


def test_round_robin_without_ties_ranks_by_wins(session, make_tournament, now) -> None:
    tournament = make_tournament("round_robin", 3)
    seed1, seed2, seed3 = (player.user_id for player in tournament_repo.confirmed_players(session, tournament.id))
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)

    _play(service, _match(session, tournament, "RR_1v2"), 4, 7, now)
    _play(service, _match(session, tournament, "RR_1v3"), 7, 0, now)
    _play(service, _match(session, tournament, "RR_2v3"), 7, 2, now)

    assert [_position(session, tournament, user_id) for user_id in (seed2, seed1, seed3)] == [1, 2, 3]
    assert tournament_repo.get_player(session, tournament.id, seed2).group_games_diff == 8


def test_snooker_frames_must_match_score(session, make_tournament, now) -> None:
    tournament = make_tournament("single_elimination", 2, game_type="snooker", races_to=2)
    BracketService(session).generate_bracket(tournament, now=now)
    service = TournamentMatchService(session)
    final = _match(session, tournament, "R1M1")
    service.start_match(final, now=now)

    with pytest.raises(DomainError, match="do not match"):
        service.finish_match(
            final, 2, 1, frame_scores=[{"player1": 60, "player2": 40}, {"player1": 70, "player2": 10}], now=now
        )

    service.finish_match(
        final, 2, 0, frame_scores=[{"player1": 60, "player2": 40}, {"player1": 70, "player2": 10}], now=now
    )
    assert final.frame_scores == [{"player1": 60, "player2": 40}, {"player1": 70, "player2": 10}]


def test_validate_frame_scores_rules() -> None:
    validate_frame_scores("pool", [{"player1": 0, "player2": 0}], 5, 0)
    validate_frame_scores("pyramid", [{"player1": 8, "player2": 3}, {"player1": 2, "player2": 8}], 1, 1)
    with pytest.raises(DomainError, match="one player must reach 8"):
        validate_frame_scores("pyramid", [{"player1": 7, "player2": 5}], 1, 0)
    with pytest.raises(DomainError, match="maximum is 147"):
        validate_frame_scores("snooker", [{"player1": 148, "player2": 0}], 1, 0)
