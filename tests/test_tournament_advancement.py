"""Tests for group completion, playoff creation and the advancement runner."""

from __future__ import annotations

import pytest

from domain.errors import DomainError
from domain.tournaments.enums import EliminationRound, MatchStage, TournamentStage, TournamentStatus
from models import Game, Tournament
from repositories import tournaments as tournament_repo
from services.tournament_advancement import advance_tournament, advance_tournaments
from services.tournament_brackets import BracketService
from services.tournament_matches import TournamentMatchService


def _play_group_stage(session, tournament, now) -> None:
    """Every group match is won 7:3 by the better seed (player1)."""
    service = TournamentMatchService(session)
    for match in tournament_repo.list_matches(session, tournament.id):
        if match.stage == MatchStage.GROUP.value:
            service.start_match(match, now=now)
            service.finish_match(match, 7, 3, now=now)


def test_generate_groups_snake_drafts_players(session, make_tournament) -> None:
    tournament = make_tournament("groups_playoff", 8, group_size_min=4, group_size_max=4)
    seeds = [player.user_id for player in tournament_repo.confirmed_players(session, tournament.id)]

    groups = BracketService(session).generate_groups(tournament)

    assert [group.group_code for group in groups] == ["A", "B"]
    members: dict[str, set[int]] = {}
    for player in tournament_repo.confirmed_players(session, tournament.id):
        members.setdefault(player.group_code, set()).add(player.user_id)
    assert members["A"] == {seeds[0], seeds[3], seeds[4], seeds[7]}
    assert members["B"] == {seeds[1], seeds[2], seeds[5], seeds[6]}
    assert len(tournament_repo.list_matches(session, tournament.id)) == 12
    assert tournament.stage == TournamentStage.GROUP.value


@pytest.mark.parametrize(("player_count", "sizes"), [(7, [4, 3]), (11, [4, 4, 3])])
def test_generate_groups_drafts_every_player_with_uneven_groups(
    session, make_tournament, player_count: int, sizes: list[int]
) -> None:
    tournament = make_tournament("groups_playoff", player_count)

    groups = BracketService(session).generate_groups(tournament)

    assert [group.group_size for group in groups] == sizes
    players = tournament_repo.confirmed_players(session, tournament.id)
    assert all(player.group_code is not None for player in players)
    expected_matches = sum(size * (size - 1) // 2 for size in sizes)
    assert len(tournament_repo.list_matches(session, tournament.id)) == expected_matches


def test_single_elimination_cannot_generate_groups(session, make_tournament) -> None:
    with pytest.raises(DomainError, match="does not support group stage"):
        BracketService(session).generate_groups(make_tournament("single_elimination", 4))


def test_playoff_needs_completed_groups(session, make_tournament) -> None:
    tournament = make_tournament("groups_playoff", 8, group_size_min=4, group_size_max=4)
    service = BracketService(session)
    with pytest.raises(DomainError, match="no groups"):
        service.create_playoff_bracket(tournament)

    service.generate_groups(tournament)
    with pytest.raises(DomainError, match="All groups must be completed"):
        service.create_playoff_bracket(tournament)


def test_groups_playoff_flow(session, make_tournament, now) -> None:
    tournament = make_tournament("groups_playoff", 8, group_size_min=4, group_size_max=4)
    s1, s2, s3, s4, s5, s6, s7, s8 = (
        player.user_id for player in tournament_repo.confirmed_players(session, tournament.id)
    )
    BracketService(session).generate_groups(tournament)
    assert advance_tournament(session, tournament, now=now) == []

    _play_group_stage(session, tournament, now)
    actions = advance_tournament(session, tournament, now=now)

    assert actions == ["group A completed", "group B completed", "playoff bracket created"]
    group_a = tournament_repo.list_groups(session, tournament.id)[0]
    assert [row["user_id"] for row in group_a.standings_cache] == [s1, s4, s5, s8]
    assert tournament_repo.get_player(session, tournament.id, s4).group_position == 2
    assert tournament.stage == TournamentStage.BRACKET.value

    first = tournament_repo.get_match_by_code(session, tournament.id, "R1M1")
    second = tournament_repo.get_match_by_code(session, tournament.id, "R1M2")
    assert (first.player1_id, first.player2_id) == (s1, s3)
    assert (second.player1_id, second.player2_id) == (s2, s4)

    knocked_out = {user_id: tournament_repo.get_player(session, tournament.id, user_id) for user_id in (s5, s6, s7, s8)}
    assert {knocked_out[s5].position, knocked_out[s6].position} == {5, 6}
    assert {knocked_out[s7].position, knocked_out[s8].position} == {7, 8}
    assert knocked_out[s5].elimination_round == EliminationRound.GROUPS.value

    service = TournamentMatchService(session)
    for match in (first, second):
        service.start_match(match, now=now)
        service.finish_match(match, 7, 0, now=now)
    final = tournament_repo.get_match_by_code(session, tournament.id, "R2M1")
    service.start_match(final, now=now)
    service.finish_match(final, 7, 0, now=now)

    assert advance_tournament(session, tournament, now=now) == ["tournament completed"]
    assert tournament.status == TournamentStatus.COMPLETED.value
    assert tournament.end_date == now
    positions = {user_id: tournament_repo.get_player(session, tournament.id, user_id).position for user_id in (s1, s2)}
    assert positions == {s1: 1, s2: 2}


def test_advance_runner_dry_run_and_missing_tournament(session_factory, build_tournament, now) -> None:
    with session_factory() as session:
        game = Game(name="Pool runner", type="pool")
        session.add(game)
        session.flush()
        tournament = build_tournament(session, game, "groups", 4)
        BracketService(session).generate_groups(tournament)
        _play_group_stage(session, tournament, now)
        session.commit()
        tournament_id = tournament.id

    lines: list[str] = []
    summaries = advance_tournaments(
        session_factory=session_factory,
        tournament_ids=[tournament_id, 999],
        dry_run=True,
        echo=lines.append,
    )

    assert summaries[0].actions == ("group A completed", "tournament completed")
    assert summaries[0].advanced is True
    assert summaries[1].error == "Tournament 999 not found"
    assert lines[0].startswith("[dry-run] tournament=")
    assert "error=Tournament 999 not found" in lines[1]
    with session_factory() as session:
        assert session.get(Tournament, tournament_id).status == TournamentStatus.ACTIVE.value

    summaries = advance_tournaments(session_factory=session_factory)

    assert [summary.tournament_id for summary in summaries] == [tournament_id]
    with session_factory() as session:
        assert session.get(Tournament, tournament_id).status == TournamentStatus.COMPLETED.value
        positions = [player.position for player in tournament_repo.confirmed_players(session, tournament_id)]
        assert positions == [1, 2, 3, 4]


def test_advance_runner_keeps_going_after_unexpected_error(session_factory, build_tournament, now) -> None:
    with session_factory() as session:
        game = Game(name="Pool batch", type="pool")
        session.add(game)
        session.flush()
        broken = build_tournament(session, game, "groups", 4)
        broken.tournament_type = "not_a_format"
        healthy = build_tournament(session, game, "groups", 4)
        BracketService(session).generate_groups(healthy)
        _play_group_stage(session, healthy, now)
        session.commit()
        broken_id, healthy_id = broken.id, healthy.id

    lines: list[str] = []
    summaries = advance_tournaments(
        session_factory=session_factory,
        tournament_ids=[broken_id, healthy_id],
        echo=lines.append,
    )

    assert summaries[0].error.startswith("ValueError:")
    assert summaries[0].advanced is False
    assert summaries[1].error is None
    assert summaries[1].actions == ("group A completed", "tournament completed")
    assert "error=ValueError:" in lines[0]
    with session_factory() as session:
        assert session.get(Tournament, healthy_id).status == TournamentStatus.COMPLETED.value
