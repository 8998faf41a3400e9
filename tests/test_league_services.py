"""Tests for league membership and challenge match services."""

from __future__ import annotations

from datetime import timedelta

import pytest

from domain.config_base import find_preset
from domain.errors import DomainError, PermissionDeniedError
from domain.leagues.config import DEFAULT_CONFIG_DIR, load_league_presets
from repositories import leagues as league_repo
from services.leagues import LeagueService, RatingService
from services.match_games import MatchGameService, MatchGameStatus


def _joined(session, league, *users):
    ratings = RatingService(session)
    for user in users:
        assert ratings.add_player(league, user) is True
        ratings.confirm_player(league, league_repo.get_rating(session, league.id, user.id))
    return ratings


def test_add_player_respects_max_players(session, make_league, make_user) -> None:
    league = make_league(max_players=2)
    first, second, third = make_user("Ann"), make_user("Bob"), make_user("Cid")
    ratings = _joined(session, league, first, second)

    assert ratings.add_player(league, third) is False
    assert league_repo.get_rating(session, league.id, third.id) is None


def test_rejoin_reactivates_existing_rating(session, make_league, make_user) -> None:
    league = make_league()
    user = make_user("Ann")
    ratings = _joined(session, league, user)
    rating = league_repo.get_rating(session, league.id, user.id)
    rating.rating = 1130

    ratings.disable_player(league, user)
    assert league_repo.get_active_rating(session, league.id, user.id) is None

    ratings.add_player(league, user)
    rejoined = league_repo.get_active_rating(session, league.id, user.id)
    assert rejoined.id == rating.id
    assert rejoined.rating == 1130


def test_pending_players_and_bulk_confirm(session, make_league, make_user) -> None:
    league = make_league()
    users = [make_user("Ann"), make_user("Bob"), make_user("Cid")]
    ratings = RatingService(session)
    for user in users:
        ratings.add_player(league, user)

    pending = ratings.pending_players(league)
    assert len(pending) == 3

    assert ratings.bulk_confirm_players(league, [pending[0].id, pending[1].id]) == 2
    assert len(ratings.pending_players(league)) == 1


def test_deactivate_requires_confirmed_active_player(session, make_league, make_user) -> None:
    league = make_league()
    user = make_user("Ann")
    ratings = RatingService(session)
    ratings.add_player(league, user)
    rating = league_repo.get_rating(session, league.id, user.id)

    with pytest.raises(DomainError, match="not currently confirmed or active"):
        ratings.deactivate_player(league, rating)

    other_league = make_league()
    with pytest.raises(DomainError, match="does not belong"):
        ratings.confirm_player(other_league, rating)


def test_match_game_result_updates_ratings_and_positions(session, make_league, make_user, now) -> None:
    league = make_league()
    ann, bob = make_user("Ann", "Able"), make_user("Bob", "Baker")
    _joined(session, league, ann, bob)
    service = MatchGameService(session)

    match_game = service.send_game(ann, league, bob, now=now)
    assert match_game.status == MatchGameStatus.PENDING.value
    assert match_game.invitation_available_till == now + timedelta(days=2)

    with pytest.raises(DomainError, match="already has an open match"):
        service.send_game(bob, league, ann, now=now)
    with pytest.raises(PermissionDeniedError):
        service.accept(ann, match_game, now=now)

    service.accept(bob, match_game, now=now)
    service.send_result(ann, match_game, 9, 3, now=now)

    assert match_game.status == MatchGameStatus.COMPLETED.value
    assert match_game.first_user_score == 7
    assert match_game.rating_change_for_winner == 25
    assert match_game.rating_change_for_loser == -25

    ann_rating = league_repo.get_rating(session, league.id, ann.id)
    bob_rating = league_repo.get_rating(session, league.id, bob.id)
    assert (ann_rating.rating, ann_rating.position) == (1025, 1)
    assert (bob_rating.rating, bob_rating.position) == (975, 2)


def test_send_result_rejects_ties_and_outsiders(session, make_league, make_user, now) -> None:
    league = make_league()
    ann, bob, cid = make_user("Ann"), make_user("Bob"), make_user("Cid")
    _joined(session, league, ann, bob, cid)
    service = MatchGameService(session)
    match_game = service.accept(bob, service.send_game(ann, league, bob, now=now), now=now)

    with pytest.raises(DomainError, match="cannot end in a tie"):
        service.send_result(ann, match_game, 4, 4, now=now)
    with pytest.raises(PermissionDeniedError):
        service.send_result(cid, match_game, 7, 4, now=now)


def test_decline_awards_forfeit_to_sender(session, make_league, make_user, now) -> None:
    league = make_league()
    ann, bob = make_user("Ann"), make_user("Bob")
    _joined(session, league, ann, bob)
    service = MatchGameService(session)
    match_game = service.send_game(ann, league, bob, now=now)

    service.decline(bob, match_game, now=now + timedelta(hours=1))

    assert match_game.status == MatchGameStatus.COMPLETED.value
    assert (match_game.first_user_score, match_game.second_user_score) == (7, 0)
    assert match_game.winner_rating_id == match_game.first_rating_id
    assert league_repo.get_rating(session, league.id, ann.id).rating == 1025


def test_expired_invitation_cannot_be_accepted(session, make_league, make_user, now) -> None:
    league = make_league()
    ann, bob = make_user("Ann"), make_user("Bob")
    _joined(session, league, ann, bob)
    service = MatchGameService(session)
    match_game = service.send_game(ann, league, bob, now=now)

    with pytest.raises(DomainError, match="expired"):
        service.accept(bob, match_game, now=now + timedelta(days=3))


def test_league_created_from_preset_and_table_limit(session, make_game, make_user) -> None:
    preset = find_preset(load_league_presets(DEFAULT_CONFIG_DIR), "elo_default")
    service = LeagueService(session)
    league = service.create_league(preset, make_game(), "Tuesday ladder")

    assert league.rating_type == "elo"
    assert league.rating_change_for_winners_rule[0] == {"range": [0, 50], "strong": 25, "weak": 25}

    for name in ("Ann", "Bob", "Cid"):
        service.ratings.add_player(league, make_user(name))
    assert len(service.league_table(league)) == 3
    assert len(service.league_table(league, limit=2)) == 2
