"""Tests for per-user league statistics."""

from __future__ import annotations

from repositories import leagues as league_repo
from services.leagues import RatingService
from services.match_games import MatchGameService
from services.user_stats import UserStatsService


def _join(session, league, *users) -> None:
    ratings = RatingService(session)
    for user in users:
        ratings.add_player(league, user)
        ratings.confirm_player(league, league_repo.get_rating(session, league.id, user.id))


def _play(session, league, sender, opponent, first_score: int, second_score: int, now) -> None:
    service = MatchGameService(session)
    match_game = service.accept(opponent, service.send_game(sender, league, opponent, now=now), now=now)
    service.send_result(sender, match_game, first_score, second_score, now=now)


def test_user_stats_across_leagues(session, make_league, make_game, make_user, now) -> None:
    pool = make_league()
    snooker = make_league(game=make_game("Snooker", "snooker"))
    ann, bob, cid = make_user("Ann"), make_user("Bob"), make_user("Cid")
    _join(session, pool, ann, bob, cid)
    _join(session, snooker, ann, bob)

    _play(session, pool, ann, bob, 7, 3, now)
    _play(session, snooker, ann, bob, 2, 7, now)
    MatchGameService(session).send_game(ann, pool, cid, now=now)

    stats = UserStatsService(session).user_stats(ann)

    assert stats == {
        "total_matches": 3,
        "completed_matches": 2,
        "wins": 1,
        "losses": 1,
        "win_rate": 50,
        "leagues_count": 2,
        "highest_rating": 1025,
        "average_rating": 1000,
    }
    assert len(UserStatsService(session).user_matches(ann)) == 2


def test_game_type_stats_split_by_discipline(session, make_league, make_game, make_user, now) -> None:
    pool = make_league()
    snooker = make_league(game=make_game("Snooker", "snooker"))
    ann, bob = make_user("Ann"), make_user("Bob")
    _join(session, pool, ann, bob)
    _join(session, snooker, ann, bob)

    _play(session, pool, ann, bob, 7, 3, now)
    _play(session, pool, bob, ann, 7, 5, now)
    _play(session, pool, ann, bob, 7, 1, now)
    _play(session, snooker, ann, bob, 2, 7, now)

    assert UserStatsService(session).game_type_stats(ann) == {
        "pool": {"matches": 3, "wins": 2, "losses": 1, "win_rate": 67},
        "snooker": {"matches": 1, "wins": 0, "losses": 1, "win_rate": 0},
    }


def test_user_without_leagues_has_empty_stats(session, make_user) -> None:
    service = UserStatsService(session)
    loner = make_user("Lone")

    assert service.user_stats(loner)["total_matches"] == 0
    assert service.user_stats(loner)["win_rate"] == 0
    assert service.game_type_stats(loner) == {}
    assert service.user_matches(loner) == []
