"""Shared fixtures: an in-memory SQLite schema and small row factories."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from itertools import count

import pytest
from sqlalchemy.orm import Session

from db import create_db_engine, create_session_factory, ensure_schema
from models import Game, League, Tournament, User
from repositories import tournaments as tournament_repo
from services.tournaments import TournamentService

_emails = count(1)


@pytest.fixture()
def session_factory():
    engine = create_db_engine("sqlite+pysqlite:///:memory:")
    ensure_schema(engine)
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def session(session_factory) -> Iterator[Session]:
    with session_factory() as db_session:
        yield db_session


@pytest.fixture()
def now() -> datetime:
    return datetime(2024, 5, 1, 19, 0, 0)


@pytest.fixture()
def make_user(session: Session):
    def _make_user(firstname: str = "Player", lastname: str | None = None, *, is_admin: bool = False) -> User:
        number = next(_emails)
        user = User(
            firstname=firstname,
            lastname=lastname or f"No{number}",
            email=f"player{number}@example.com",
            is_admin=is_admin,
        )
        session.add(user)
        session.flush()
        return user

    return _make_user


@pytest.fixture()
def make_game(session: Session):
    def _make_game(name: str = "Pool", game_type: str = "pool", *, is_multiplayer: bool = False) -> Game:
        game = Game(name=f"{name} {next(_emails)}", type=game_type, is_multiplayer=is_multiplayer)
        session.add(game)
        session.flush()
        return game

    return _make_game


ELO_WINNERS_RULES = [
    {"range": [0, 50], "strong": 25, "weak": 25},
    {"range": [51, 100], "strong": 20, "weak": 30},
    {"range": [101, 200], "strong": 15, "weak": 35},
    {"range": [201, 1000000], "strong": 10, "weak": 40},
]
ELO_LOSERS_RULES = [
    {"range": [0, 50], "strong": -25, "weak": -25},
    {"range": [51, 100], "strong": -20, "weak": -30},
    {"range": [101, 200], "strong": -15, "weak": -35},
    {"range": [201, 1000000], "strong": -10, "weak": -40},
]


@pytest.fixture()
def make_league(session: Session, make_game):
    def _make_league(rating_type: str = "elo", *, max_players: int = 0, start_rating: int = 1000, game=None) -> League:
        league = League(
            name=f"League {next(_emails)}",
            game_id=(game or make_game(is_multiplayer=rating_type == "killer_pool")).id,
            rating_type=rating_type,
            start_rating=start_rating,
            max_players=max_players,
            max_score=7,
            invite_days_expire=2,
            rating_change_for_winners_rule=list(ELO_WINNERS_RULES),
            rating_change_for_losers_rule=list(ELO_LOSERS_RULES),
        )
        session.add(league)
        session.flush()
        return league

    return _make_league


def seed_tournament(session: Session, game: Game, tournament_type: str, player_count: int, **fields) -> Tournament:
    """Upcoming tournament with player_count confirmed players seeded 1..n in creation order."""
    tournament = TournamentService(session).create_tournament(
        f"Open {next(_emails)}", game, tournament_type=tournament_type, **fields
    )
    for seed in range(1, player_count + 1):
        number = next(_emails)
        user = User(firstname=f"Seed{seed}", lastname=f"No{number}", email=f"seed{number}@example.com")
        session.add(user)
        session.flush()
        TournamentService(session).add_player(tournament, user.id).seed_number = seed
    session.flush()
    return tournament


def seeded_user_ids(session: Session, tournament: Tournament) -> list[int]:
    return [player.user_id for player in tournament_repo.confirmed_players(session, tournament.id)]


@pytest.fixture()
def make_tournament(session: Session, make_game):
    def _make_tournament(
        tournament_type: str = "single_elimination",
        player_count: int = 4,
        *,
        game_type: str = "pool",
        **fields,
    ) -> Tournament:
        return seed_tournament(session, make_game(game_type, game_type), tournament_type, player_count, **fields)

    return _make_tournament


@pytest.fixture()
def build_tournament():
    """seed_tournament for tests that manage their own sessions."""
    return seed_tournament
