"""Queries for leagues, ratings and challenge match games."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from models import Game, League, MatchGame, Rating
from repositories.base import count_rows

OPEN_MATCH_STATUSES = ("pending", "in_progress")
LISTED_MATCH_STATUSES = ("must_be_confirmed", "in_progress", "completed")


def get_rating(session: Session, league_id: int, user_id: int) -> Rating | None:
    return session.execute(
        select(Rating).where(Rating.league_id == league_id, Rating.user_id == user_id)
    ).scalar_one_or_none()


def get_active_rating(session: Session, league_id: int, user_id: int) -> Rating | None:
    rating = get_rating(session, league_id, user_id)
    if rating is None or not rating.is_active:
        return None
    return rating


def list_ratings(session: Session, league_id: int, *, active_only: bool = False) -> list[Rating]:
    statement = select(Rating).where(Rating.league_id == league_id)
    if active_only:
        statement = statement.where(Rating.is_active.is_(True))
    return list(session.execute(statement.order_by(Rating.position, Rating.id)).scalars())


def ratings_for_users(session: Session, league_id: int, user_ids: Sequence[int]) -> list[Rating]:
    if not user_ids:
        return []
    return list(
        session.execute(
            select(Rating).where(Rating.league_id == league_id, Rating.user_id.in_(list(user_ids)))
        ).scalars()
    )


def count_active_confirmed(session: Session, league_id: int) -> int:
    return count_rows(
        session,
        Rating,
        Rating.league_id == league_id,
        Rating.is_active.is_(True),
        Rating.is_confirmed.is_(True),
    )


def min_position_above(session: Session, league_id: int, rating: int) -> int | None:
    """Smallest position held by a rating strictly above the given value."""
    return session.execute(
        select(func.min(Rating.position)).where(Rating.league_id == league_id, Rating.rating > rating)
    ).scalar_one_or_none()


def completed_matches(session: Session, league_id: int) -> list[MatchGame]:
    return list(
        session.execute(
            select(MatchGame).where(MatchGame.league_id == league_id, MatchGame.status == "completed")
        ).scalars()
    )


def has_open_match(session: Session, league_id: int, rating_ids: Sequence[int]) -> bool:
    """True when any of the ratings has a pending or in-progress match in the league."""
    ids = list(rating_ids)
    statement = (
        select(func.count())
        .select_from(MatchGame)
        .where(
            MatchGame.league_id == league_id,
            MatchGame.status.in_(OPEN_MATCH_STATUSES),
            or_(MatchGame.first_rating_id.in_(ids), MatchGame.second_rating_id.in_(ids)),
        )
    )
    return int(session.execute(statement).scalar_one()) > 0


def list_match_games(session: Session, league_id: int) -> list[MatchGame]:
    """Accepted league matches: awaiting confirmation first, then in progress, then completed; newest first."""
    status_rank = case(
        (MatchGame.status == "must_be_confirmed", 0),
        (MatchGame.status == "in_progress", 1),
        else_=2,
    )
    statement = (
        select(MatchGame)
        .where(MatchGame.league_id == league_id, MatchGame.status.in_(LISTED_MATCH_STATUSES))
        .order_by(
            status_rank,
            MatchGame.finished_at.is_(None),
            MatchGame.finished_at.desc(),
            MatchGame.created_at.desc(),
            MatchGame.id.desc(),
        )
    )
    return list(session.execute(statement).scalars())


def user_ratings(session: Session, user_id: int) -> list[Rating]:
    """Every league rating of a user, newest first."""
    return list(
        session.execute(
            select(Rating).where(Rating.user_id == user_id).order_by(Rating.created_at.desc(), Rating.id.desc())
        ).scalars()
    )


def _involving(rating_ids: Sequence[int]):
    ids = list(rating_ids)
    return or_(MatchGame.first_rating_id.in_(ids), MatchGame.second_rating_id.in_(ids))


def list_user_match_games(session: Session, rating_ids: Sequence[int]) -> list[MatchGame]:
    """Accepted matches of any of the ratings, in the same order as list_match_games."""
    status_rank = case(
        (MatchGame.status == "must_be_confirmed", 0),
        (MatchGame.status == "in_progress", 1),
        else_=2,
    )
    statement = (
        select(MatchGame)
        .where(_involving(rating_ids), MatchGame.status.in_(LISTED_MATCH_STATUSES))
        .order_by(
            status_rank,
            MatchGame.finished_at.is_(None),
            MatchGame.finished_at.desc(),
            MatchGame.created_at.desc(),
            MatchGame.id.desc(),
        )
    )
    return list(session.execute(statement).scalars())


def count_user_matches(session: Session, rating_ids: Sequence[int], *, status: str | None = None) -> int:
    criteria = [_involving(rating_ids)]
    if status is not None:
        criteria.append(MatchGame.status == status)
    return count_rows(session, MatchGame, *criteria)


def count_user_wins(session: Session, rating_ids: Sequence[int]) -> int:
    return count_rows(
        session,
        MatchGame,
        MatchGame.winner_rating_id.in_(list(rating_ids)),
        MatchGame.status == "completed",
    )


def completed_counts_by_game_type(
    session: Session,
    rating_ids: Sequence[int],
    *,
    wins_only: bool = False,
) -> dict[str, int]:
    """{game type: completed matches} for the ratings, or only the ones they won."""
    involved = MatchGame.winner_rating_id.in_(list(rating_ids)) if wins_only else _involving(rating_ids)
    rows = session.execute(
        select(Game.type, func.count())
        .select_from(MatchGame)
        .join(League, MatchGame.league_id == League.id)
        .join(Game, League.game_id == Game.id)
        .where(MatchGame.status == "completed", involved)
        .group_by(Game.type)
    ).all()
    return {game_type: int(count) for game_type, count in rows}


__all__ = [
    "LISTED_MATCH_STATUSES",
    "OPEN_MATCH_STATUSES",
    "completed_counts_by_game_type",
    "completed_matches",
    "count_active_confirmed",
    "count_user_matches",
    "count_user_wins",
    "get_active_rating",
    "get_rating",
    "has_open_match",
    "list_match_games",
    "list_ratings",
    "list_user_match_games",
    "min_position_above",
    "ratings_for_users",
    "user_ratings",
]
