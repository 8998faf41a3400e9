"""Queries for official ratings, their tournaments and players."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import (
    OfficialRating,
    OfficialRatingPlayer,
    OfficialRatingTournament,
    Tournament,
    TournamentPlayer,
)


def active_ratings(session: Session) -> list[OfficialRating]:
    return list(
        session.execute(
            select(OfficialRating).where(OfficialRating.is_active.is_(True)).order_by(OfficialRating.id)
        ).scalars()
    )


def get_rating_player(session: Session, rating_id: int, user_id: int) -> OfficialRatingPlayer | None:
    return session.execute(
        select(OfficialRatingPlayer).where(
            OfficialRatingPlayer.official_rating_id == rating_id,
            OfficialRatingPlayer.user_id == user_id,
        )
    ).scalar_one_or_none()


def list_rating_players(
    session: Session,
    rating_id: int,
    *,
    active_only: bool = False,
) -> list[OfficialRatingPlayer]:
    statement = select(OfficialRatingPlayer).where(OfficialRatingPlayer.official_rating_id == rating_id)
    if active_only:
        statement = statement.where(OfficialRatingPlayer.is_active.is_(True))
    return list(session.execute(statement.order_by(OfficialRatingPlayer.position, OfficialRatingPlayer.id)).scalars())


def ranked_players(session: Session, rating_id: int) -> list[OfficialRatingPlayer]:
    """Active players by points desc, wins desc, tournaments played asc."""
    return list(
        session.execute(
            select(OfficialRatingPlayer)
            .where(
                OfficialRatingPlayer.official_rating_id == rating_id,
                OfficialRatingPlayer.is_active.is_(True),
            )
            .order_by(
                OfficialRatingPlayer.rating_points.desc(),
                OfficialRatingPlayer.tournaments_won.desc(),
                OfficialRatingPlayer.tournaments_played,
                OfficialRatingPlayer.id,
            )
        ).scalars()
    )


def get_rating_tournament(session: Session, rating_id: int, tournament_id: int) -> OfficialRatingTournament | None:
    return session.execute(
        select(OfficialRatingTournament).where(
            OfficialRatingTournament.official_rating_id == rating_id,
            OfficialRatingTournament.tournament_id == tournament_id,
        )
    ).scalar_one_or_none()


def counted_tournaments(session: Session, rating_id: int) -> list[tuple[Tournament, OfficialRatingTournament]]:
    """Completed, counting tournaments of a rating, oldest end date first."""
    rows = session.execute(
        select(Tournament, OfficialRatingTournament)
        .join(OfficialRatingTournament, OfficialRatingTournament.tournament_id == Tournament.id)
        .where(
            OfficialRatingTournament.official_rating_id == rating_id,
            OfficialRatingTournament.is_counting.is_(True),
            Tournament.status == "completed",
        )
        .order_by(Tournament.end_date, Tournament.id)
    ).all()
    return [(tournament, link) for tournament, link in rows]


def ratings_for_tournament(session: Session, tournament_id: int) -> list[OfficialRating]:
    return list(
        session.execute(
            select(OfficialRating)
            .join(OfficialRatingTournament, OfficialRatingTournament.official_rating_id == OfficialRating.id)
            .where(OfficialRatingTournament.tournament_id == tournament_id)
            .order_by(OfficialRating.id)
        ).scalars()
    )


def placed_players(session: Session, tournament_id: int) -> list[TournamentPlayer]:
    """Confirmed tournament players that finished with a position."""
    return list(
        session.execute(
            select(TournamentPlayer)
            .where(
                TournamentPlayer.tournament_id == tournament_id,
                TournamentPlayer.status == "confirmed",
                TournamentPlayer.position.is_not(None),
            )
            .order_by(TournamentPlayer.position, TournamentPlayer.id)
        ).scalars()
    )


def current_tournaments(session: Session) -> list[Tournament]:
    return list(
        session.execute(select(Tournament).where(Tournament.is_old.is_(False)).order_by(Tournament.id)).scalars()
    )


__all__ = [
    "active_ratings",
    "counted_tournaments",
    "current_tournaments",
    "get_rating_player",
    "get_rating_tournament",
    "list_rating_players",
    "placed_players",
    "ranked_players",
    "ratings_for_tournament",
]
