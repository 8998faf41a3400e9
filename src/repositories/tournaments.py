"""Queries for tournaments, players, groups, brackets and matches."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from models import Tournament, TournamentBracket, TournamentGroup, TournamentMatch, TournamentPlayer
from repositories.base import count_rows

OPEN_MATCH_STATUSES = ("pending", "ready", "in_progress")


def get_player(session: Session, tournament_id: int, user_id: int) -> TournamentPlayer | None:
    return session.execute(
        select(TournamentPlayer).where(
            TournamentPlayer.tournament_id == tournament_id,
            TournamentPlayer.user_id == user_id,
        )
    ).scalar_one_or_none()


def list_players(
    session: Session,
    tournament_id: int,
    *,
    statuses: Iterable[str] | None = None,
) -> list[TournamentPlayer]:
    statement = select(TournamentPlayer).where(TournamentPlayer.tournament_id == tournament_id)
    if statuses is not None:
        statement = statement.where(TournamentPlayer.status.in_(list(statuses)))
    return list(session.execute(statement.order_by(TournamentPlayer.id)).scalars())


def confirmed_players(session: Session, tournament_id: int) -> list[TournamentPlayer]:
    """Confirmed players by seed number; unseeded players last."""
    return list(
        session.execute(
            select(TournamentPlayer)
            .where(TournamentPlayer.tournament_id == tournament_id, TournamentPlayer.status == "confirmed")
            .order_by(TournamentPlayer.seed_number.is_(None), TournamentPlayer.seed_number, TournamentPlayer.id)
        ).scalars()
    )


def count_confirmed(session: Session, tournament_id: int) -> int:
    return count_rows(
        session,
        TournamentPlayer,
        TournamentPlayer.tournament_id == tournament_id,
        TournamentPlayer.status == "confirmed",
    )


def pending_applications(session: Session, tournament_id: int) -> list[TournamentPlayer]:
    return list(
        session.execute(
            select(TournamentPlayer)
            .where(TournamentPlayer.tournament_id == tournament_id, TournamentPlayer.status == "applied")
            .order_by(TournamentPlayer.applied_at, TournamentPlayer.id)
        ).scalars()
    )


def positioned_players(session: Session, tournament_id: int) -> list[TournamentPlayer]:
    return list(
        session.execute(
            select(TournamentPlayer)
            .where(TournamentPlayer.tournament_id == tournament_id, TournamentPlayer.position.is_not(None))
            .order_by(TournamentPlayer.position, TournamentPlayer.id)
        ).scalars()
    )


def list_matches(session: Session, tournament_id: int, *criteria) -> list[TournamentMatch]:
    statement = select(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)
    for criterion in criteria:
        statement = statement.where(criterion)
    return list(session.execute(statement.order_by(TournamentMatch.id)).scalars())


def get_match_by_code(session: Session, tournament_id: int, match_code: str) -> TournamentMatch | None:
    return session.execute(
        select(TournamentMatch).where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.match_code == match_code,
        )
    ).scalar_one_or_none()


def tiebreaker_matches(session: Session, tournament_id: int) -> list[TournamentMatch]:
    return [match for match in list_matches(session, tournament_id) if match.is_tiebreaker]


def list_groups(session: Session, tournament_id: int) -> list[TournamentGroup]:
    return list(
        session.execute(
            select(TournamentGroup)
            .where(TournamentGroup.tournament_id == tournament_id)
            .order_by(TournamentGroup.group_code)
        ).scalars()
    )


def list_brackets(session: Session, tournament_id: int) -> list[TournamentBracket]:
    return list(
        session.execute(
            select(TournamentBracket)
            .where(TournamentBracket.tournament_id == tournament_id)
            .order_by(TournamentBracket.id)
        ).scalars()
    )


def clear_matches(session: Session, tournament_id: int) -> None:
    """Delete all matches; self-references are cut first so any row order is safe."""
    session.execute(
        update(TournamentMatch)
        .where(TournamentMatch.tournament_id == tournament_id)
        .values(
            next_match_id=None,
            previous_match1_id=None,
            previous_match2_id=None,
            loser_next_match_id=None,
        )
    )
    session.execute(delete(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id))


def clear_brackets(session: Session, tournament_id: int) -> None:
    session.execute(delete(TournamentBracket).where(TournamentBracket.tournament_id == tournament_id))


def clear_groups(session: Session, tournament_id: int) -> None:
    session.execute(delete(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id))


def tournaments_by_status(session: Session, statuses: Iterable[str]) -> list[Tournament]:
    return list(
        session.execute(
            select(Tournament).where(Tournament.status.in_(list(statuses))).order_by(Tournament.id)
        ).scalars()
    )


__all__ = [
    "OPEN_MATCH_STATUSES",
    "clear_brackets",
    "clear_groups",
    "clear_matches",
    "confirmed_players",
    "count_confirmed",
    "get_match_by_code",
    "get_player",
    "list_brackets",
    "list_groups",
    "list_matches",
    "list_players",
    "pending_applications",
    "positioned_players",
    "tiebreaker_matches",
    "tournaments_by_status",
]
