"""Official rating maintenance: tournaments, players, positions and rebuilds."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.official_ratings.records import (
    TournamentResult,
    add_tournament,
    integrity_issues,
    recalculate_from_records,
    remove_tournament,
)
from models import (
    Game,
    OfficialRating,
    OfficialRatingPlayer,
    OfficialRatingTournament,
    Tournament,
)
from repositories import official_ratings as rating_repo
from repositories import tournaments as tournament_repo
from repositories.base import get_or_raise

logger = logging.getLogger(__name__)


def _tournament_date(tournament: Tournament) -> date:
    moment = tournament.end_date or tournament.start_date or datetime.now()
    return moment.date()


def _snapshot(player: OfficialRatingPlayer) -> tuple[Any, ...]:
    return (
        player.rating_points,
        player.tournaments_played,
        player.tournaments_won,
        round(player.total_prize_amount or 0, 2),
        round(player.total_bonus_amount or 0, 2),
        round(player.total_achievement_amount or 0, 2),
        round(player.total_killer_pool_prize_amount or 0, 2),
    )


class OfficialRatingService:
    """Keeps official rating players in sync with tournament results."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add_player_to_rating(
        self,
        rating: OfficialRating,
        user_id: int,
        *,
        initial_rating: int | None = None,
    ) -> OfficialRatingPlayer:
        existing = rating_repo.get_rating_player(self.session, rating.id, user_id)
        if existing is not None:
            return existing

        player = OfficialRatingPlayer(
            official_rating_id=rating.id,
            user_id=user_id,
            rating_points=rating.initial_rating if initial_rating is None else initial_rating,
            position=len(rating_repo.list_rating_players(self.session, rating.id)) + 1,
            is_active=True,
            tournament_records=[],
            total_prize_amount=0.0,
            total_bonus_amount=0.0,
            total_achievement_amount=0.0,
            total_killer_pool_prize_amount=0.0,
        )
        self.session.add(player)
        self.session.flush()
        self.recalculate_positions(rating)
        return player

    def recalculate_positions(self, rating: OfficialRating) -> None:
        for index, player in enumerate(rating_repo.ranked_players(self.session, rating.id), start=1):
            player.position = index
        self.session.flush()

    def add_tournament_to_rating(
        self,
        rating: OfficialRating,
        tournament: Tournament,
        *,
        rating_coefficient: float = 1.0,
        is_counting: bool = True,
    ) -> OfficialRatingTournament:
        game = get_or_raise(self.session, Game, tournament.game_id, label="Game")
        if game.type != rating.game_type:
            raise DomainError("Tournament game type does not match rating game type")
        if rating_repo.get_rating_tournament(self.session, rating.id, tournament.id) is not None:
            raise DomainError("Tournament is already added to this rating")

        link = OfficialRatingTournament(
            official_rating_id=rating.id,
            tournament_id=tournament.id,
            rating_coefficient=rating_coefficient,
            is_counting=is_counting,
        )
        self.session.add(link)
        self.session.flush()

        for tournament_player in tournament_repo.list_players(self.session, tournament.id):
            self.add_player_to_rating(rating, tournament_player.user_id)
        logger.info("rating=%s attached tournament=%s coefficient=%s", rating.id, tournament.id, rating_coefficient)
        return link

    def remove_tournament_from_rating(self, rating: OfficialRating, tournament: Tournament) -> None:
        link = rating_repo.get_rating_tournament(self.session, rating.id, tournament.id)
        if link is None:
            raise DomainError("Tournament is not associated with this rating")

        for player in rating_repo.list_rating_players(self.session, rating.id):
            remove_tournament(player, tournament.id)
        self.session.delete(link)
        self.session.flush()
        self.recalculate_positions(rating)

    def remove_player_from_rating(self, rating: OfficialRating, user_id: int) -> None:
        player = rating_repo.get_rating_player(self.session, rating.id, user_id)
        if player is None:
            raise DomainError("Player is not in this rating")
        self.session.delete(player)
        self.session.flush()
        self.recalculate_positions(rating)

    def update_rating_from_tournament(self, rating: OfficialRating, tournament: Tournament) -> int:
        """Fold a completed tournament's results into the rating; returns players updated."""
        link = rating_repo.get_rating_tournament(self.session, rating.id, tournament.id)
        if link is None:
            raise DomainError("Tournament is not associated with this rating")
        if tournament.status != "completed":
            raise DomainError("Tournament is not completed yet")
        if not link.is_counting:
            raise DomainError("Tournament is not set to count towards rating")

        placed = tournament_repo.positioned_players(self.session, tournament.id)
        updated = self._apply_results(rating, tournament, link, placed)
        self.recalculate_positions(rating)
        logger.info("rating=%s tournament=%s updated_players=%s", rating.id, tournament.id, updated)
        return updated

    def recalculate_all_from_records(self, rating: OfficialRating) -> int:
        players = rating_repo.list_rating_players(self.session, rating.id)
        for player in players:
            recalculate_from_records(player, rating.initial_rating)
        self.session.flush()
        self.recalculate_positions(rating)
        return len(players)

    def integrity_report(self, rating: OfficialRating) -> dict[str, Any]:
        players = rating_repo.list_rating_players(self.session, rating.id)
        issues: list[dict[str, Any]] = []
        for player in players:
            player_issues = integrity_issues(player, rating.initial_rating)
            if player_issues:
                issues.append(
                    {
                        "player_id": player.id,
                        "player_name": player.user.full_name,
                        "tournament_records_count": len(player.tournament_records or []),
                        "issues": player_issues,
                    }
                )
        return {
            "total_players": len(players),
            "players_with_issues": len(issues),
            "issues": issues,
        }

    def player_delta_since(self, rating: OfficialRating, user_id: int, since: date) -> dict[str, Any] | None:
        """How a player's points, position and money changed since a date."""
        players = rating_repo.list_rating_players(self.session, rating.id)
        stats: list[dict[str, Any]] = []
        for player in players:
            before = {
                "user_id": player.user_id,
                "points": rating.initial_rating,
                "prize_amount": 0.0,
                "bonus_amount": 0.0,
                "achievement_amount": 0.0,
                "wins": 0,
                "played": 0,
            }
            for record in player.tournament_records or []:
                if date.fromisoformat(str(record["tournament_date"])) >= since:
                    continue
                before["points"] += int(record.get("rating_points", 0))
                before["prize_amount"] += float(record.get("prize_amount", 0) or 0)
                before["bonus_amount"] += float(record.get("bonus_amount", 0) or 0)
                before["achievement_amount"] += float(record.get("achievement_amount", 0) or 0)
                before["played"] += 1
                if record.get("won"):
                    before["wins"] += 1
            stats.append(before)

        stats.sort(key=lambda item: (-item["points"], -item["wins"], item["played"]))
        position_before = {item["user_id"]: index for index, item in enumerate(stats, start=1)}

        player = next((candidate for candidate in players if candidate.user_id == user_id), None)
        if player is None:
            return None
        before = next(item for item in stats if item["user_id"] == user_id)

        result: dict[str, Any] = {
            "current_points": player.rating_points,
            "points_before": before["points"],
            "points_delta": player.rating_points - before["points"],
            "current_position": player.position,
            "position_before": position_before[user_id],
            "position_delta": position_before[user_id] - player.position,
        }
        for key, attr in (
            ("prize_amount", "total_prize_amount"),
            ("bonus_amount", "total_bonus_amount"),
            ("achievement_amount", "total_achievement_amount"),
        ):
            current = float(getattr(player, attr) or 0)
            result[f"current_{key}"] = current
            result[f"{key}_before"] = before[key]
            result[f"{key}_delta"] = current - before[key]
        return result

    def one_year_rating(self) -> list[dict[str, Any]]:
        """Aggregate points and money over all tournaments not marked old."""
        totals: dict[int, dict[str, Any]] = {}
        for tournament in rating_repo.current_tournaments(self.session):
            prize_key = "killer_pool_amount" if tournament.game.is_multiplayer else "prize_amount"
            for player in tournament_repo.list_players(self.session, tournament.id):
                row = totals.setdefault(
                    player.user_id,
                    {
                        "user_id": player.user_id,
                        "player_name": player.user.full_name,
                        "rating": 0,
                        "prize_amount": 0.0,
                        "killer_pool_amount": 0.0,
                        "bonus_amount": 0.0,
                        "achievement_amount": 0.0,
                    },
                )
                row["rating"] += player.rating_points
                row[prize_key] += player.prize_amount
                row["bonus_amount"] += player.bonus_amount
                row["achievement_amount"] += player.achievement_amount

        ranked = sorted(totals.values(), key=lambda row: row["rating"], reverse=True)
        for position, row in enumerate(ranked, start=1):
            row["position"] = position
        return ranked

    def rebuild_from_tournaments(self, rating: OfficialRating) -> int:
        """Reset every record and replay completed counting tournaments by end date.

        Returns the number of players whose totals changed.
        """
        before = {
            player.user_id: _snapshot(player) for player in rating_repo.list_rating_players(self.session, rating.id)
        }
        for player in rating_repo.list_rating_players(self.session, rating.id):
            player.tournament_records = []
            recalculate_from_records(player, rating.initial_rating)
        self.session.flush()

        for tournament, link in rating_repo.counted_tournaments(self.session, rating.id):
            self._apply_results(rating, tournament, link, rating_repo.placed_players(self.session, tournament.id))
        self.recalculate_positions(rating)

        after = {
            player.user_id: _snapshot(player) for player in rating_repo.list_rating_players(self.session, rating.id)
        }
        changed = sum(1 for user_id, values in after.items() if before.get(user_id) != values)
        logger.info("rating=%s rebuilt players=%s changed=%s", rating.id, len(after), changed)
        return changed

    def _apply_results(
        self,
        rating: OfficialRating,
        tournament: Tournament,
        link: OfficialRatingTournament,
        tournament_players: Sequence[Any],
    ) -> int:
        is_multiplayer = tournament.game.is_multiplayer
        tournament_date = _tournament_date(tournament)
        for tournament_player in tournament_players:
            rating_player = self.add_player_to_rating(rating, tournament_player.user_id)
            prize = float(tournament_player.prize_amount or 0)
            add_tournament(
                rating_player,
                TournamentResult(
                    tournament_id=tournament.id,
                    rating_points=int(tournament_player.rating_points * link.rating_coefficient),
                    tournament_date=tournament_date,
                    won=tournament_player.position == 1,
                    prize_amount=0.0 if is_multiplayer else prize,
                    bonus_amount=float(tournament_player.bonus_amount or 0),
                    achievement_amount=float(tournament_player.achievement_amount or 0),
                    killer_pool_prize_amount=prize if is_multiplayer else 0.0,
                ),
            )
        self.session.flush()
        return len(tournament_players)


@dataclass(frozen=True)
class RecalculationSummary:
    """Outcome for one recalculated official rating."""

    rating_id: int
    rating_name: str
    tournaments: int
    players: int
    changed_players: int
    dry_run: bool


def recalculate_official_ratings(
    *,
    session_factory,
    rating_ids: Sequence[int] | None = None,
    dry_run: bool = False,
    echo: Callable[[str], None] | None = None,
) -> list[RecalculationSummary]:
    """Rebuild the given ratings (all active ratings when rating_ids is None)."""
    summaries: list[RecalculationSummary] = []
    with session_factory() as session:
        if rating_ids is None:
            ratings = rating_repo.active_ratings(session)
        else:
            ratings = [
                get_or_raise(session, OfficialRating, rating_id, label="Official rating") for rating_id in rating_ids
            ]

        service = OfficialRatingService(session)
        try:
            for rating in ratings:
                tournaments = len(rating_repo.counted_tournaments(session, rating.id))
                changed = service.rebuild_from_tournaments(rating)
                summary = RecalculationSummary(
                    rating_id=rating.id,
                    rating_name=rating.name,
                    tournaments=tournaments,
                    players=len(rating_repo.list_rating_players(session, rating.id)),
                    changed_players=changed,
                    dry_run=dry_run,
                )
                summaries.append(summary)
                if echo is not None:
                    prefix = "[dry-run] " if dry_run else ""
                    echo(
                        f"{prefix}rating={summary.rating_name} "
                        f"rating_id={summary.rating_id} "
                        f"tournaments={summary.tournaments} "
                        f"players={summary.players} "
                        f"changed_players={summary.changed_players}"
                    )

            if dry_run:
                session.rollback()
            else:
                session.commit()
        except Exception:
            session.rollback()
            raise
    return summaries


__all__ = ["OfficialRatingService", "RecalculationSummary", "recalculate_official_ratings"]
