"""Per-player league statistics across every league a user joined."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from models import MatchGame, Rating, User
from repositories import leagues as league_repo


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _percent(part: int, whole: int) -> int:
    return _round_half_up(part / whole * 100) if whole else 0


class UserStatsService:
    """Read-only views over a user's ratings and challenge matches."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def user_ratings(self, user: User) -> list[Rating]:
        return league_repo.user_ratings(self.session, user.id)

    def user_matches(self, user: User) -> list[MatchGame]:
        rating_ids = [rating.id for rating in self.user_ratings(user)]
        if not rating_ids:
            return []
        return league_repo.list_user_match_games(self.session, rating_ids)

    def user_stats(self, user: User) -> dict[str, Any]:
        """Match totals, win rate and rating range over all of the user's leagues."""
        ratings = self.user_ratings(user)
        if not ratings:
            return {
                "total_matches": 0,
                "completed_matches": 0,
                "wins": 0,
                "losses": 0,
                "win_rate": 0,
                "leagues_count": 0,
                "highest_rating": 0,
                "average_rating": 0,
            }

        rating_ids = [rating.id for rating in ratings]
        completed = league_repo.count_user_matches(self.session, rating_ids, status="completed")
        wins = league_repo.count_user_wins(self.session, rating_ids)
        return {
            "total_matches": league_repo.count_user_matches(self.session, rating_ids),
            "completed_matches": completed,
            "wins": wins,
            "losses": completed - wins,
            "win_rate": _percent(wins, completed),
            "leagues_count": len(ratings),
            "highest_rating": max(rating.rating for rating in ratings),
            "average_rating": _round_half_up(sum(rating.rating for rating in ratings) / len(ratings)),
        }

    def game_type_stats(self, user: User) -> dict[str, dict[str, int]]:
        """Completed matches, wins and win rate per game type."""
        rating_ids = [rating.id for rating in self.user_ratings(user)]
        if not rating_ids:
            return {}

        matches = league_repo.completed_counts_by_game_type(self.session, rating_ids)
        wins = league_repo.completed_counts_by_game_type(self.session, rating_ids, wins_only=True)
        return {
            game_type: {
                "matches": count,
                "wins": wins.get(game_type, 0),
                "losses": count - wins.get(game_type, 0),
                "win_rate": _percent(wins.get(game_type, 0), count),
            }
            for game_type, count in matches.items()
        }


__all__ = ["UserStatsService"]
