"""League membership, rating updates and league tables."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.leagues.config import LeaguePresetConfig
from domain.leagues.rating_rules import (
    EloRatingStrategy,
    KillerPoolRatingStrategy,
    RatedPlayer,
    RatingType,
    parse_rules,
    strategy_for,
)
from domain.leagues.standings import (
    CompletedMatch,
    LeagueStandingEntry,
    accumulate_match_stats,
    rank_entries,
)
from models import Game, League, MatchGame, MultiplayerGame, Rating, User
from repositories import leagues as league_repo
from repositories.base import get_or_raise

logger = logging.getLogger(__name__)


class RatingService:
    """Keeps league ratings and positions consistent."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add_player(self, league: League, user: User) -> bool:
        """Join or rejoin a league; returns False when the league is full."""
        if league.max_players != 0:
            if league_repo.count_active_confirmed(self.session, league.id) >= league.max_players:
                return False

        rating = league_repo.get_rating(self.session, league.id, user.id)
        if rating is not None:
            rating.is_active = True
        else:
            above = league_repo.min_position_above(self.session, league.id, league.start_rating)
            rating = Rating(
                league_id=league.id,
                user_id=user.id,
                rating=league.start_rating,
                position=(above or 1) + 1,
                is_active=True,
                is_confirmed=False,
            )
            self.session.add(rating)
        self.session.flush()

        self.rearrange_positions(league.id)
        logger.info("league=%s user=%s joined", league.id, user.id)
        return True

    def disable_player(self, league: League, user: User) -> bool:
        rating = league_repo.get_active_rating(self.session, league.id, user.id)
        if rating is not None:
            rating.is_active = False
            self.session.flush()
            self.rearrange_positions(league.id)
        return True

    def confirm_player(self, league: League, rating: Rating) -> Rating:
        self._check_belongs(league, rating)
        rating.is_confirmed = True
        self.session.flush()
        self.rearrange_positions(league.id)
        return rating

    def reject_player(self, league: League, rating: Rating) -> None:
        self._check_belongs(league, rating)
        rating.is_active = False
        rating.is_confirmed = False
        self.session.flush()
        self.rearrange_positions(league.id)

    def bulk_confirm_players(self, league: League, rating_ids: Iterable[int]) -> int:
        """Confirm pending ratings among rating_ids; returns how many changed."""
        wanted = set(rating_ids)
        confirmed = 0
        for rating in league_repo.list_ratings(self.session, league.id, active_only=True):
            if rating.id in wanted and not rating.is_confirmed:
                rating.is_confirmed = True
                confirmed += 1
        self.session.flush()
        self.rearrange_positions(league.id)
        return confirmed

    def deactivate_player(self, league: League, rating: Rating) -> None:
        self._check_belongs(league, rating)
        if not rating.is_confirmed or not rating.is_active:
            raise DomainError("Player is not currently confirmed or active")
        self.reject_player(league, rating)

    def pending_players(self, league: League) -> list[Rating]:
        return [
            rating
            for rating in league_repo.list_ratings(self.session, league.id, active_only=True)
            if not rating.is_confirmed
        ]

    def standings(self, league_id: int, *, active_only: bool = False) -> list[LeagueStandingEntry]:
        """Rank the league's ratings without writing positions."""
        ratings = league_repo.list_ratings(self.session, league_id, active_only=active_only)
        entries = [
            LeagueStandingEntry(
                rating_id=rating.id,
                rating=rating.rating,
                firstname=rating.user.firstname,
                lastname=rating.user.lastname,
            )
            for rating in ratings
        ]
        completed = [
            CompletedMatch(
                first_rating_id=match.first_rating_id,
                second_rating_id=match.second_rating_id,
                first_score=match.first_user_score,
                second_score=match.second_user_score,
                winner_rating_id=match.winner_rating_id,
            )
            for match in league_repo.completed_matches(self.session, league_id)
        ]
        return rank_entries(accumulate_match_stats(entries, completed).values())

    def rearrange_positions(self, league_id: int) -> list[LeagueStandingEntry]:
        ranked = self.standings(league_id)
        by_id = {rating.id: rating for rating in league_repo.list_ratings(self.session, league_id)}
        for entry in ranked:
            by_id[entry.rating_id].position = entry.position
        self.session.flush()
        return ranked

    def update_ratings(self, match_game: MatchGame, winner_user_id: int) -> list[int]:
        """Apply the league strategy to a finished match; returns [winner_delta, loser_delta]."""
        league = get_or_raise(self.session, League, match_game.league_id, label="League")
        first = get_or_raise(self.session, Rating, match_game.first_rating_id, label="Rating")
        second = get_or_raise(self.session, Rating, match_game.second_rating_id, label="Rating")

        strategy = strategy_for(league.rating_type)
        if not isinstance(strategy, EloRatingStrategy):
            raise DomainError("Match games can only be rated in elo leagues")

        result = strategy.calculate(
            RatedPlayer(rating_id=first.id, user_id=first.user_id, rating=first.rating),
            RatedPlayer(rating_id=second.id, user_id=second.user_id, rating=second.rating),
            winner_user_id,
            parse_rules(league.rating_change_for_winners_rule or []),
            parse_rules(league.rating_change_for_losers_rule or []),
        )

        winner, loser = (first, second) if first.user_id == winner_user_id else (second, first)
        deltas = [result[winner.id] - winner.rating, result[loser.id] - loser.rating]
        winner.rating = result[winner.id]
        loser.rating = result[loser.id]
        self.session.flush()

        self.rearrange_positions(league.id)
        logger.debug("match=%s winner_delta=%s loser_delta=%s", match_game.id, deltas[0], deltas[1])
        return deltas

    def apply_rating_points_for_multiplayer_game(self, game: MultiplayerGame) -> dict[int, int]:
        """Add each player's killer-pool rating points to their league rating."""
        league = get_or_raise(self.session, League, game.league_id, label="League")
        if RatingType(league.rating_type) is not RatingType.KILLER_POOL:
            raise DomainError("League rating type must be KillerPool")

        strategy = KillerPoolRatingStrategy()

        points_by_user = {player.user_id: player.rating_points for player in game.players}
        ratings = league_repo.ratings_for_users(self.session, league.id, list(points_by_user))
        result = strategy.calculate(
            [RatedPlayer(rating_id=rating.id, user_id=rating.user_id, rating=rating.rating) for rating in ratings],
            points_by_user,
        )
        for rating in ratings:
            rating.rating = result[rating.id]
        self.session.flush()

        self.rearrange_positions(league.id)
        return result

    @staticmethod
    def _check_belongs(league: League, rating: Rating) -> None:
        if rating.league_id != league.id:
            raise DomainError("Rating does not belong to the specified league")


class LeagueService:
    """League creation and read models."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.ratings = RatingService(session)

    def create_league(self, preset: LeaguePresetConfig, game: Game, name: str) -> League:
        league = League(name=name, game_id=game.id, **preset.as_config_json())
        self.session.add(league)
        self.session.flush()
        logger.info("league=%s created from preset=%s", league.id, preset.name)
        return league

    def league_table(self, league: League, *, limit: int | None = None) -> list[LeagueStandingEntry]:
        """Standings of active players, best first."""
        table = self.ratings.standings(league.id, active_only=True)
        return table if limit is None else table[:limit]

    def games(self, league: League) -> list[MatchGame]:
        return league_repo.list_match_games(self.session, league.id)


__all__ = ["LeagueService", "RatingService"]
