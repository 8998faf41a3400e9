"""Challenge matches between two players of a league."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.orm import Session

from domain.errors import DomainError, PermissionDeniedError
from models import League, MatchGame, User
from repositories import leagues as league_repo
from repositories.base import get_or_raise
from services.leagues import RatingService

logger = logging.getLogger(__name__)


class MatchGameStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MUST_BE_CONFIRMED = "must_be_confirmed"


class MatchGameService:
    """Invite, accept, decline and report league challenge matches."""

    def __init__(self, session: Session, rating_service: RatingService | None = None) -> None:
        self.session = session
        self.ratings = rating_service or RatingService(session)

    def send_game(
        self,
        user: User,
        league: League,
        opponent: User,
        *,
        stream_url: str | None = None,
        details: str | None = None,
        now: datetime | None = None,
    ) -> MatchGame:
        sender = league_repo.get_active_rating(self.session, league.id, user.id)
        receiver = league_repo.get_active_rating(self.session, league.id, opponent.id)
        if sender is None or receiver is None:
            raise DomainError("Both players must be active in the league")
        if sender.id == receiver.id:
            raise DomainError("Cannot challenge yourself")
        if league_repo.has_open_match(self.session, league.id, [sender.id, receiver.id]):
            raise DomainError("One of the players already has an open match in this league")

        sent_at = now or datetime.now()
        match_game = MatchGame(
            league_id=league.id,
            game_id=league.game_id,
            first_rating_id=sender.id,
            second_rating_id=receiver.id,
            first_rating_before_game=sender.rating,
            second_rating_before_game=receiver.rating,
            status=MatchGameStatus.PENDING.value,
            stream_url=stream_url,
            details=details,
            invitation_sent_at=sent_at,
            invitation_available_till=sent_at + timedelta(days=league.invite_days_expire),
        )
        self.session.add(match_game)
        self.session.flush()
        logger.info("match_game=%s sent league=%s", match_game.id, league.id)
        return match_game

    def accept(self, user: User, match_game: MatchGame, *, now: datetime | None = None) -> MatchGame:
        current = now or datetime.now()
        self._check_invitation(user, match_game, current)
        match_game.status = MatchGameStatus.IN_PROGRESS.value
        match_game.invitation_accepted_at = current
        self.session.flush()
        return match_game

    def decline(self, user: User, match_game: MatchGame, *, now: datetime | None = None) -> MatchGame:
        """Decline an invitation; the sender wins by forfeit."""
        current = now or datetime.now()
        self._check_invitation(user, match_game, current)
        league = get_or_raise(self.session, League, match_game.league_id, label="League")

        sender_user_id = match_game.first_rating.user_id
        winner_delta, loser_delta = self.ratings.update_ratings(match_game, sender_user_id)

        match_game.status = MatchGameStatus.COMPLETED.value
        match_game.first_user_score = league.max_score
        match_game.second_user_score = 0
        match_game.winner_rating_id = match_game.first_rating_id
        match_game.loser_rating_id = match_game.second_rating_id
        match_game.rating_change_for_winner = winner_delta
        match_game.rating_change_for_loser = loser_delta
        match_game.finished_at = current
        self.session.flush()

        self.ratings.rearrange_positions(league.id)
        logger.info("match_game=%s declined; forfeit to rating=%s", match_game.id, match_game.first_rating_id)
        return match_game

    def send_result(
        self,
        user: User,
        match_game: MatchGame,
        first_score: int,
        second_score: int,
        *,
        now: datetime | None = None,
    ) -> MatchGame:
        if match_game.status != MatchGameStatus.IN_PROGRESS.value:
            raise DomainError("Match game is not in progress")
        if first_score == second_score:
            raise DomainError("Match game cannot end in a tie")
        if user.id not in (match_game.first_rating.user_id, match_game.second_rating.user_id):
            raise PermissionDeniedError("Only participants can report the result")

        league = get_or_raise(self.session, League, match_game.league_id, label="League")
        first_won = first_score > second_score
        winner_rating = match_game.first_rating if first_won else match_game.second_rating
        loser_rating = match_game.second_rating if first_won else match_game.first_rating

        winner_delta, loser_delta = self.ratings.update_ratings(match_game, winner_rating.user_id)

        match_game.status = MatchGameStatus.COMPLETED.value
        match_game.first_user_score = min(first_score, league.max_score)
        match_game.second_user_score = min(second_score, league.max_score)
        match_game.winner_rating_id = winner_rating.id
        match_game.loser_rating_id = loser_rating.id
        match_game.rating_change_for_winner = winner_delta
        match_game.rating_change_for_loser = loser_delta
        match_game.finished_at = now or datetime.now()
        self.session.flush()

        # positions depend on frame totals of this match too
        self.ratings.rearrange_positions(league.id)
        logger.info(
            "match_game=%s completed score=%s:%s",
            match_game.id,
            match_game.first_user_score,
            match_game.second_user_score,
        )
        return match_game

    def list_games(self, league: League) -> list[MatchGame]:
        return league_repo.list_match_games(self.session, league.id)

    def _check_invitation(self, user: User, match_game: MatchGame, now: datetime) -> None:
        if user.id != match_game.second_rating.user_id:
            raise PermissionDeniedError("Only the invited player can answer the invitation")
        if match_game.status != MatchGameStatus.PENDING.value:
            raise DomainError("Match game is not pending")
        if match_game.invitation_available_till is not None and now > match_game.invitation_available_till:
            raise DomainError("Invitation has expired")
        rating = league_repo.get_active_rating(self.session, match_game.league_id, user.id)
        if rating is None or rating.id != match_game.second_rating_id:
            raise PermissionDeniedError("Player is not active in this league")


__all__ = ["MatchGameService", "MatchGameStatus"]
