"""Killer-pool game workflow: registration, turns, eliminations, payouts."""

from __future__ import annotations

import logging
import random
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from domain.errors import DomainError, PermissionDeniedError
from domain.killer_pool.config import KillerPoolParameters, KillerPoolPresetConfig
from domain.killer_pool.rules import (
    MIN_LIVES_FOR_TAKE_LIFE,
    CardType,
    EliminationRecord,
    GameAction,
    HandicapAction,
    bump_stats,
    current_round,
    deal_cards,
    empty_stats,
    finish_order,
    history_entry,
    initial_lives,
    next_turn,
    order_after,
    pays_penalty,
    random_turn_insertion,
    rating_points,
    split_prize_pool,
)
from domain.official_ratings.records import Division, division_for_position
from models import (
    Game,
    League,
    MultiplayerGame,
    MultiplayerGamePlayer,
    OfficialRating,
    Tournament,
    TournamentPlayer,
    User,
)
from repositories import leagues as league_repo
from repositories import multiplayer as multiplayer_repo
from repositories import official_ratings as rating_repo
from repositories.base import get_or_raise
from services.leagues import RatingService
from services.official_ratings import OfficialRatingService

logger = logging.getLogger(__name__)

REGISTRATION = "registration"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FINISHED = "finished"


class MultiplayerGameService:
    """Runs killer-pool games inside a league."""

    def __init__(
        self,
        session: Session,
        *,
        rng: random.Random | None = None,
        rating_service: RatingService | None = None,
        official_rating_service: OfficialRatingService | None = None,
    ) -> None:
        self.session = session
        self.rng = rng or random.Random()
        self.ratings = rating_service or RatingService(session)
        self.official_ratings = official_rating_service or OfficialRatingService(session)

    def list_games(self, league: League) -> list[MultiplayerGame]:
        return multiplayer_repo.list_games(self.session, league.id)

    # registration

    def create(
        self,
        league: League,
        name: str,
        *,
        preset: KillerPoolPresetConfig | None = None,
        official_rating_id: int | None = None,
        max_players: int | None = None,
        registration_ends_at: datetime | None = None,
        allow_player_targeting: bool = False,
        **overrides: Any,
    ) -> MultiplayerGame:
        game_type = get_or_raise(self.session, Game, league.game_id, label="Game")
        if not game_type.is_multiplayer:
            raise DomainError("This league does not support multiplayer games")

        if official_rating_id is not None:
            official_rating = self.session.get(OfficialRating, official_rating_id)
            if official_rating is None or not official_rating.is_active:
                raise DomainError("Selected official rating is not available")
            if official_rating.game_type != game_type.type:
                raise DomainError("Official rating does not match the game type")

        settings = asdict(preset.parameters if preset is not None else KillerPoolParameters())
        unknown = set(overrides) - set(settings)
        if unknown:
            raise ValueError(f"Unknown killer pool settings: {sorted(unknown)}")
        settings.update(overrides)

        game = MultiplayerGame(
            league_id=league.id,
            game_id=game_type.id,
            official_rating_id=official_rating_id,
            name=name,
            status=REGISTRATION,
            max_players=max_players,
            registration_ends_at=registration_ends_at,
            allow_player_targeting=allow_player_targeting,
            current_prize_pool=0,
            **settings,
        )
        self.session.add(game)
        self.session.flush()
        logger.info("multiplayer_game=%s created league=%s", game.id, league.id)
        return game

    def is_registration_open(self, game: MultiplayerGame, *, now: datetime | None = None) -> bool:
        if game.status != REGISTRATION:
            return False
        if game.registration_ends_at is not None and (now or datetime.now()) >= game.registration_ends_at:
            return False
        return game.max_players is None or len(game.players) < game.max_players

    def join(
        self,
        league: League,
        game: MultiplayerGame,
        user: User,
        *,
        now: datetime | None = None,
    ) -> MultiplayerGame:
        if not self.is_registration_open(game, now=now) or self._find_player(game, user.id) is not None:
            raise DomainError("Cannot join this game")

        rating = league_repo.get_active_rating(self.session, league.id, user.id)
        if rating is None or not rating.is_confirmed:
            raise DomainError("You must be an active player in this league to join")

        if game.official_rating_id is not None:
            official_rating = get_or_raise(
                self.session, OfficialRating, game.official_rating_id, label="Official rating"
            )
            self.official_ratings.add_player_to_rating(official_rating, user.id)

        game.players.append(
            MultiplayerGamePlayer(
                user_id=user.id,
                joined_at=now or datetime.now(),
                total_paid=game.entrance_fee,
            )
        )
        self._update_prize_pool(game)
        return game

    def leave(self, game: MultiplayerGame, user: User) -> MultiplayerGame:
        if game.status != REGISTRATION:
            raise DomainError("Cannot leave a game that has already started")
        player = self._find_player(game, user.id)
        if player is None:
            raise DomainError("You are not a player in this game")
        game.players.remove(player)
        self._update_prize_pool(game)
        return game

    def remove_player(self, game: MultiplayerGame, user: User) -> MultiplayerGame:
        if game.status != REGISTRATION:
            raise DomainError("Cannot remove players from a game that has already started")
        player = self._find_player(game, user.id)
        if player is None:
            raise DomainError("Player is not in this game")
        game.players.remove(player)
        self._update_prize_pool(game)
        return game

    def cancel(self, game: MultiplayerGame) -> None:
        if game.status != REGISTRATION:
            raise DomainError("Cannot cancel a game that has already started")
        self.session.delete(game)
        self.session.flush()

    def start(self, game: MultiplayerGame, *, now: datetime | None = None) -> MultiplayerGame:
        players = list(game.players)
        if game.status != REGISTRATION or len(players) < 2:
            raise DomainError("Unable to start the game")

        orders = list(range(1, len(players) + 1))
        self.rng.shuffle(orders)
        lives = initial_lives(len(players))
        for player, order in zip(players, orders):
            player.turn_order = order
            player.lives = lives
            player.eliminated_at = None
            player.total_paid = game.entrance_fee
            player.cards = deal_cards(self._division_for(game, player.user_id))
            player.rounds_played = 1
            player.game_stats = empty_stats()

        by_order = sorted(players, key=lambda player: player.turn_order)
        game.status = IN_PROGRESS
        game.started_at = now or datetime.now()
        game.initial_lives = lives
        if game.moderator_user_id is None:
            game.moderator_user_id = by_order[0].user_id
        game.current_player_id = by_order[0].user_id
        game.next_turn_order = by_order[1].turn_order
        self._update_prize_pool(game)
        logger.info("multiplayer_game=%s started players=%s lives=%s", game.id, len(players), lives)
        return game

    def set_moderator(self, game: MultiplayerGame, user_id: int, current_user: User) -> MultiplayerGame:
        if not current_user.is_admin and current_user.id != game.moderator_user_id:
            raise PermissionDeniedError("Only admins or the current moderator can change the moderator")
        if self._find_player(game, user_id) is None and not current_user.is_admin:
            raise DomainError("The moderator must be a player in the game")
        game.moderator_user_id = user_id
        self.session.flush()
        return game

    # play

    def perform_action(
        self,
        user: User,
        game: MultiplayerGame,
        action: GameAction | str,
        *,
        target_user_id: int | None = None,
        card_type: CardType | str | None = None,
        acting_user_id: int | None = None,
        handicap_action: HandicapAction | str | None = None,
        now: datetime | None = None,
    ) -> MultiplayerGame:
        if game.status != IN_PROGRESS:
            raise DomainError("Game is not in progress")

        privileged = self._is_privileged(game, user)
        if acting_user_id is not None and privileged:
            acting = self._find_player(game, acting_user_id)
            if acting is None or acting.eliminated_at is not None:
                raise DomainError("Acting player not found or eliminated")
        else:
            acting = self._find_player(game, user.id)
            if acting is None or acting.eliminated_at is not None:
                raise DomainError("You are not an active player in this game")

        try:
            game_action = GameAction(action)
        except ValueError as exc:
            raise DomainError("Invalid action") from exc

        moment = now or datetime.now()
        if game_action is GameAction.INCREMENT_LIVES:
            self._change_lives(game, acting, target_user_id, privileged, delta=1, now=moment)
        elif game_action is GameAction.DECREMENT_LIVES:
            self._change_lives(game, acting, target_user_id, privileged, delta=-1, now=moment)
        elif game_action is GameAction.USE_CARD:
            if not card_type:
                raise DomainError("Card type is required")
            self._use_card(game, acting, card_type, target_user_id, handicap_action, privileged, now=moment)
        elif game_action is GameAction.RECORD_TURN:
            self._record_turn(game, acting, privileged)
        else:
            self._set_turn(game, acting, target_user_id)

        self.session.flush()
        return game

    def _change_lives(
        self,
        game: MultiplayerGame,
        acting: MultiplayerGamePlayer,
        target_user_id: int | None,
        privileged: bool,
        *,
        delta: int,
        now: datetime,
    ) -> None:
        verb = "increment" if delta > 0 else "decrement"
        if (
            target_user_id is not None
            and target_user_id != acting.user_id
            and not game.allow_player_targeting
            and not privileged
        ):
            raise PermissionDeniedError(f"You can only {verb} your own lives")

        target = acting if target_user_id is None else self._find_player(game, target_user_id)
        if target is None:
            raise DomainError("Target player not found")

        old_lives = target.lives
        if delta > 0:
            target.lives += 1
            target.game_stats = bump_stats(target.game_stats, lives_gained=1)
            acting.game_stats = bump_stats(acting.game_stats, balls_potted=1, shots_taken=1)
            data: dict[str, Any] = {"target_user_id": target.user_id, "new_lives": target.lives}
        else:
            target.lives -= 1
            target.game_stats = bump_stats(target.game_stats, lives_lost=1)
            if acting is target:
                acting.game_stats = bump_stats(acting.game_stats, shots_taken=1)
            data = {
                "target_user_id": target.user_id,
                "old_lives": old_lives,
                "new_lives": target.lives,
                "eliminated": target.lives <= 0,
            }
        self._log(game, acting.user_id, f"{verb}_lives", data)

        if target.lives <= 0:
            self._eliminate(game, target, now=now)
        if game.status == IN_PROGRESS and target.user_id == game.current_player_id:
            self._move_to_next_player(game)

    def _use_card(
        self,
        game: MultiplayerGame,
        acting: MultiplayerGamePlayer,
        card_type: CardType | str,
        target_user_id: int | None,
        handicap_action: HandicapAction | str | None,
        privileged: bool,
        *,
        now: datetime,
    ) -> None:
        self._check_turn(game, acting, privileged)
        try:
            card = CardType(card_type)
        except ValueError as exc:
            raise DomainError("Invalid card type") from exc
        if not acting.has_card(card.value):
            raise DomainError("Player does not have this card")

        if card is CardType.HANDICAP:
            self._use_handicap(game, acting, handicap_action, target_user_id, now=now)
            return

        if card is CardType.PASS_TURN:
            if target_user_id is None:
                raise DomainError("Target player is required for pass turn card")
            target = self._find_player(game, target_user_id)
            if target is None or target.eliminated_at is not None:
                raise DomainError("Target player not found or eliminated")

            self._spend_card(acting, card)
            self._log(game, acting.user_id, "use_card", {"card_type": card.value, "target_user_id": target_user_id})
            game.current_player_id = target.user_id
            game.next_turn_order = acting.turn_order
            self._log(game, target.user_id, "turn", {"received_turn": True})
            return

        self._spend_card(acting, card)
        self._log(game, acting.user_id, "use_card", {"card_type": card.value, "target_user_id": target_user_id})
        self._log(game, acting.user_id, "turn", {"card_used": card.value})
        if card is CardType.SKIP_TURN:
            self._move_to_next_player(game)

    def _use_handicap(
        self,
        game: MultiplayerGame,
        acting: MultiplayerGamePlayer,
        handicap_action: HandicapAction | str | None,
        target_user_id: int | None,
        *,
        now: datetime,
    ) -> None:
        if not handicap_action:
            raise DomainError("Handicap action is required for handicap card")
        try:
            choice = HandicapAction(handicap_action)
        except ValueError as exc:
            raise DomainError("Invalid handicap action") from exc

        if choice is HandicapAction.TAKE_LIFE:
            if target_user_id is None:
                raise DomainError("Target player is required for take life action")
            target = self._find_player(game, target_user_id)
            if target is None or target.eliminated_at is not None:
                raise DomainError("Target player not found or eliminated")
            if target.lives < MIN_LIVES_FOR_TAKE_LIFE:
                raise DomainError(f"Target player must have at least {MIN_LIVES_FOR_TAKE_LIFE} lives to take a life")
            target.lives -= 1
            target.game_stats = bump_stats(target.game_stats, lives_lost=1)
            self._log(game, acting.user_id, "take_life", {"target_user_id": target.user_id, "new_lives": target.lives})

        self._spend_card(acting, CardType.HANDICAP)
        self._log(
            game,
            acting.user_id,
            "use_card",
            {
                "card_type": CardType.HANDICAP.value,
                "handicap_action": choice.value,
                "target_user_id": target_user_id,
            },
        )

        if choice is HandicapAction.SKIP_TURN:
            self._log(game, acting.user_id, "turn", {"handicap_skip_turn": True})
            self._move_to_next_player(game)
        else:
            self._log(game, acting.user_id, "turn", {"handicap_take_life": True})

    def _record_turn(self, game: MultiplayerGame, acting: MultiplayerGamePlayer, privileged: bool) -> None:
        self._check_turn(game, acting, privileged)
        acting.game_stats = bump_stats(acting.game_stats, turns_played=1, shots_taken=1)
        self._log(game, acting.user_id, "turn", None)
        self._move_to_next_player(game)

    def _set_turn(self, game: MultiplayerGame, acting: MultiplayerGamePlayer, target_user_id: int | None) -> None:
        """Make the target current; the next turn goes to the active player after them."""
        if target_user_id is None:
            raise DomainError("Target player is required to set the turn")
        target = self._find_player(game, target_user_id)
        if target is None or target.eliminated_at is not None:
            raise DomainError("Target player not found or eliminated")

        active_orders = [player.turn_order for player in self._active_players(game)]
        game.current_player_id = target.user_id
        game.next_turn_order = order_after(active_orders, target.turn_order)
        self._log(game, acting.user_id, "set_turn", {"target_user_id": target.user_id})

    def _move_to_next_player(self, game: MultiplayerGame) -> None:
        active = self._active_players(game)
        resolved = next_turn([player.turn_order for player in active], game.next_turn_order)
        if resolved is None:
            return
        current_order, following = resolved
        game.current_player_id = next(player.user_id for player in active if player.turn_order == current_order)
        game.next_turn_order = following

    def _eliminate(self, game: MultiplayerGame, player: MultiplayerGamePlayer, *, now: datetime) -> None:
        player.eliminated_at = now
        logger.info("multiplayer_game=%s user=%s eliminated", game.id, player.user_id)

        active = self._active_players(game)
        if len(active) != 1:
            return

        active[0].eliminated_at = now + timedelta(seconds=1)
        game.status = COMPLETED
        game.completed_at = now
        self._assign_finish_positions(game)
        self.calculate_prizes(game)
        self.calculate_rating_points(game)
        self._apply_penalties(game)
        logger.info("multiplayer_game=%s completed winner=%s", game.id, active[0].user_id)

    def _assign_finish_positions(self, game: MultiplayerGame) -> None:
        order = finish_order(EliminationRecord(player.user_id, player.eliminated_at) for player in game.players)
        positions = {user_id: index for index, user_id in enumerate(order, start=1)}
        for player in game.players:
            player.finish_position = positions[player.user_id]

    def calculate_prizes(self, game: MultiplayerGame) -> None:
        split = split_prize_pool(
            game.current_prize_pool,
            first_place_percent=game.first_place_percent,
            second_place_percent=game.second_place_percent,
            players_count=len(game.players),
        )
        if split is None:
            return
        game.prize_pool = split.as_json()
        for player in game.players:
            if player.finish_position == 1:
                player.prize_amount = split.first_place
            elif player.finish_position == 2:
                player.prize_amount = split.second_place
            else:
                player.prize_amount = 0

    def calculate_rating_points(self, game: MultiplayerGame) -> None:
        positions = [player.finish_position for player in game.players if player.finish_position is not None]
        max_position = max(positions) if positions else len(game.players)
        for player in game.players:
            player.rating_points = rating_points(player.finish_position, max_position)

    def _apply_penalties(self, game: MultiplayerGame) -> None:
        for player in game.players:
            if pays_penalty(
                rounds_played=player.rounds_played,
                rebuy_count=player.rebuy_count,
                enable_penalties=game.enable_penalties,
                penalty_rounds_threshold=game.penalty_rounds_threshold,
                rebuy_rounds=game.rebuy_rounds,
            ):
                player.penalty_paid = True

    # mid-game changes

    def add_player_during_game(
        self,
        league: League,
        game: MultiplayerGame,
        user: User,
        fee: int,
        is_new_player: bool,
        admin: User,
        *,
        now: datetime | None = None,
    ) -> MultiplayerGame:
        """Rebuy an eliminated player or seat a new one while the game runs."""
        if not admin.is_admin:
            raise PermissionDeniedError("Only admins can add players during active games")
        if not game.allow_rebuy:
            raise DomainError("This game does not allow players to join during play")
        if game.status != IN_PROGRESS:
            raise DomainError("Players can only be added during active games")

        moment = now or datetime.now()
        existing = self._find_player(game, user.id)
        if existing is not None and not is_new_player:
            if existing.rebuy_count >= (game.rebuy_rounds or 0):
                raise DomainError("Maximum rebuy limit reached for this player")
            if existing.eliminated_at is None:
                raise DomainError("Player is still active in the game")

            existing.lives = game.initial_lives or 0
            existing.eliminated_at = None
            existing.finish_position = None
            existing.rebuy_count += 1
            existing.total_paid += fee
            existing.is_rebuy = True
            existing.last_rebuy_at = moment
            existing.cards = deal_cards(self._division_for(game, user.id))
            self._insert_turn_order(game, existing)
            self._add_history(game, user, fee, existing.rebuy_count, "rebuy", moment)
            existing.rounds_played = current_round(game.rebuy_history)
        else:
            if existing is not None:
                raise DomainError("Player already exists in this game. Mark as rebuy instead")
            player = MultiplayerGamePlayer(
                user_id=user.id,
                lives=game.initial_lives or 0,
                joined_at=moment,
                total_paid=fee,
                is_rebuy=False,
                rebuy_count=0,
                rounds_played=current_round(game.rebuy_history),
                cards=deal_cards(self._division_for(game, user.id)),
                game_stats=empty_stats(),
            )
            game.players.append(player)
            self._insert_turn_order(game, player)
            self._add_history(game, user, fee, 0, "new_player", moment)

        if game.lives_per_new_player > 0:
            for player in self._active_players(game):
                if player.user_id != user.id:
                    player.lives += game.lives_per_new_player
            self._log(
                game,
                user.id,
                "lives_added_to_all",
                {"lives_added": game.lives_per_new_player, "reason": "new_player_joined"},
            )

        self._update_prize_pool(game)
        self._log(
            game,
            admin.id,
            "add_new_player" if is_new_player else "rebuy_player",
            {
                "target_user_id": user.id,
                "fee": fee,
                "lives_per_new_player": game.lives_per_new_player,
                "is_new_player": is_new_player,
            },
        )
        return game

    def _insert_turn_order(self, game: MultiplayerGame, player: MultiplayerGamePlayer) -> None:
        others = [other for other in self._active_players(game) if other is not player]
        order, shifts = random_turn_insertion([other.turn_order for other in others], self.rng)
        for other in others:
            if other.turn_order in shifts:
                other.turn_order = shifts[other.turn_order]
        if game.next_turn_order in shifts:
            game.next_turn_order = shifts[game.next_turn_order]
        player.turn_order = order

    def _add_history(
        self,
        game: MultiplayerGame,
        user: User,
        amount: int,
        round_number: int,
        entry_type: str,
        moment: datetime,
    ) -> None:
        entry = history_entry(
            user_id=user.id,
            user_name=user.full_name,
            amount=amount,
            timestamp=moment,
            round_number=round_number,
            entry_type=entry_type,
        )
        game.rebuy_history = [*(game.rebuy_history or []), entry]

    # wrap-up

    def finish_game(
        self,
        game: MultiplayerGame,
        user: User,
        official_rating_id: int | None = None,
        *,
        now: datetime | None = None,
    ) -> MultiplayerGame:
        """Publish results to the league and optionally to an official rating."""
        if not self._is_privileged(game, user):
            raise PermissionDeniedError("Only admins or the moderator can finish the game")
        if game.status != COMPLETED:
            raise DomainError("Game must be completed to finish it")

        if official_rating_id is not None:
            official_rating = get_or_raise(self.session, OfficialRating, official_rating_id, label="Official rating")
            tournament = self._mirror_as_tournament(game, now=now)
            self.official_ratings.add_tournament_to_rating(official_rating, tournament, rating_coefficient=1.0)
            self.official_ratings.update_rating_from_tournament(official_rating, tournament)

        self.ratings.apply_rating_points_for_multiplayer_game(game)
        self._log(game, user.id, "finish_game", None)
        game.status = FINISHED
        self.session.flush()
        logger.info("multiplayer_game=%s finished", game.id)
        return game

    def _mirror_as_tournament(self, game: MultiplayerGame, *, now: datetime | None) -> Tournament:
        moment = now or datetime.now()
        tournament = Tournament(
            name=game.name,
            game_id=game.game_id,
            status="completed",
            stage="completed",
            start_date=game.started_at or moment,
            end_date=game.completed_at or moment,
            prize_pool=float((game.prize_pool or {}).get("total", 0)),
        )
        self.session.add(tournament)
        self.session.flush()

        for player in game.players:
            self.session.add(
                TournamentPlayer(
                    tournament_id=tournament.id,
                    user_id=player.user_id,
                    status="confirmed",
                    position=player.finish_position,
                    rating_points=player.prize_amount,
                    prize_amount=float(player.prize_amount),
                    bonus_amount=0.0,
                    achievement_amount=0.0,
                    registered_at=player.joined_at,
                    confirmed_at=player.eliminated_at or game.completed_at,
                )
            )
        self.session.flush()
        return tournament

    def financial_summary(self, game: MultiplayerGame) -> dict[str, Any]:
        if game.status != COMPLETED:
            raise DomainError("Financial summary is only available for completed games")
        if not game.prize_pool:
            self.calculate_prizes(game)

        pool = game.prize_pool or {}
        penalised = sum(1 for player in game.players if player.penalty_paid)
        history = game.rebuy_history or []
        return {
            "entrance_fee": game.entrance_fee,
            "total_players": len(game.players),
            "total_prize_pool": game.current_prize_pool,
            "first_place_prize": pool.get("first_place", 0),
            "second_place_prize": pool.get("second_place", 0),
            "grand_final_fund": pool.get("grand_final_fund", 0),
            "penalty_fee": game.penalty_fee,
            "penalty_players_count": penalised,
            "time_fund_total": penalised * game.penalty_fee,
            "rebuy_history": history,
            "total_rebuy_amount": sum(entry.get("amount", 0) for entry in history),
        }

    def rating_summary(self, game: MultiplayerGame) -> dict[str, Any]:
        if game.status != COMPLETED:
            raise DomainError("Rating summary is only available for completed games")
        if not any(player.rating_points > 0 for player in game.players):
            self.calculate_rating_points(game)

        placed = sorted(
            (player for player in game.players if player.finish_position is not None),
            key=lambda player: player.finish_position,
        )
        return {
            "players": [
                {
                    "player_id": player.id,
                    "user": {
                        "id": player.user_id,
                        "firstname": player.user.firstname,
                        "lastname": player.user.lastname,
                    },
                    "finish_position": player.finish_position,
                    "rating_points": player.rating_points,
                    "game_stats": player.game_stats,
                    "rebuy_count": player.rebuy_count,
                    "total_paid": player.total_paid,
                }
                for player in placed
            ],
            "total_players": len(game.players),
        }

    # helpers

    @staticmethod
    def _find_player(game: MultiplayerGame, user_id: int) -> MultiplayerGamePlayer | None:
        return next((player for player in game.players if player.user_id == user_id), None)

    @staticmethod
    def _active_players(game: MultiplayerGame) -> list[MultiplayerGamePlayer]:
        active = [player for player in game.players if player.eliminated_at is None]
        return sorted(active, key=lambda player: (player.turn_order or 0, player.user_id))

    @staticmethod
    def _is_privileged(game: MultiplayerGame, user: User) -> bool:
        return user.is_admin or user.id == game.moderator_user_id

    @staticmethod
    def _check_turn(game: MultiplayerGame, acting: MultiplayerGamePlayer, privileged: bool) -> None:
        if game.current_player_id != acting.user_id and not privileged:
            raise DomainError("It is not your turn")

    @staticmethod
    def _spend_card(player: MultiplayerGamePlayer, card: CardType) -> None:
        player.cards = {**(player.cards or {}), card.value: False}
        player.game_stats = bump_stats(player.game_stats, cards_used=1)

    def _division_for(self, game: MultiplayerGame, user_id: int) -> Division | None:
        if game.official_rating_id is None:
            return None
        rating_player = rating_repo.get_rating_player(self.session, game.official_rating_id, user_id)
        if rating_player is None:
            return None
        return division_for_position(rating_player.position)

    def _update_prize_pool(self, game: MultiplayerGame) -> None:
        game.current_prize_pool = sum(player.total_paid for player in game.players)
        self.session.flush()

    def _log(self, game: MultiplayerGame, user_id: int, action_type: str, data: dict[str, Any] | None) -> None:
        multiplayer_repo.add_log(
            self.session, game_id=game.id, user_id=user_id, action_type=action_type, action_data=data
        )


__all__ = ["MultiplayerGameService"]
