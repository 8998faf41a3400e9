"""Tournament registration, applications, seeding and manual results."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.tournaments.brackets import DEFAULT_RACES_TO
from domain.tournaments.config import TournamentPresetConfig
from domain.tournaments.enums import (
    GROUP_TYPES,
    PlayerStatus,
    SeedingMethod,
    TournamentStage,
    TournamentStatus,
    TournamentType,
)
from domain.tournaments.groups import plan_groups
from domain.tournaments.seeding import order_by_previous_results, separate_clubs
from models import Game, Tournament, TournamentPlayer
from repositories import official_ratings as rating_repo
from repositories import tournaments as tournament_repo
from repositories.base import get_or_raise
from services.tournament_brackets import seeded_players

logger = logging.getLogger(__name__)


def is_registration_open(tournament: Tournament, confirmed_count: int, *, now: datetime | None = None) -> bool:
    if tournament.status != TournamentStatus.UPCOMING.value:
        return False
    if tournament.requires_application:
        deadline = tournament.application_deadline or tournament.start_date
        if deadline is not None and deadline < (now or datetime.now()):
            return False
    return not (tournament.max_participants and confirmed_count >= tournament.max_participants)


class TournamentService:
    """Players, applications and results of a tournament."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create_tournament(
        self,
        name: str,
        game: Game,
        *,
        preset: TournamentPresetConfig | None = None,
        **fields: Any,
    ) -> Tournament:
        settings = preset.as_config_json() if preset is not None else {}
        settings.update(fields)
        tournament = Tournament(name=name, game_id=game.id, **settings)
        self.session.add(tournament)
        self.session.flush()
        logger.info("tournament=%s created type=%s", tournament.id, tournament.tournament_type)
        return tournament

    def registration_open(self, tournament: Tournament, *, now: datetime | None = None) -> bool:
        return is_registration_open(
            tournament, tournament_repo.count_confirmed(self.session, tournament.id), now=now
        )

    def add_player(self, tournament: Tournament, user_id: int, *, now: datetime | None = None) -> TournamentPlayer:
        """Register a player directly; admin additions are confirmed immediately."""
        if tournament_repo.get_player(self.session, tournament.id, user_id) is not None:
            raise DomainError("Player is already registered for this tournament")
        confirmed = tournament_repo.count_confirmed(self.session, tournament.id)
        if tournament.max_participants and confirmed >= tournament.max_participants:
            raise DomainError("Tournament has reached maximum participants limit")
        if not is_registration_open(tournament, confirmed, now=now):
            raise DomainError("Registration is closed for this tournament")

        moment = now or datetime.now()
        player = TournamentPlayer(
            tournament_id=tournament.id,
            user_id=user_id,
            status=PlayerStatus.CONFIRMED.value,
            registered_at=moment,
            confirmed_at=moment,
        )
        self.session.add(player)
        self.session.flush()
        return player

    def remove_player(self, player: TournamentPlayer) -> None:
        self.session.delete(player)
        self.session.flush()

    # applications

    def apply(self, tournament: Tournament, user_id: int, *, now: datetime | None = None) -> TournamentPlayer:
        if not self.registration_open(tournament, now=now):
            raise DomainError("This tournament is not accepting applications at this time")
        if tournament_repo.get_player(self.session, tournament.id, user_id) is not None:
            raise DomainError("You have already applied to this tournament")

        moment = now or datetime.now()
        auto = tournament.auto_approve_applications
        player = TournamentPlayer(
            tournament_id=tournament.id,
            user_id=user_id,
            status=PlayerStatus.CONFIRMED.value if auto else PlayerStatus.APPLIED.value,
            registered_at=moment,
            applied_at=moment,
            confirmed_at=moment if auto else None,
        )
        self.session.add(player)
        self.session.flush()
        return player

    def cancel_application(self, tournament: Tournament, user_id: int) -> None:
        player = tournament_repo.get_player(self.session, tournament.id, user_id)
        if player is None:
            raise DomainError("No application found for this tournament")
        if player.status == PlayerStatus.CONFIRMED.value:
            raise DomainError("Cannot cancel confirmed application. Please contact administrator")
        self.session.delete(player)
        self.session.flush()

    def pending_applications(self, tournament: Tournament) -> list[TournamentPlayer]:
        return tournament_repo.pending_applications(self.session, tournament.id)

    def confirm_application(
        self,
        tournament: Tournament,
        player: TournamentPlayer,
        *,
        now: datetime | None = None,
    ) -> TournamentPlayer:
        self._check_belongs(tournament, player)
        confirmed = tournament_repo.count_confirmed(self.session, tournament.id)
        if tournament.max_participants and confirmed >= tournament.max_participants:
            raise DomainError("Tournament has reached maximum participants limit")
        player.status = PlayerStatus.CONFIRMED.value
        player.confirmed_at = now or datetime.now()
        self.session.flush()
        return player

    def reject_application(
        self,
        tournament: Tournament,
        player: TournamentPlayer,
        *,
        now: datetime | None = None,
    ) -> TournamentPlayer:
        self._check_belongs(tournament, player)
        if player.status != PlayerStatus.APPLIED.value:
            raise DomainError("Only pending applications can be rejected")
        player.status = PlayerStatus.REJECTED.value
        player.rejected_at = now or datetime.now()
        self.session.flush()
        return player

    def bulk_confirm(self, tournament: Tournament, player_ids: Iterable[int]) -> int:
        """Confirm applied or rejected players; stops counting once the field is full."""
        confirmed = 0
        wanted = set(player_ids)
        candidates = tournament_repo.list_players(
            self.session,
            tournament.id,
            statuses=(PlayerStatus.APPLIED.value, PlayerStatus.REJECTED.value),
        )
        for player in candidates:
            if player.id not in wanted:
                continue
            try:
                self.confirm_application(tournament, player)
            except DomainError:
                continue
            confirmed += 1
        return confirmed

    def bulk_reject(self, tournament: Tournament, player_ids: Iterable[int]) -> int:
        wanted = set(player_ids)
        rejected = 0
        for player in tournament_repo.pending_applications(self.session, tournament.id):
            if player.id in wanted:
                self.reject_application(tournament, player)
                rejected += 1
        return rejected

    # results

    def set_results(self, tournament: Tournament, results: Sequence[Mapping[str, Any]]) -> None:
        """Record final positions by hand and mark the tournament completed."""
        for result in results:
            player = get_or_raise(self.session, TournamentPlayer, int(result["player_id"]), label="Tournament player")
            if player.tournament_id != tournament.id:
                raise DomainError(f"Player {player.id} does not belong to tournament {tournament.id}")
            player.position = int(result["position"])
            player.rating_points = int(result.get("rating_points", 0) or 0)
            player.prize_amount = float(result.get("prize_amount", 0) or 0)
            player.status = PlayerStatus.CONFIRMED.value

        if tournament.status != TournamentStatus.COMPLETED.value:
            tournament.status = TournamentStatus.COMPLETED.value
        self.session.flush()

    def results(self, tournament: Tournament) -> dict[str, Any]:
        players = tournament_repo.positioned_players(self.session, tournament.id)
        return {
            "tournament": {
                "id": tournament.id,
                "name": tournament.name,
                "start_date": tournament.start_date.strftime("%Y-%m-%d") if tournament.start_date else None,
                "end_date": tournament.end_date.strftime("%Y-%m-%d") if tournament.end_date else None,
                "prize_pool": tournament.prize_pool,
            },
            "results": [
                {
                    "position": player.position,
                    "player": {"id": player.user_id, "name": player.user.full_name},
                    "rating_points": player.rating_points,
                    "prize_amount": player.prize_amount,
                }
                for player in players
            ],
        }

    @staticmethod
    def _check_belongs(tournament: Tournament, player: TournamentPlayer) -> None:
        if player.tournament_id != tournament.id:
            raise DomainError("Application does not belong to this tournament")


class SeedingService:
    """Seeding stage: assign seeds, edit them, then close the stage."""

    def __init__(self, session: Session, *, rng: random.Random | None = None) -> None:
        self.session = session
        self.rng = rng or random.Random()

    def generate_seeds(
        self,
        tournament: Tournament,
        method: SeedingMethod | str | None = None,
        *,
        avoid_same_club: bool = False,
    ) -> list[TournamentPlayer]:
        """Seed confirmed players; random seeding can spread home clubs apart."""
        self._check_stage(tournament)
        players = self._confirmed_for_seeding(tournament)

        try:
            seeding = SeedingMethod(method or tournament.seeding_method)
        except ValueError as exc:
            raise DomainError(f"Invalid seeding method: {method}") from exc

        if seeding is SeedingMethod.RANDOM and avoid_same_club:
            ordered = separate_clubs(players, lambda player: player.user.home_club_id, self.rng)
        elif seeding is SeedingMethod.RANDOM:
            ordered = list(players)
            self.rng.shuffle(ordered)
        elif seeding is SeedingMethod.RATING_BASED:
            ordered = self._by_official_rating(tournament, players)
        else:
            ordered = self._fill_manual_gaps(players)

        self._assign(ordered)
        logger.info("tournament=%s seeded method=%s players=%s", tournament.id, seeding.value, len(ordered))
        return ordered

    def seed_from_previous_results(self, tournament: Tournament, previous: Tournament) -> list[TournamentPlayer]:
        """Seed by finishing position in an earlier tournament.

        Players who did not finish there go last; ties use official rating points.
        """
        self._check_stage(tournament)
        players = self._confirmed_for_seeding(tournament)
        previous_positions = {
            player.user_id: int(player.position)
            for player in tournament_repo.positioned_players(self.session, previous.id)
        }
        ordered = order_by_previous_results(
            players,
            lambda player: player.user_id,
            previous_positions,
            self._official_points(tournament, players),
        )
        self._assign(ordered)
        logger.info("tournament=%s seeded from previous=%s players=%s", tournament.id, previous.id, len(ordered))
        return ordered

    def preview_groups(self, tournament: Tournament) -> list[dict[str, Any]]:
        """Groups generate_groups would draw from the current seeds, without saving anything."""
        players = self._confirmed_for_seeding(tournament)
        try:
            plan = plan_groups(
                seeded_players(players),
                races_to=int(tournament.races_to or DEFAULT_RACES_TO),
                min_size=tournament.group_size_min,
                max_size=tournament.group_size_max,
                advance_count=tournament.playoff_players_per_group,
            )
        except ValueError as exc:
            raise DomainError(str(exc)) from exc

        by_user = {player.user_id: player for player in players}
        return [
            {
                "group_code": group.code,
                "advance_count": group.advance_count,
                "players": [
                    {
                        "user_id": seeded.user_id,
                        "name": by_user[seeded.user_id].user.full_name,
                        "seed_number": seeded.seed_number,
                    }
                    for seeded in group.players
                ],
            }
            for group in plan.groups
        ]

    def update_seeds(self, tournament: Tournament, seeds: Mapping[int, int]) -> None:
        """Apply {player_id: seed_number} for confirmed players of the tournament."""
        self._check_stage(tournament)
        confirmed = {
            player.id: player
            for player in tournament_repo.list_players(
                self.session, tournament.id, statuses=(PlayerStatus.CONFIRMED.value,)
            )
        }
        if any(player_id not in confirmed for player_id in seeds):
            raise DomainError("Invalid player IDs provided")
        if len(set(seeds.values())) != len(seeds):
            raise DomainError("Seed numbers must be unique")

        for player_id, seed_number in seeds.items():
            confirmed[player_id].seed_number = int(seed_number)
        self.session.flush()

    def complete_seeding(self, tournament: Tournament, *, now: datetime | None = None) -> None:
        self._check_stage(tournament)
        unseeded = [
            player
            for player in tournament_repo.list_players(
                self.session, tournament.id, statuses=(PlayerStatus.CONFIRMED.value,)
            )
            if player.seed_number is None
        ]
        if unseeded:
            raise DomainError(f"There are {len(unseeded)} confirmed players without seed numbers")

        tournament_type = TournamentType(tournament.tournament_type)
        next_stage = TournamentStage.GROUP if tournament_type in GROUP_TYPES else TournamentStage.BRACKET
        tournament.stage = next_stage.value
        tournament.seeding_completed = True
        tournament.seeding_completed_at = now or datetime.now()

        tournament_repo.clear_matches(self.session, tournament.id)
        tournament_repo.clear_brackets(self.session, tournament.id)
        tournament_repo.clear_groups(self.session, tournament.id)
        self.session.flush()
        logger.info("tournament=%s seeding completed next_stage=%s", tournament.id, next_stage.value)

    def _confirmed_for_seeding(self, tournament: Tournament) -> list[TournamentPlayer]:
        players = tournament_repo.list_players(self.session, tournament.id, statuses=(PlayerStatus.CONFIRMED.value,))
        if len(players) < 2:
            raise DomainError("At least 2 confirmed players are required for seeding")
        return players

    def _assign(self, ordered: Sequence[TournamentPlayer]) -> None:
        for index, player in enumerate(ordered, start=1):
            player.seed_number = index
        self.session.flush()

    def _official_points(self, tournament: Tournament, players: Sequence[TournamentPlayer]) -> dict[int, int]:
        """{user_id: points} in the first official rating the tournament counts for."""
        ratings = rating_repo.ratings_for_tournament(self.session, tournament.id)
        if not ratings:
            return {}
        points: dict[int, int] = {}
        for player in players:
            rating_player = rating_repo.get_rating_player(self.session, ratings[0].id, player.user_id)
            points[player.user_id] = rating_player.rating_points if rating_player is not None else 0
        return points

    def _by_official_rating(self, tournament: Tournament, players: list[TournamentPlayer]) -> list[TournamentPlayer]:
        points = self._official_points(tournament, players)
        if not points:
            ordered = list(players)
            self.rng.shuffle(ordered)
            return ordered
        return sorted(players, key=lambda player: (-points[player.user_id], player.id))

    @staticmethod
    def _fill_manual_gaps(players: list[TournamentPlayer]) -> list[TournamentPlayer]:
        seeded = sorted((player for player in players if player.seed_number is not None), key=lambda p: p.seed_number)
        unseeded = [player for player in players if player.seed_number is None]
        return seeded + unseeded

    @staticmethod
    def _check_stage(tournament: Tournament) -> None:
        if tournament.stage != TournamentStage.SEEDING.value:
            raise DomainError("Tournament is not in seeding phase")


__all__ = ["SeedingService", "TournamentService", "is_registration_open"]
