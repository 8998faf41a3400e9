"""Turn a seeded field into bracket, group and playoff match rows."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.tournaments.brackets import (
    DEFAULT_RACES_TO,
    BracketPlan,
    RacesTo,
    SeededPlayer,
    plan_double_elimination,
    plan_olympic_double_elimination,
    plan_round_robin,
    plan_single_elimination,
    playoff_seeds,
)
from domain.tournaments.enums import (
    GROUP_CAPABLE_TYPES,
    EliminationRound,
    MatchStage,
    PlayerStatus,
    TournamentStage,
    TournamentStatus,
    TournamentType,
)
from domain.tournaments.groups import DEFAULT_ADVANCE_COUNT, plan_groups
from models import Tournament, TournamentBracket, TournamentGroup, TournamentMatch, TournamentPlayer
from repositories import tournaments as tournament_repo
from services.tournament_matches import TournamentMatchService, materialize_matches

logger = logging.getLogger(__name__)


def races_for(tournament: Tournament) -> RacesTo:
    return RacesTo(round_races_to=dict(tournament.round_races_to or {}), default=tournament.races_to)


def seeded_players(players: Sequence[TournamentPlayer]) -> list[SeededPlayer]:
    """Seeds in seed order; unseeded players fill in behind the seeded ones."""
    ordered = sorted(players, key=lambda player: (player.seed_number is None, player.seed_number or 0, player.id))
    return [SeededPlayer(user_id=player.user_id, seed_number=index) for index, player in enumerate(ordered, start=1)]


class BracketService:
    """Generates match structures; results are handled by TournamentMatchService."""

    def __init__(self, session: Session, *, match_service: TournamentMatchService | None = None) -> None:
        self.session = session
        self.match_service = match_service or TournamentMatchService(session)

    def generate_bracket(self, tournament: Tournament, *, now: datetime | None = None) -> list[TournamentMatch]:
        players = tournament_repo.confirmed_players(self.session, tournament.id)
        if len(players) < 2:
            raise DomainError("At least 2 confirmed players are required to generate a bracket")

        seeds = seeded_players(players)
        plan = self._plan(tournament, seeds)

        tournament_repo.clear_matches(self.session, tournament.id)
        tournament_repo.clear_brackets(self.session, tournament.id)
        self._store_brackets(tournament, plan)
        rows = materialize_matches(self.session, tournament, plan.matches)

        tournament.brackets_generated = True
        tournament.stage = TournamentStage.BRACKET.value
        if tournament.status == TournamentStatus.UPCOMING.value:
            tournament.status = TournamentStatus.ACTIVE.value
        self.session.flush()

        settled = self.match_service.settle_walkovers(tournament, now=now)
        logger.info(
            "tournament=%s bracket generated type=%s players=%s matches=%s walkovers=%s",
            tournament.id,
            tournament.tournament_type,
            len(seeds),
            len(rows),
            len(set(settled)),
        )
        return list(rows.values())

    def generate_groups(self, tournament: Tournament) -> list[TournamentGroup]:
        if TournamentType(tournament.tournament_type) not in GROUP_CAPABLE_TYPES:
            raise DomainError("Tournament type does not support group stage")

        players = tournament_repo.confirmed_players(self.session, tournament.id)
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

        tournament_repo.clear_matches(self.session, tournament.id)
        tournament_repo.clear_groups(self.session, tournament.id)

        by_user = {player.user_id: player for player in players}
        groups = []
        for planned in plan.groups:
            group = TournamentGroup(
                tournament_id=tournament.id,
                group_code=planned.code,
                group_size=len(planned.players),
                advance_count=planned.advance_count,
            )
            self.session.add(group)
            groups.append(group)
            for seeded in planned.players:
                player = by_user[seeded.user_id]
                player.group_code = planned.code
                player.group_position = None
                player.group_wins = 0
                player.group_losses = 0
                player.group_games_diff = 0
        materialize_matches(self.session, tournament, plan.matches)

        tournament.stage = TournamentStage.GROUP.value
        if tournament.status == TournamentStatus.UPCOMING.value:
            tournament.status = TournamentStatus.ACTIVE.value
        self.session.flush()
        logger.info(
            "tournament=%s groups generated groups=%s matches=%s",
            tournament.id,
            len(groups),
            len(plan.matches),
        )
        return groups

    def create_playoff_bracket(self, tournament: Tournament, *, now: datetime | None = None) -> list[TournamentMatch]:
        """Seed group qualifiers into a single-elimination playoff."""
        groups = tournament_repo.list_groups(self.session, tournament.id)
        if not groups:
            raise DomainError("Tournament has no groups")
        if not all(group.is_completed for group in groups):
            raise DomainError("All groups must be completed before the playoff is created")
        if tournament_repo.list_matches(self.session, tournament.id, TournamentMatch.stage == MatchStage.BRACKET.value):
            raise DomainError("Playoff bracket already exists")

        advance_count = tournament.playoff_players_per_group or DEFAULT_ADVANCE_COUNT
        rankings = {
            group.group_code: [
                int(row["user_id"]) for row in sorted(group.standings_cache or [], key=lambda row: row["position"])
            ]
            for group in groups
        }
        seeds = playoff_seeds(rankings, advance_count)
        if len(seeds) < 2:
            raise DomainError("At least 2 qualifiers are required for the playoff")

        plan = plan_single_elimination(seeds, races_for(tournament), third_place=tournament.has_third_place_match)
        self._store_brackets(tournament, plan)
        rows = materialize_matches(self.session, tournament, plan.matches)
        self._place_non_qualifiers(tournament, groups, qualified={seed.user_id for seed in seeds})

        tournament.stage = TournamentStage.BRACKET.value
        tournament.brackets_generated = True
        self.session.flush()
        self.match_service.settle_walkovers(tournament, now=now)
        logger.info("tournament=%s playoff created qualifiers=%s matches=%s", tournament.id, len(seeds), len(rows))
        return list(rows.values())

    def _plan(self, tournament: Tournament, seeds: list[SeededPlayer]) -> BracketPlan:
        races = races_for(tournament)
        tournament_type = TournamentType(tournament.tournament_type)
        try:
            if tournament_type is TournamentType.SINGLE_ELIMINATION:
                return plan_single_elimination(seeds, races, third_place=tournament.has_third_place_match)
            if tournament_type.is_double_elimination:
                return plan_double_elimination(seeds, races)
            if tournament_type is TournamentType.OLYMPIC_DOUBLE_ELIMINATION:
                return plan_olympic_double_elimination(
                    seeds,
                    races,
                    phase_size=tournament.olympic_phase_size,
                    olympic_third_place=tournament.olympic_has_third_place,
                    third_place=tournament.has_third_place_match,
                )
            if tournament_type is TournamentType.ROUND_ROBIN:
                return plan_round_robin(seeds, races)
        except ValueError as exc:
            raise DomainError(str(exc)) from exc
        raise DomainError(f"Bracket generation not supported for tournament type: {tournament_type.value}")

    def _store_brackets(self, tournament: Tournament, plan: BracketPlan) -> None:
        for planned in plan.brackets:
            self.session.add(
                TournamentBracket(
                    tournament_id=tournament.id,
                    bracket_type=planned.bracket_type.value,
                    total_rounds=planned.total_rounds,
                    players_count=planned.players_count,
                    bracket_metadata=dict(planned.metadata) if planned.metadata else None,
                )
            )
        self.session.flush()

    def _place_non_qualifiers(
        self,
        tournament: Tournament,
        groups: Sequence[TournamentGroup],
        *,
        qualified: set[int],
    ) -> None:
        """Players knocked out in the groups finish behind the playoff field."""
        rows = [
            row
            for group in groups
            for row in (group.standings_cache or [])
            if int(row["user_id"]) not in qualified
        ]
        rows.sort(key=lambda row: (row["position"], -row["points"], -row["games_diff"], -row["games_won"]))
        for position, row in enumerate(rows, start=len(qualified) + 1):
            player = tournament_repo.get_player(self.session, tournament.id, int(row["user_id"]))
            if player is not None and player.status == PlayerStatus.CONFIRMED.value:
                player.position = position
                player.elimination_round = EliminationRound.GROUPS.value


__all__ = ["BracketService", "races_for", "seeded_players"]
