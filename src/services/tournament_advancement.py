"""Move tournaments forward: close finished groups, open playoffs, complete events."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.tournaments.enums import (
    EliminationRound,
    MatchStage,
    MatchStatus,
    PlayerStatus,
    TournamentStage,
    TournamentStatus,
    TournamentType,
)
from domain.tournaments.standings import MatchResult, StandingPlayer, group_table
from models import Tournament, TournamentGroup, TournamentMatch
from repositories import tournaments as tournament_repo
from repositories.base import get_or_raise
from services.tournament_brackets import BracketService

logger = logging.getLogger(__name__)

_SETTLED = (MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value)


@dataclass(frozen=True)
class AdvancementSummary:
    """What one pass did to one tournament."""

    tournament_id: int
    tournament_name: str
    actions: tuple[str, ...]
    error: str | None
    dry_run: bool

    @property
    def advanced(self) -> bool:
        return bool(self.actions) and self.error is None


def complete_group(session: Session, tournament: Tournament, group: TournamentGroup) -> None:
    """Freeze a group's table into standings_cache and copy it onto the players."""
    matches = _group_matches(session, tournament.id, group.group_code)
    players = [
        player
        for player in tournament_repo.list_players(session, tournament.id, statuses=(PlayerStatus.CONFIRMED.value,))
        if player.group_code == group.group_code
    ]
    rows = group_table(
        [
            StandingPlayer(user_id=player.user_id, seed_number=player.seed_number)
            for player in players
        ],
        [
            MatchResult(
                match_id=match.id,
                player1_id=match.player1_id,
                player2_id=match.player2_id,
                player1_score=match.player1_score,
                player2_score=match.player2_score,
                winner_id=match.winner_id,
                completed=match.status == MatchStatus.COMPLETED.value,
                is_tiebreaker=match.is_tiebreaker,
            )
            for match in matches
        ],
        advance_count=group.advance_count,
    )
    by_user = {player.user_id: player for player in players}
    for row in rows:
        player = by_user[row.user_id]
        player.group_position = row.position
        player.group_wins = row.wins
        player.group_losses = row.losses
        player.group_games_diff = row.games_diff

    group.standings_cache = [row.as_json() for row in rows]
    group.is_completed = True
    session.flush()


def advance_tournament(
    session: Session,
    tournament: Tournament,
    *,
    force: bool = False,
    now: datetime | None = None,
) -> list[str]:
    """One advancement pass; returns the actions taken."""
    actions: list[str] = []
    tournament_type = TournamentType(tournament.tournament_type)

    groups = tournament_repo.list_groups(session, tournament.id)
    for group in groups:
        if group.is_completed:
            continue
        matches = _group_matches(session, tournament.id, group.group_code)
        if not matches:
            continue
        if force or all(match.status in _SETTLED for match in matches):
            complete_group(session, tournament, group)
            actions.append(f"group {group.group_code} completed")

    groups_done = bool(groups) and all(group.is_completed for group in groups)
    if tournament_type.has_playoff and groups_done and not _bracket_matches(session, tournament.id):
        BracketService(session).create_playoff_bracket(tournament, now=now)
        actions.append("playoff bracket created")

    if tournament.status != TournamentStatus.COMPLETED.value and _all_matches_settled(session, tournament):
        if tournament_type is TournamentType.GROUPS:
            _place_by_group_tables(session, tournament, groups)
        tournament.status = TournamentStatus.COMPLETED.value
        tournament.stage = TournamentStage.COMPLETED.value
        if tournament.end_date is None:
            tournament.end_date = now or datetime.now()
        actions.append("tournament completed")

    session.flush()
    for action in actions:
        logger.info("tournament=%s %s", tournament.id, action)
    return actions


def advance_tournaments(
    *,
    session_factory,
    tournament_ids: Sequence[int] | None = None,
    dry_run: bool = False,
    force: bool = False,
    echo: Callable[[str], None] | None = None,
) -> list[AdvancementSummary]:
    """Advance the given tournaments (all active ones when tournament_ids is None).

    Every tournament runs in its own session, so one failure does not undo the others.
    """
    with session_factory() as session:
        if tournament_ids is None:
            tournament_ids = [
                tournament.id
                for tournament in tournament_repo.tournaments_by_status(session, (TournamentStatus.ACTIVE.value,))
            ]

    summaries: list[AdvancementSummary] = []
    prefix = "[dry-run] " if dry_run else ""
    for tournament_id in tournament_ids:
        with session_factory() as session:
            name = ""
            try:
                tournament = get_or_raise(session, Tournament, tournament_id, label="Tournament")
                name = tournament.name
                actions = advance_tournament(session, tournament, force=force)
                if dry_run:
                    session.rollback()
                else:
                    session.commit()
                summary = AdvancementSummary(tournament_id, name, tuple(actions), None, dry_run)
            except DomainError as exc:
                session.rollback()
                logger.warning("tournament=%s advancement failed: %s", tournament_id, exc)
                summary = AdvancementSummary(tournament_id, name, (), str(exc), dry_run)
            except Exception as exc:
                session.rollback()
                logger.exception("tournament=%s advancement crashed", tournament_id)
                summary = AdvancementSummary(tournament_id, name, (), f"{type(exc).__name__}: {exc}", dry_run)

        summaries.append(summary)
        if echo is not None:
            if summary.error is not None:
                echo(
                    f"{prefix}tournament={summary.tournament_name} "
                    f"tournament_id={tournament_id} "
                    f"error={summary.error}"
                )
            elif summary.actions:
                echo(
                    f"{prefix}tournament={summary.tournament_name} "
                    f"tournament_id={tournament_id} "
                    f"actions={'; '.join(summary.actions)}"
                )
    return summaries


def _group_matches(session: Session, tournament_id: int, group_code: str) -> list[TournamentMatch]:
    return tournament_repo.list_matches(
        session,
        tournament_id,
        TournamentMatch.stage == MatchStage.GROUP.value,
        TournamentMatch.match_code.startswith(f"{group_code}_"),
    )


def _bracket_matches(session: Session, tournament_id: int) -> list[TournamentMatch]:
    return tournament_repo.list_matches(
        session,
        tournament_id,
        TournamentMatch.stage.in_((MatchStage.BRACKET.value, MatchStage.LOWER_BRACKET.value)),
    )


def _all_matches_settled(session: Session, tournament: Tournament) -> bool:
    matches = tournament_repo.list_matches(session, tournament.id)
    if not matches:
        return False
    if TournamentType(tournament.tournament_type).has_playoff and not _bracket_matches(session, tournament.id):
        return False
    return all(match.status in _SETTLED for match in matches)


def _place_by_group_tables(session: Session, tournament: Tournament, groups: Sequence[TournamentGroup]) -> None:
    """Group-only events: rank across groups by group place, then points and games."""
    rows = [row for group in groups for row in (group.standings_cache or [])]
    rows.sort(key=lambda row: (row["position"], -row["points"], -row["games_diff"], -row["games_won"]))
    for position, row in enumerate(rows, start=1):
        player = tournament_repo.get_player(session, tournament.id, int(row["user_id"]))
        if player is not None:
            player.position = position
            player.elimination_round = EliminationRound.GROUPS.value if position > 1 else None
    session.flush()


__all__ = ["AdvancementSummary", "advance_tournament", "advance_tournaments", "complete_group"]
