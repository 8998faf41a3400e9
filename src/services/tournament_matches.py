"""Tournament match lifecycle: start, finish, edit and bracket progression."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from domain.errors import DomainError
from domain.tournaments.brackets import DEFAULT_RACES_TO, PlannedMatch
from domain.tournaments.enums import EliminationRound, MatchStage, MatchStatus, PlayerStatus, TournamentType
from domain.tournaments.positions import MatchOutcome, PositionContext, positions_for_match
from domain.tournaments.standings import (
    MAX_TIEBREAKER_ROUNDS,
    MatchResult,
    StandingPlayer,
    final_tie_key,
    head_to_head,
    plan_tiebreaker_matches,
    rank_players,
    tie_blocks,
    tiebreaker_tie_key,
)
from models import Tournament, TournamentMatch, TournamentPlayer
from repositories import tournaments as tournament_repo
from repositories.base import get_or_raise

logger = logging.getLogger(__name__)

WALKOVER_NOTE = "Walkover"
NO_SHOW_NOTE = "Walkover - opponent did not show"
EMPTY_MATCH_NOTE = "Walkover - no players"
PYRAMID_FRAME_TARGET = 8
SNOOKER_MAX_BREAK = 147

_OPEN = tuple(status.value for status in (MatchStatus.PENDING, MatchStatus.READY, MatchStatus.IN_PROGRESS))
_SETTLED = (MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value)
_EDITABLE_FIELDS = frozenset(
    {
        "player1_id",
        "player2_id",
        "status",
        "player1_score",
        "player2_score",
        "frame_scores",
        "admin_notes",
        "stream_url",
    }
)


@dataclass(frozen=True)
class MatchProgress:
    """A finished or edited match and the ids of matches its result touched."""

    match: TournamentMatch
    affected_match_ids: tuple[int, ...]


def races_to_for(match: TournamentMatch, tournament: Tournament) -> int:
    return int(match.races_to or tournament.races_to or DEFAULT_RACES_TO)


def validate_frame_scores(
    game_type: str,
    frame_scores: Sequence[Mapping[str, int]],
    player1_score: int,
    player2_score: int,
) -> None:
    """Pyramid frames end at 8 balls; snooker frames cap at 147 and go to the higher score."""
    if game_type == "pool":
        return
    player1_frames = 0
    player2_frames = 0
    for frame in frame_scores:
        first, second = int(frame["player1"]), int(frame["player2"])
        if game_type == "pyramid":
            if first == PYRAMID_FRAME_TARGET and second < PYRAMID_FRAME_TARGET:
                player1_frames += 1
            elif second == PYRAMID_FRAME_TARGET and first < PYRAMID_FRAME_TARGET:
                player2_frames += 1
            else:
                raise DomainError("Invalid pyramid frame score: one player must reach 8 balls")
        elif game_type == "snooker":
            if first > SNOOKER_MAX_BREAK or second > SNOOKER_MAX_BREAK:
                raise DomainError("Invalid snooker frame score: maximum is 147")
            if first > second:
                player1_frames += 1
            else:
                player2_frames += 1
    if player1_frames != player1_score or player2_frames != player2_score:
        raise DomainError("Frame scores do not match the match score")


def materialize_matches(
    session: Session,
    tournament: Tournament,
    planned: Iterable[PlannedMatch],
) -> dict[str, TournamentMatch]:
    """Insert planned matches, then resolve their code links to row ids."""
    rows: dict[str, TournamentMatch] = {}
    planned = list(planned)
    for plan in planned:
        row = TournamentMatch(
            tournament_id=tournament.id,
            match_code=plan.code,
            stage=plan.stage.value,
            round=plan.round.value if plan.round is not None else None,
            bracket_side=plan.side.value if plan.side is not None else None,
            bracket_position=plan.position,
            player1_id=plan.player1_id,
            player2_id=plan.player2_id,
            winner_id=plan.winner_id,
            player1_score=plan.player1_score,
            player2_score=plan.player2_score,
            races_to=plan.races_to,
            status=plan.status.value,
            match_metadata=dict(plan.metadata) if plan.metadata else None,
            admin_notes=plan.notes,
        )
        session.add(row)
        rows[plan.code] = row
    session.flush()

    for plan in planned:
        row = rows[plan.code]
        row.next_match_id = rows[plan.next_code].id if plan.next_code else None
        row.previous_match1_id = rows[plan.previous1_code].id if plan.previous1_code else None
        row.previous_match2_id = rows[plan.previous2_code].id if plan.previous2_code else None
        row.loser_next_match_id = rows[plan.loser_next_code].id if plan.loser_next_code else None
        row.loser_next_match_position = plan.loser_next_position
    session.flush()
    return rows


class TournamentMatchService:
    """Runs single matches and moves players through the bracket."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def start_match(
        self,
        match: TournamentMatch,
        *,
        stream_url: str | None = None,
        admin_notes: str | None = None,
        now: datetime | None = None,
    ) -> TournamentMatch:
        if match.status not in (MatchStatus.PENDING.value, MatchStatus.READY.value):
            raise DomainError("Match cannot be started in current status")
        if match.player1_id is None or match.player2_id is None:
            raise DomainError("Both players must be assigned before starting the match")
        match.status = MatchStatus.IN_PROGRESS.value
        match.started_at = now or datetime.now()
        match.stream_url = stream_url
        if admin_notes is not None:
            match.admin_notes = admin_notes
        self.session.flush()
        return match

    def finish_match(
        self,
        match: TournamentMatch,
        player1_score: int,
        player2_score: int,
        *,
        frame_scores: Sequence[Mapping[str, int]] | None = None,
        admin_notes: str | None = None,
        now: datetime | None = None,
    ) -> MatchProgress:
        if (
            match.status not in (MatchStatus.IN_PROGRESS.value, MatchStatus.VERIFICATION.value)
            and admin_notes != WALKOVER_NOTE
        ):
            raise DomainError("Match must be in progress or verification to be finished")

        tournament = self._tournament(match)
        self._check_scores(match, tournament, player1_score, player2_score)
        winner_id = match.player1_id if player1_score > player2_score else match.player2_id
        if winner_id is None:
            raise DomainError("The winning slot of this match is empty")

        game_type = tournament.game.type
        if frame_scores and game_type != "pool":
            validate_frame_scores(game_type, frame_scores, player1_score, player2_score)

        match.player1_score = player1_score
        match.player2_score = player2_score
        match.frame_scores = [dict(frame) for frame in frame_scores] if frame_scores and game_type != "pool" else None
        match.winner_id = winner_id
        match.status = MatchStatus.COMPLETED.value
        match.completed_at = now or datetime.now()
        if admin_notes is not None:
            match.admin_notes = admin_notes
        self.session.flush()

        affected = self._apply_result(match, tournament, now=now)
        self._update_standings(match, tournament)
        logger.info(
            "tournament=%s match=%s finished %s:%s winner=%s",
            tournament.id,
            match.match_code,
            player1_score,
            player2_score,
            winner_id,
        )
        return MatchProgress(match=match, affected_match_ids=_unique(affected))

    def update_match(
        self,
        match: TournamentMatch,
        changes: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> MatchProgress:
        """Edit a match; a changed outcome is unwound downstream and re-applied."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown match fields: {sorted(unknown)}")

        tournament = self._tournament(match)
        data = dict(changes)
        moment = now or datetime.now()

        if "frame_scores" in data:
            if tournament.game.type == "pool":
                data["frame_scores"] = None
            elif data["frame_scores"]:
                validate_frame_scores(
                    tournament.game.type,
                    data["frame_scores"],
                    int(data.get("player1_score", match.player1_score)),
                    int(data.get("player2_score", match.player2_score)),
                )

        was_completed = match.status == MatchStatus.COMPLETED.value and match.winner_id is not None
        reverted = False

        if "player1_id" in data or "player2_id" in data:
            player1_id = data.get("player1_id", match.player1_id)
            player2_id = data.get("player2_id", match.player2_id)
            if was_completed:
                self._revert(match)
                reverted = True
            if player1_id != match.player1_id or player2_id != match.player2_id:
                data.update(
                    winner_id=None,
                    status=MatchStatus.PENDING.value,
                    player1_score=0,
                    player2_score=0,
                    started_at=None,
                    completed_at=None,
                )

        new_status = data.get("status")
        if new_status is not None and new_status != match.status:
            if match.status == MatchStatus.COMPLETED.value and not reverted:
                self._revert(match)
                reverted = True
                data.setdefault("winner_id", None)
                data.setdefault("completed_at", None)
            if new_status == MatchStatus.COMPLETED.value:
                player1_score = int(data.get("player1_score", match.player1_score))
                player2_score = int(data.get("player2_score", match.player2_score))
                self._check_scores(match, tournament, player1_score, player2_score)
                data["winner_id"] = (
                    data.get("player1_id", match.player1_id)
                    if player1_score > player2_score
                    else data.get("player2_id", match.player2_id)
                )
                data["completed_at"] = moment
            elif new_status == MatchStatus.IN_PROGRESS.value:
                data.setdefault("started_at", match.started_at or moment)
            elif new_status == MatchStatus.READY.value:
                if data.get("player1_id", match.player1_id) is None or data.get("player2_id", match.player2_id) is None:
                    data["status"] = MatchStatus.PENDING.value
        elif (
            "player1_score" in data
            and "player2_score" in data
            and "status" not in data
            and match.status == MatchStatus.COMPLETED.value
        ):
            player1_score = int(data["player1_score"])
            player2_score = int(data["player2_score"])
            if player1_score == player2_score:
                raise DomainError("Match cannot end in a tie")
            if max(player1_score, player2_score) < races_to_for(match, tournament):
                if not reverted:
                    self._revert(match)
                    reverted = True
                data.update(status=MatchStatus.IN_PROGRESS.value, winner_id=None, completed_at=None)
            else:
                winner_id = (
                    data.get("player1_id", match.player1_id)
                    if player1_score > player2_score
                    else data.get("player2_id", match.player2_id)
                )
                if winner_id != match.winner_id and not reverted:
                    self._revert(match)
                    reverted = True
                data["winner_id"] = winner_id

        for field_name, value in data.items():
            setattr(match, field_name, value)
        self.session.flush()

        affected: list[int] = []
        if match.status == MatchStatus.COMPLETED.value and match.winner_id is not None:
            if reverted or not was_completed:
                affected = self._apply_result(match, tournament, now=now)
            self._update_standings(match, tournament)
        if match.player1_id is not None and match.player2_id is not None and match.status == MatchStatus.PENDING.value:
            match.status = MatchStatus.READY.value
        self.session.flush()
        return MatchProgress(match=match, affected_match_ids=_unique(affected))

    def settle_walkovers(self, tournament: Tournament, *, now: datetime | None = None) -> list[int]:
        """Close every open match whose feeders are all settled but a slot stayed empty."""
        affected: list[int] = []
        for match in tournament_repo.list_matches(self.session, tournament.id):
            if match.status in _OPEN:
                affected.extend(self._settle(match, tournament, now=now))
        return affected

    # result application

    def _apply_result(self, match: TournamentMatch, tournament: Tournament, *, now: datetime | None) -> list[int]:
        affected: list[int] = []
        self._apply_positions(match, tournament)

        metadata = match.match_metadata or {}
        if metadata.get("advances_to_olympic"):
            olympic = self._olympic_target(match)
            if olympic is not None:
                _fill_slot(olympic, match.winner_id, None)
                affected.append(olympic.id)
                affected.extend(self._settle(olympic, tournament, now=now))
        elif match.next_match_id is not None:
            target = self.session.get(TournamentMatch, match.next_match_id)
            if target is not None:
                if target.previous_match1_id == match.id:
                    slot = 1
                elif target.previous_match2_id == match.id:
                    slot = 2
                else:
                    slot = None
                _fill_slot(target, match.winner_id, slot)
                affected.append(target.id)
                affected.extend(self._settle(target, tournament, now=now))

        if match.loser_next_match_id is not None:
            target = self.session.get(TournamentMatch, match.loser_next_match_id)
            loser_id = match.loser_id()
            if target is not None:
                if loser_id is not None:
                    _fill_slot(target, loser_id, match.loser_next_match_position)
                affected.append(target.id)
                affected.extend(self._settle(target, tournament, now=now))
        self.session.flush()
        return affected

    def _settle(self, match: TournamentMatch, tournament: Tournament, *, now: datetime | None) -> list[int]:
        if match.status not in _OPEN:
            return []
        feeders = tournament_repo.list_matches(
            self.session,
            tournament.id,
            (TournamentMatch.next_match_id == match.id) | (TournamentMatch.loser_next_match_id == match.id),
        )
        if not feeders or any(feeder.status not in _SETTLED for feeder in feeders):
            return []
        if match.player1_id is not None and match.player2_id is not None:
            return []

        moment = now or datetime.now()
        winner_id = match.player1_id if match.player1_id is not None else match.player2_id
        if winner_id is None:
            match.status = MatchStatus.CANCELLED.value
            match.admin_notes = EMPTY_MATCH_NOTE
            match.completed_at = moment
            self.session.flush()
            affected = []
            for follow_id in (match.next_match_id, match.loser_next_match_id):
                follow = self.session.get(TournamentMatch, follow_id) if follow_id is not None else None
                if follow is not None:
                    affected.append(follow.id)
                    affected.extend(self._settle(follow, tournament, now=now))
            return affected

        races_to = races_to_for(match, tournament)
        match.winner_id = winner_id
        match.status = MatchStatus.COMPLETED.value
        match.completed_at = moment
        match.admin_notes = NO_SHOW_NOTE
        match.player1_score = races_to if match.player1_id == winner_id else 0
        match.player2_score = races_to if match.player2_id == winner_id else 0
        self.session.flush()
        logger.debug("tournament=%s match=%s settled as walkover", tournament.id, match.match_code)
        return [match.id, *self._apply_result(match, tournament, now=now)]

    def _apply_positions(self, match: TournamentMatch, tournament: Tournament) -> None:
        if match.winner_id is None:
            return
        outcome = MatchOutcome(
            code=match.match_code,
            stage=MatchStage(match.stage),
            round=EliminationRound(match.round) if match.round else None,
            side=match.bracket_side,
            winner_id=match.winner_id,
            loser_id=match.loser_id(),
            metadata=match.match_metadata,
        )
        context = PositionContext(
            tournament_type=TournamentType(tournament.tournament_type),
            confirmed_players=tournament_repo.count_confirmed(self.session, tournament.id),
            olympic_phase_size=tournament.olympic_phase_size,
            olympic_has_third_place=tournament.olympic_has_third_place,
        )
        for award in positions_for_match(outcome, context):
            player = tournament_repo.get_player(self.session, tournament.id, award.user_id)
            if player is None:
                continue
            player.position = award.position
            player.elimination_round = match.round
        self.session.flush()

    def _olympic_target(self, match: TournamentMatch) -> TournamentMatch | None:
        position = (match.match_metadata or {}).get("olympic_position")
        if position is None:
            return None
        target = tournament_repo.get_match_by_code(self.session, match.tournament_id, f"OS_R1M{int(position) // 2 + 1}")
        if target is None or (target.match_metadata or {}).get("olympic_stage") != "second":
            return None
        return target

    # reverting

    def _revert(self, match: TournamentMatch) -> None:
        self._revert_progression(match)
        self._revert_positions(match)

    def _revert_progression(self, match: TournamentMatch) -> None:
        """Pull this result out of every downstream match, recursively."""
        if match.winner_id is None:
            return
        if (match.match_metadata or {}).get("advances_to_olympic"):
            self._clear_from(self._olympic_target(match), match.winner_id)
        if match.next_match_id is not None:
            self._clear_from(self.session.get(TournamentMatch, match.next_match_id), match.winner_id)
        if match.loser_next_match_id is not None:
            self._clear_from(self.session.get(TournamentMatch, match.loser_next_match_id), match.loser_id())
        self.session.flush()

    def _clear_from(self, target: TournamentMatch | None, user_id: int | None) -> None:
        if target is None:
            return
        if target.winner_id is not None:
            self._revert(target)
        if user_id is not None and target.player1_id == user_id:
            target.player1_id = None
        elif user_id is not None and target.player2_id == user_id:
            target.player2_id = None
        target.status = MatchStatus.PENDING.value
        target.winner_id = None
        target.player1_score = 0
        target.player2_score = 0
        target.started_at = None
        target.completed_at = None

    def _revert_positions(self, match: TournamentMatch) -> None:
        if match.winner_id is None:
            return
        for user_id in (match.winner_id, match.loser_id()):
            if user_id is None:
                continue
            player = tournament_repo.get_player(self.session, match.tournament_id, user_id)
            if player is not None and player.elimination_round == match.round:
                player.position = None
                player.elimination_round = None
        self.session.flush()

    # standings

    def _update_standings(self, match: TournamentMatch, tournament: Tournament) -> None:
        if match.is_tiebreaker:
            self._update_tiebreaker_standings(match, tournament)
        elif tournament.tournament_type == TournamentType.ROUND_ROBIN.value:
            self._update_round_robin_standings(tournament)

    def _update_round_robin_standings(self, tournament: Tournament) -> None:
        matches = tournament_repo.list_matches(self.session, tournament.id)
        regular = [match for match in matches if not match.is_tiebreaker]
        totals = _totals(regular)
        for player in self._confirmed(tournament):
            wins, losses, diff = totals.get(player.user_id, (0, 0, 0))
            player.group_wins = wins
            player.group_losses = losses
            player.group_games_diff = diff
        self.session.flush()

        if not any(match.status in _OPEN for match in regular):
            self.calculate_round_robin_positions(tournament)

    def _update_tiebreaker_standings(self, match: TournamentMatch, tournament: Tournament) -> None:
        tiebreakers = tournament_repo.tiebreaker_matches(self.session, tournament.id)
        totals = _totals(tiebreakers)
        for player in self._confirmed(tournament):
            wins, _, diff = totals.get(player.user_id, (0, 0, 0))
            player.tiebreaker_wins = wins
            player.tiebreaker_games_diff = diff
        self.session.flush()

        metadata = match.match_metadata or {}
        block_key = metadata.get("tied_group")
        round_number = int(metadata.get("tiebreaker_round", 1))
        block_matches = [tb for tb in tiebreakers if (tb.match_metadata or {}).get("tied_group") == block_key]
        current_round = [
            tb for tb in block_matches if (tb.match_metadata or {}).get("tiebreaker_round") == round_number
        ]
        if any(tb.status in _OPEN for tb in current_round):
            return

        user_ids = {user_id for tb in block_matches for user_id in (tb.player1_id, tb.player2_id) if user_id}
        members = [self._standing(player) for player in self._confirmed(tournament) if player.user_id in user_ids]
        still_tied = tie_blocks(members, tiebreaker_tie_key)
        if still_tied and round_number < MAX_TIEBREAKER_ROUNDS:
            self._create_tiebreakers(tournament, still_tied)
        else:
            self.calculate_round_robin_positions(tournament)

    def calculate_round_robin_positions(self, tournament: Tournament) -> None:
        """Rank the whole field once every tiebreaker is settled; spawn one if a 3-way tie remains."""
        tiebreakers = tournament_repo.tiebreaker_matches(self.session, tournament.id)
        if any(tb.status in _OPEN for tb in tiebreakers):
            return

        players = self._confirmed(tournament)
        standings = [self._standing(player) for player in players]
        blocks = tie_blocks(standings, final_tie_key)
        if blocks and _last_tiebreaker_round(tiebreakers) < MAX_TIEBREAKER_ROUNDS:
            self._create_tiebreakers(tournament, blocks)
            return

        results = [_match_result(match) for match in tournament_repo.list_matches(self.session, tournament.id)]
        ranked = rank_players(standings, head_to_head(results))
        by_user = {player.user_id: player for player in players}
        for position, standing in enumerate(ranked, start=1):
            by_user[standing.user_id].position = position
            by_user[standing.user_id].group_position = position
        self.session.flush()
        logger.info("tournament=%s round-robin positions assigned players=%s", tournament.id, len(ranked))

    def _create_tiebreakers(self, tournament: Tournament, blocks: dict[str, list[StandingPlayer]]) -> None:
        round_number = _last_tiebreaker_round(tournament_repo.tiebreaker_matches(self.session, tournament.id)) + 1
        planned = plan_tiebreaker_matches(
            blocks,
            round_number=round_number,
            races_to=int(tournament.races_to or DEFAULT_RACES_TO),
        )
        materialize_matches(self.session, tournament, planned)
        logger.info(
            "tournament=%s tiebreaker round=%s blocks=%s matches=%s",
            tournament.id,
            round_number,
            len(blocks),
            len(planned),
        )

    def _confirmed(self, tournament: Tournament) -> list[TournamentPlayer]:
        return tournament_repo.list_players(self.session, tournament.id, statuses=(PlayerStatus.CONFIRMED.value,))

    @staticmethod
    def _standing(player: TournamentPlayer) -> StandingPlayer:
        return StandingPlayer(
            user_id=player.user_id,
            seed_number=player.seed_number,
            group_wins=player.group_wins,
            group_games_diff=player.group_games_diff,
            tiebreaker_wins=player.tiebreaker_wins,
            tiebreaker_games_diff=player.tiebreaker_games_diff,
        )

    # helpers

    def _tournament(self, match: TournamentMatch) -> Tournament:
        return get_or_raise(self.session, Tournament, match.tournament_id, label="Tournament")

    @staticmethod
    def _check_scores(match: TournamentMatch, tournament: Tournament, player1_score: int, player2_score: int) -> None:
        races_to = races_to_for(match, tournament)
        if player1_score < races_to and player2_score < races_to:
            raise DomainError(f"At least one player must reach {races_to} races to win")
        if player1_score == player2_score:
            raise DomainError("Match cannot end in a tie")


def _fill_slot(target: TournamentMatch, user_id: int | None, slot: int | None) -> None:
    if user_id is None:
        return
    if slot == 1:
        target.player1_id = user_id
    elif slot == 2:
        target.player2_id = user_id
    elif target.player1_id is None:
        target.player1_id = user_id
    elif target.player2_id is None:
        target.player2_id = user_id
    if target.player1_id is not None and target.player2_id is not None and target.status == MatchStatus.PENDING.value:
        target.status = MatchStatus.READY.value


def _totals(matches: Iterable[TournamentMatch]) -> dict[int, tuple[int, int, int]]:
    """(wins, losses, games diff) per user over completed matches."""
    totals: dict[int, list[int]] = {}
    for match in matches:
        if match.status != MatchStatus.COMPLETED.value or match.winner_id is None:
            continue
        loser_id = match.loser_id()
        diff = abs(match.player1_score - match.player2_score)
        winner = totals.setdefault(match.winner_id, [0, 0, 0])
        winner[0] += 1
        winner[2] += diff
        if loser_id is not None:
            loser = totals.setdefault(loser_id, [0, 0, 0])
            loser[1] += 1
            loser[2] -= diff
    return {user_id: (row[0], row[1], row[2]) for user_id, row in totals.items()}


def _match_result(match: TournamentMatch) -> MatchResult:
    return MatchResult(
        match_id=match.id,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        player1_score=match.player1_score,
        player2_score=match.player2_score,
        winner_id=match.winner_id,
        completed=match.status == MatchStatus.COMPLETED.value,
        is_tiebreaker=match.is_tiebreaker,
    )


def _last_tiebreaker_round(tiebreakers: Iterable[TournamentMatch]) -> int:
    rounds = [int((tb.match_metadata or {}).get("tiebreaker_round", 0)) for tb in tiebreakers]
    return max(rounds, default=0)


def _unique(ids: Iterable[int]) -> tuple[int, ...]:
    return tuple(dict.fromkeys(ids))


__all__ = [
    "EMPTY_MATCH_NOTE",
    "MatchProgress",
    "NO_SHOW_NOTE",
    "TournamentMatchService",
    "materialize_matches",
    "races_to_for",
    "validate_frame_scores",
]
