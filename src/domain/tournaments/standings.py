"""Group tables, tie detection, tiebreaker planning and final round-robin ranking."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any

from domain.tournaments.brackets import PlannedMatch
from domain.tournaments.enums import EliminationRound, MatchStage, MatchStatus

POINTS_PER_WIN = 3
MAX_TIEBREAKER_ROUNDS = 3
MIN_TIE_BLOCK = 3


@dataclass(frozen=True)
class MatchResult:
    """Completed (or open) match reduced to what standings need."""

    match_id: int
    player1_id: int | None
    player2_id: int | None
    player1_score: int
    player2_score: int
    winner_id: int | None
    completed: bool
    is_tiebreaker: bool = False

    def involves(self, first: int, second: int) -> bool:
        return {self.player1_id, self.player2_id} == {first, second}


@dataclass(frozen=True)
class StandingPlayer:
    user_id: int
    seed_number: int | None
    group_wins: int = 0
    group_games_diff: int = 0
    tiebreaker_wins: int = 0
    tiebreaker_games_diff: int = 0


@dataclass(frozen=True)
class GroupRow:
    user_id: int
    seed_number: int | None
    played: int
    wins: int
    losses: int
    games_won: int
    games_lost: int
    points: int
    position: int
    advances: bool

    @property
    def games_diff(self) -> int:
        return self.games_won - self.games_lost

    def as_json(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "seed_number": self.seed_number,
            "played": self.played,
            "wins": self.wins,
            "losses": self.losses,
            "games_won": self.games_won,
            "games_lost": self.games_lost,
            "games_diff": self.games_diff,
            "points": self.points,
            "position": self.position,
            "advances": self.advances,
        }


def group_table(
    players: Sequence[StandingPlayer],
    matches: Iterable[MatchResult],
    *,
    advance_count: int,
) -> list[GroupRow]:
    """Group table from completed non-tiebreaker matches: 3 points per win."""
    totals = {player.user_id: [0, 0, 0, 0, 0] for player in players}
    for match in matches:
        if not match.completed or match.is_tiebreaker or match.winner_id is None:
            continue
        sides = (
            (match.player1_id, match.player1_score, match.player2_score),
            (match.player2_id, match.player2_score, match.player1_score),
        )
        for user_id, won_games, lost_games in sides:
            if user_id not in totals:
                continue
            row = totals[user_id]
            row[0] += 1
            if match.winner_id == user_id:
                row[1] += 1
            else:
                row[2] += 1
            row[3] += won_games
            row[4] += lost_games

    seeds = {player.user_id: player.seed_number for player in players}

    def sort_key(user_id: int) -> tuple[int, int, int, int]:
        played, wins, losses, won, lost = totals[user_id]
        seed = seeds[user_id] if seeds[user_id] is not None else 10**6
        return (-wins * POINTS_PER_WIN, -(won - lost), -won, seed)

    rows = []
    for position, user_id in enumerate(sorted(totals, key=sort_key), start=1):
        played, wins, losses, won, lost = totals[user_id]
        rows.append(
            GroupRow(
                user_id=user_id,
                seed_number=seeds[user_id],
                played=played,
                wins=wins,
                losses=losses,
                games_won=won,
                games_lost=lost,
                points=wins * POINTS_PER_WIN,
                position=position,
                advances=position <= advance_count,
            )
        )
    return rows


def final_tie_key(player: StandingPlayer) -> str:
    return (
        f"{player.group_wins}_{player.group_games_diff}_"
        f"{player.tiebreaker_wins}_{player.tiebreaker_games_diff}"
    )


def tiebreaker_tie_key(player: StandingPlayer) -> str:
    return f"{player.tiebreaker_wins}_{player.tiebreaker_games_diff}"


def tie_blocks(
    players: Iterable[StandingPlayer],
    key: Callable[[StandingPlayer], str],
) -> dict[str, list[StandingPlayer]]:
    """Players sharing a key, kept only for blocks of three or more."""
    blocks: dict[str, list[StandingPlayer]] = {}
    for player in players:
        blocks.setdefault(key(player), []).append(player)
    return {block_key: members for block_key, members in blocks.items() if len(members) >= MIN_TIE_BLOCK}


def plan_tiebreaker_matches(
    blocks: dict[str, list[StandingPlayer]],
    *,
    round_number: int,
    races_to: int,
) -> list[PlannedMatch]:
    """Every pairing inside each tied block for one tiebreaker round."""
    planned: list[PlannedMatch] = []
    for block_key, members in blocks.items():
        number = 1
        for index, first in enumerate(members):
            for second in members[index + 1 :]:
                planned.append(
                    PlannedMatch(
                        code=f"TB_R{round_number}_{block_key.replace('_', '-')}_M{number}",
                        stage=MatchStage.PLAYOFF,
                        round=EliminationRound.GROUPS,
                        races_to=races_to,
                        player1_id=first.user_id,
                        player2_id=second.user_id,
                        status=MatchStatus.READY,
                        metadata={
                            "is_tiebreaker": True,
                            "tiebreaker_round": round_number,
                            "tied_group": block_key,
                        },
                    )
                )
                number += 1
    return planned


def head_to_head(matches: Sequence[MatchResult]) -> Callable[[StandingPlayer, StandingPlayer], int]:
    """Comparator: latest completed tiebreaker, else the regular match, else seed order."""
    completed = [match for match in matches if match.completed and match.winner_id is not None]
    tiebreakers = sorted(
        (match for match in completed if match.is_tiebreaker),
        key=lambda match: match.match_id,
        reverse=True,
    )
    regular = [match for match in completed if not match.is_tiebreaker]

    def compare(first: StandingPlayer, second: StandingPlayer) -> int:
        for pool in (tiebreakers, regular):
            decided = next((match for match in pool if match.involves(first.user_id, second.user_id)), None)
            if decided is not None:
                return -1 if decided.winner_id == first.user_id else 1
        return (first.seed_number or 0) - (second.seed_number or 0)

    return compare


def rank_players(
    players: Sequence[StandingPlayer],
    compare_head_to_head: Callable[[StandingPlayer, StandingPlayer], int],
) -> list[StandingPlayer]:
    """Order by group wins, tiebreaker wins, tiebreaker diff, group diff; head-to-head breaks the rest."""

    def compare(first: StandingPlayer, second: StandingPlayer) -> int:
        first_key = (first.group_wins, first.tiebreaker_wins, first.tiebreaker_games_diff, first.group_games_diff)
        second_key = (second.group_wins, second.tiebreaker_wins, second.tiebreaker_games_diff, second.group_games_diff)
        if first_key != second_key:
            return -1 if first_key > second_key else 1
        return compare_head_to_head(first, second)

    return sorted(players, key=cmp_to_key(compare))


__all__ = [
    "GroupRow",
    "MAX_TIEBREAKER_ROUNDS",
    "MatchResult",
    "POINTS_PER_WIN",
    "StandingPlayer",
    "final_tie_key",
    "group_table",
    "head_to_head",
    "plan_tiebreaker_matches",
    "rank_players",
    "tie_blocks",
    "tiebreaker_tie_key",
]
