"""League table ordering from ratings and completed match results."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CompletedMatch:
    """Completed league match as seen by the standings calculation."""

    first_rating_id: int
    second_rating_id: int
    first_score: int
    second_score: int
    winner_rating_id: int | None


@dataclass
class LeagueStandingEntry:
    rating_id: int
    rating: int
    firstname: str = ""
    lastname: str = ""
    wins: int = 0
    losses: int = 0
    frames_won: int = 0
    frames_lost: int = 0
    matches_count: int = 0
    position: int = field(default=0)

    @property
    def frame_diff(self) -> int:
        return self.frames_won - self.frames_lost


def league_sort_key(entry: LeagueStandingEntry) -> tuple[int, int, int, int, int, int, str, str]:
    """Sort key: rating, wins, frame diff, frames won, matches desc; frames lost, names asc."""
    return (
        -entry.rating,
        -entry.wins,
        -entry.frame_diff,
        -entry.frames_won,
        -entry.matches_count,
        entry.frames_lost,
        entry.lastname,
        entry.firstname,
    )


def accumulate_match_stats(
    entries: Iterable[LeagueStandingEntry],
    matches: Iterable[CompletedMatch],
) -> dict[int, LeagueStandingEntry]:
    """Fold completed match results into the entries keyed by rating id."""
    by_rating = {entry.rating_id: entry for entry in entries}
    for match in matches:
        sides = (
            (match.first_rating_id, match.first_score, match.second_score),
            (match.second_rating_id, match.second_score, match.first_score),
        )
        for rating_id, scored, conceded in sides:
            entry = by_rating.get(rating_id)
            if entry is None:
                continue
            entry.matches_count += 1
            entry.frames_won += scored
            entry.frames_lost += conceded
            if match.winner_rating_id == rating_id:
                entry.wins += 1
            elif match.winner_rating_id is not None:
                entry.losses += 1
    return by_rating


def rank_entries(entries: Iterable[LeagueStandingEntry]) -> list[LeagueStandingEntry]:
    """Sort entries with league_sort_key and assign positions 1..n."""
    ranked = sorted(entries, key=league_sort_key)
    for index, entry in enumerate(ranked, start=1):
        entry.position = index
    return ranked


__all__ = [
    "CompletedMatch",
    "LeagueStandingEntry",
    "accumulate_match_stats",
    "league_sort_key",
    "rank_entries",
]
